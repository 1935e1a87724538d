import re

from eth_abi.packed import encode_packed
from eth_utils import keccak

# Matches the contract's keccak256(abi.encodePacked(gameId, score, msg.sender))
SCORE_HASH_TYPES = ["string", "uint256", "address"]

ETH_SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

SIGNATURE_LENGTH = 65


def is_hex_address(value) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.match(value))


def pack_score_claim(game_id: str, score: int, player: str) -> bytes:
    """Tightly packed ``string ‖ uint256 ‖ address``.

    The score is widened to 256 bits only here; nothing outside this module
    ever sees the wide value.
    """
    return encode_packed(SCORE_HASH_TYPES, [game_id, int(score), player.lower()])


def score_claim_hash(game_id: str, score: int, player: str) -> bytes:
    return keccak(pack_score_claim(game_id, score, player))


def eth_signed_message_hash(message_hash: bytes) -> bytes:
    if len(message_hash) != 32:
        raise ValueError("message hash must be 32 bytes")
    return keccak(ETH_SIGNED_MESSAGE_PREFIX + message_hash)


def encode_signature(r: int, s: int, v: int) -> str:
    """Serialize an ECDSA signature as 0x-prefixed r ‖ s ‖ v (65 bytes).

    ``v`` is accepted either as a recovery parity (0/1) or already in the
    27/28 form and always emitted as 27/28.
    """
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise ValueError(f"unexpected recovery id {v}")
    raw = r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])
    return "0x" + raw.hex()
