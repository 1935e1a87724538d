import logging
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from errors import InvalidInput, NotConfigured, SigningFailure
from hashing import (
    SIGNATURE_LENGTH,
    encode_signature,
    is_hex_address,
    score_claim_hash,
)

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 5000


@dataclass(frozen=True)
class ValidatorSignature:
    signature: str
    validator_address: str


class ScoreSigner:
    """Signs (gameId, score, player) claims with the validator key.

    The contract recomputes the same packed hash on ``mintScore`` and only
    accepts signatures recovering to its configured validator address.
    """

    def __init__(self, private_key: Optional[str]):
        self._account = None
        if private_key:
            try:
                self._account = Account.from_key(private_key)
            except Exception:
                # Do not echo the key back in the log
                logger.error("VALIDATOR_PRIVATE_KEY is malformed; score signing is disabled")
        else:
            logger.warning("VALIDATOR_PRIVATE_KEY not set. Score signing will fail.")

    @property
    def validator_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def sign_score(self, game_id, score, player) -> ValidatorSignature:
        if self._account is None:
            raise NotConfigured("Validator not configured. Missing VALIDATOR_PRIVATE_KEY.")

        validate_claim(game_id, score, player)
        player = player.lower()
        logger.info("Signing score gameId=%s score=%s player=%s", game_id, score, player)

        message_hash = score_claim_hash(game_id, score, player)
        try:
            # sign_message applies the "\x19Ethereum Signed Message:\n32" prefix
            signed = self._account.sign_message(encode_defunct(primitive=message_hash))
            signature = encode_signature(signed.r, signed.s, signed.v)
        except Exception as exc:
            logger.exception("Signing failed for gameId=%s", game_id)
            raise SigningFailure("Failed to generate signature") from exc

        if len(signature) != 2 + 2 * SIGNATURE_LENGTH:
            raise SigningFailure("Generated signature has unexpected length")

        return ValidatorSignature(signature=signature, validator_address=self._account.address)


def validate_claim(game_id, score, player) -> None:
    if not isinstance(game_id, str) or not game_id:
        raise InvalidInput("gameId must be a non-empty string.")
    # bool is an int subclass; True is not a score
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidInput("score must be an integer.")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise InvalidInput(f"score must be between {MIN_SCORE} and {MAX_SCORE}.")
    if not is_hex_address(player):
        raise InvalidInput("player must be a 0x-prefixed 40 hex character address.")
