"""Mint verification.

A submitted txHash is only trusted once its receipt shows a successful call
to the score contract sent by the claimed wallet. If the node cannot produce
a receipt within the retry budget the submission is either accepted with an
``unconfirmed`` mint status or refused, depending on
``trust_unconfirmed_receipts``.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from eth_utils import is_checksum_address
from starlette.concurrency import run_in_threadpool

from errors import InvalidAddress, InvalidInput, MissingFields, NotConfigured, ReceiptUnavailable, TransactionMismatch
from hashing import is_hex_address
from receipts import TransactionReceipt, poll_receipt
from signer import MAX_SCORE, MIN_SCORE

logger = logging.getLogger(__name__)

MINT_CONFIRMED = "success"
MINT_UNCONFIRMED = "unconfirmed"


@dataclass
class VerifierConfig:
    contract_address: Optional[str]
    chain_id: int
    max_attempts: int = 5
    base_delay: float = 2.0
    trust_unconfirmed_receipts: bool = True


class ScoreVerifier:
    def __init__(self, config: VerifierConfig, receipt_client, store, sleep=None):
        self.config = config
        self.receipt_client = receipt_client
        self.store = store
        self._sleep = sleep or asyncio.sleep

    async def verify_and_record(self, submission, is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None) -> None:
        game_id = submission.game_id
        tx_hash = submission.tx_hash
        wallet = submission.wallet
        score = submission.score

        if not game_id or not tx_hash or not wallet or not _is_number(score):
            raise MissingFields("Missing gameId, score, txHash, or wallet.")
        if not _is_wallet_address(wallet):
            raise InvalidAddress("Invalid wallet address.")
        if not _is_score(score):
            raise InvalidInput(f"score must be a whole number between {MIN_SCORE} and {MAX_SCORE}.")
        if not self.config.contract_address:
            raise NotConfigured("Missing SCORE_CONTRACT_ADDRESS on server.")

        receipt = await poll_receipt(
            self.receipt_client,
            tx_hash,
            max_attempts=self.config.max_attempts,
            base_delay=self.config.base_delay,
            is_cancelled=is_cancelled,
            sleep=self._sleep,
        )

        if receipt is None:
            if not self.config.trust_unconfirmed_receipts:
                raise ReceiptUnavailable("Transaction receipt not available. Try again later.")
            logger.warning(
                "No receipt for %s after %d attempts; accepting game %s on client confirmation",
                tx_hash, self.config.max_attempts, game_id,
            )
            mint_status = MINT_UNCONFIRMED
        else:
            self.check_receipt(receipt, wallet)
            mint_status = MINT_CONFIRMED

        await run_in_threadpool(
            self.store.record_game,
            game_id,
            wallet,
            int(score),
            tx_hash,
            self.config.chain_id,
            mint_status,
            submission.rounds or [],
            submission.farcaster,
        )

    def check_receipt(self, receipt: TransactionReceipt, wallet: str) -> None:
        if not receipt.success:
            logger.warning("Receipt reports a failed transaction (block %s)", receipt.block_number)
            raise TransactionMismatch("Transaction not successful.")
        if _lower(receipt.to) != self.config.contract_address.lower():
            logger.warning("Transaction target %s is not the score contract", receipt.to)
            raise TransactionMismatch("Transaction target mismatch.")
        if _lower(receipt.from_address) != wallet.lower():
            logger.warning("Transaction sender %s does not match wallet %s", receipt.from_address, wallet)
            raise TransactionMismatch("Wallet does not match transaction sender.")


def _lower(value: Optional[str]) -> str:
    return value.lower() if value else ""


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_score(value) -> bool:
    if isinstance(value, float) and not (math.isfinite(value) and value.is_integer()):
        return False
    return MIN_SCORE <= value <= MAX_SCORE


def _is_wallet_address(value: str) -> bool:
    if not is_hex_address(value):
        return False
    digits = value[2:]
    # Mixed case means EIP-55: the case pattern must be the checksum
    if digits != digits.lower() and digits != digits.upper():
        return is_checksum_address(value)
    return True
