import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TransactionNotFound

from errors import VerificationAborted

logger = logging.getLogger(__name__)

CANCEL_CHECK_INTERVAL = 0.5


@dataclass(frozen=True)
class TransactionReceipt:
    success: bool
    to: Optional[str]
    from_address: Optional[str]
    block_number: Optional[int] = None


class Web3ReceiptClient:
    """Reads transaction receipts from a JSON-RPC node."""

    def __init__(self, rpc_url: str):
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))

    async def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        try:
            raw = await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        if raw is None:
            return None
        return TransactionReceipt(
            success=raw.get("status") == 1,
            to=raw.get("to"),
            from_address=raw.get("from"),
            block_number=raw.get("blockNumber"),
        )


async def poll_receipt(
    client,
    tx_hash: str,
    max_attempts: int = 5,
    base_delay: float = 2.0,
    is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Optional[TransactionReceipt]:
    """Fetch a receipt with exponential backoff.

    Waits ``base_delay * 2**(attempt-1)`` after each failed attempt, never after
    the last one. Returns None once ``max_attempts`` is exhausted.
    """
    for attempt in range(1, max_attempts + 1):
        await _abort_if_cancelled(is_cancelled, tx_hash)

        logger.info("Attempt %d/%d to get transaction receipt %s", attempt, max_attempts, tx_hash)
        try:
            receipt = await client.get_receipt(tx_hash)
        except Exception as exc:
            logger.info("Receipt not available yet (attempt %d/%d): %s", attempt, max_attempts, exc)
            receipt = None

        if receipt is not None:
            logger.info("Got receipt for %s on attempt %d", tx_hash, attempt)
            return receipt

        if attempt < max_attempts:
            delay = base_delay * (2 ** (attempt - 1))
            logger.info("Waiting %.1fs before retry", delay)
            await _backoff(delay, sleep, is_cancelled, tx_hash)

    return None


async def _abort_if_cancelled(is_cancelled, tx_hash: str) -> None:
    if is_cancelled is not None and await is_cancelled():
        logger.info("Receipt polling for %s aborted by caller", tx_hash)
        raise VerificationAborted("Request cancelled while waiting for the transaction receipt.")


async def _backoff(delay: float, sleep, is_cancelled, tx_hash: str) -> None:
    if is_cancelled is None:
        await sleep(delay)
        return
    # Sleep in slices so a disconnect is noticed within CANCEL_CHECK_INTERVAL
    remaining = delay
    while remaining > 0:
        step = min(CANCEL_CHECK_INTERVAL, remaining)
        await sleep(step)
        remaining -= step
        await _abort_if_cancelled(is_cancelled, tx_hash)
