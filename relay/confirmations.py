"""Concurrent confirmation waiting for submitted transactions."""

import asyncio

from common.constants import DEFAULT_CONFIRMATION_TIMEOUT_MS, DEFAULT_CONFIRMATIONS
from common.exceptions import ConfirmationTimeoutError, NetStoreError
from common.logging_config import get_logger
from uploader.storage_client import LedgerWriter

logger = get_logger(__name__)


async def wait_for_confirmations(
    ledger: LedgerWriter,
    transaction_hashes: list[str],
    confirmations: int = DEFAULT_CONFIRMATIONS,
    timeout_ms: int = DEFAULT_CONFIRMATION_TIMEOUT_MS,
) -> list[dict]:
    """
    Wait for every transaction hash in parallel.

    A timeout stops waiting; it does not undo the submission.

    Args:
        ledger: Client able to poll receipts
        transaction_hashes: Hashes to wait for
        confirmations: Confirmations required per transaction
        timeout_ms: Timeout applied to each wait

    Returns:
        Receipts in the order of transaction_hashes

    Raises:
        ConfirmationTimeoutError: If any transaction is not confirmed in time
    """
    if not transaction_hashes:
        return []

    logger.info(
        f"Waiting for {len(transaction_hashes)} transactions "
        f"[confirmations={confirmations}, timeout_ms={timeout_ms}]"
    )
    results = await asyncio.gather(
        *(ledger.wait_for_receipt(tx_hash, confirmations, timeout_ms) for tx_hash in transaction_hashes),
        return_exceptions=True,
    )

    failures = [
        (tx_hash, result) for tx_hash, result in zip(transaction_hashes, results)
        if isinstance(result, BaseException)
    ]
    for tx_hash, error in failures:
        if not isinstance(error, NetStoreError):
            raise error
        logger.warning(f"Transaction not confirmed [tx_hash={tx_hash}]: {error}")

    if failures:
        first_hash, first_error = failures[0]
        raise ConfirmationTimeoutError(
            f"{len(failures)}/{len(transaction_hashes)} transactions failed or timed out: {first_error}",
            tx_hash=first_hash,
        )
    return list(results)
