"""Direct (caller-paid) sequential submission with per-operation idempotency checks."""

from dataclasses import dataclass, field
from typing import Optional

from common.exceptions import NetStoreError
from common.logging_config import get_logger
from common.types import ConfirmationConfig, RetryConfig, SubmissionResult, UploadResult, WriteOperation
from relay.retry import RetryStrategy, recheck_chunk_operations
from uploader.storage_check import StorageChecker
from uploader.storage_client import LedgerWriter

logger = get_logger(__name__)


@dataclass
class _SendTally:
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    final_hash: Optional[str] = None
    errors: list[str] = field(default_factory=list)


def order_for_direct_send(operations: list[WriteOperation]) -> list[WriteOperation]:
    """
    Move operations that depend on chunks behind everything else.

    Relative order is otherwise preserved.
    """
    independent = [op for op in operations if not op.requires_confirmed_chunks]
    dependent = [op for op in operations if op.requires_confirmed_chunks]
    return independent + dependent


class DirectSender:
    """
    Sends write operations one at a time with the caller's own credentials.

    Every operation is re-checked right before it is sent, and a failed
    operation never stops the remaining ones.
    """

    def __init__(
        self,
        checker: StorageChecker,
        writer: LedgerWriter,
        operator: Optional[str] = None,
        confirmation: Optional[ConfirmationConfig] = None,
    ):
        self.checker = checker
        self.writer = writer
        self.operator = (operator or writer.address).lower()
        self.confirmation = confirmation or ConfirmationConfig()

    async def send_and_confirm(self, op: WriteOperation) -> str:
        """
        Submit one operation and wait for its receipt.

        Returns:
            Transaction hash

        Raises:
            TransactionSubmissionError: If the ledger rejects the call
            ConfirmationTimeoutError: If the receipt does not arrive in time
        """
        tx_hash = await self.writer.send(op.call)
        await self.writer.wait_for_receipt(tx_hash, self.confirmation.count, self.confirmation.timeout_ms)
        return tx_hash

    async def submit(self, operations: list[WriteOperation]) -> SubmissionResult:
        """
        Send operations sequentially and report per-index results.

        Matches the submit signature used by RetryStrategy.
        """
        result = SubmissionResult()
        for index, op in enumerate(operations):
            try:
                tx_hash = await self.send_and_confirm(op)
            except NetStoreError as e:
                logger.warning(f"Operation failed [id={op.id}]: {e}")
                result.failed_indexes.append(index)
                result.errors.append({'index': index, 'error': str(e)})
                continue
            result.transaction_hashes.append(tx_hash)
            result.successful_indexes.append(index)
        result.transactions_sent = len(result.successful_indexes)
        result.transactions_failed = len(result.failed_indexes)
        return result

    async def _send_one(self, op: WriteOperation, position: str, tally: _SendTally) -> Optional[str]:
        """Skip, withhold or send one operation. Returns an error message on failure."""
        try:
            missing = await self.checker.missing_required_chunks(op, self.operator)
            if missing:
                message = f"{op.id}: metadata withheld, {len(missing)} referenced chunks not stored"
                logger.error(f"Operation {position} withheld [id={op.id}, missing_chunks={len(missing)}]")
                tally.failed += 1
                tally.errors.append(message)
                return None

            if await self.checker.check_operation(op, self.operator):
                logger.info(f"Operation {position} skipped, already stored [id={op.id}]")
                tally.skipped += 1
                return None

            logger.info(f"Sending operation {position} [id={op.id}, kind={op.kind.value}]")
            tx_hash = await self.send_and_confirm(op)
        except NetStoreError as e:
            logger.warning(f"Operation {position} failed [id={op.id}]: {e}")
            return str(e)

        logger.info(f"Operation {position} confirmed [id={op.id}, tx_hash={tx_hash}]")
        tally.sent += 1
        tally.final_hash = tx_hash
        return None

    async def send_all(
        self,
        operations: list[WriteOperation],
        retry_config: Optional[RetryConfig] = None,
    ) -> UploadResult:
        """
        Send operations with idempotency checks and continue-on-error.

        Operations that depend on chunks are deferred until the chunks have
        been handled. With retry_config, operations that failed are retried
        through RetryStrategy before dependent operations are attempted.

        Args:
            operations: Filtered operations to send
            retry_config: Optional backoff settings for failed operations

        Returns:
            UploadResult with success == (no failures)
        """
        ordered = order_for_direct_send(operations)
        dependent = [op for op in ordered if op.requires_confirmed_chunks]
        independent = ordered[:len(ordered) - len(dependent)]
        total = len(ordered)
        tally = _SendTally()
        failed_ops: list[WriteOperation] = []
        failure_messages: dict[str, str] = {}

        for position, op in enumerate(independent, start=1):
            error = await self._send_one(op, f"{position}/{total}", tally)
            if error is not None:
                failed_ops.append(op)
                failure_messages[op.id] = error

        if failed_ops and retry_config is not None:
            strategy = RetryStrategy(retry_config, recheck=recheck_chunk_operations(self.checker, self.operator))
            outcome = await strategy.retry_failed(failed_ops, list(range(len(failed_ops))), self.submit)
            tally.sent += outcome.result.transactions_sent
            tally.skipped += len(outcome.recovered_indexes)
            if outcome.result.transaction_hashes:
                tally.final_hash = outcome.result.transaction_hashes[-1]
            for error in outcome.result.errors:
                failure_messages[failed_ops[error['index']].id] = error['error']
            failed_ops = [failed_ops[i] for i in outcome.result.failed_indexes]

        for op in failed_ops:
            tally.failed += 1
            tally.errors.append(f"{op.id}: {failure_messages.get(op.id, 'submission failed')}")

        for position, op in enumerate(dependent, start=len(independent) + 1):
            error = await self._send_one(op, f"{position}/{total}", tally)
            if error is not None:
                tally.failed += 1
                tally.errors.append(f"{op.id}: {error}")

        return UploadResult(
            success=tally.failed == 0,
            skipped=tally.skipped > 0,
            transactions_sent=tally.sent,
            transactions_skipped=tally.skipped,
            transactions_failed=tally.failed,
            final_hash=tally.final_hash,
            error='; '.join(tally.errors) if tally.errors else None,
            operator_address=self.operator,
        )


async def send_operations_with_idempotency(
    checker: StorageChecker,
    writer: LedgerWriter,
    operations: list[WriteOperation],
    operator: Optional[str] = None,
    confirmation: Optional[ConfirmationConfig] = None,
    retry_config: Optional[RetryConfig] = None,
) -> UploadResult:
    """
    Send filtered operations sequentially with the caller's credentials.

    Args:
        checker: Existence checker used for the pre-send re-check
        writer: Ledger writer holding the caller's key
        operations: Operations to send (typically FilterOutcome.to_send)
        operator: Address whose namespace is checked (defaults to writer.address)
        confirmation: Receipt wait settings
        retry_config: Optional retry of failed operations

    Returns:
        UploadResult
    """
    sender = DirectSender(checker, writer, operator, confirmation)
    return await sender.send_all(operations, retry_config)
