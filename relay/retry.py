"""
Retry of failed write operations with exponential backoff.

One RetryStrategy serves both submission paths. Before each attempt it asks an
injected recheck function which of the still-failed operations have landed in
the meantime, so an operation that actually succeeded is never resubmitted.
"""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from common.exceptions import NetStoreError
from common.logging_config import get_logger
from common.types import OperationKind, RetryConfig, SubmissionResult, WriteOperation

if TYPE_CHECKING:
    from uploader.storage_check import StorageChecker

logger = get_logger(__name__)

# Given operations, returns the positions (within that list) already satisfied
RecheckFn = Callable[[list[WriteOperation]], Awaitable[set[int]]]
# Submits operations; result indexes refer to the submitted list
SubmitFn = Callable[[list[WriteOperation]], Awaitable[SubmissionResult]]


@dataclass
class RetryOutcome:
    """
    Merged result of all retry attempts.

    Indexes in `result` refer to the operations list passed to retry_failed.
    `recovered_indexes` are operations found already stored by a recheck.
    """
    result: SubmissionResult
    attempts: int = 0
    recovered_indexes: list[int] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        return len(self.result.failed_indexes) > 0


def recheck_chunk_operations(checker: 'StorageChecker', operator: str) -> RecheckFn:
    """
    Build a recheck function for content-addressed chunk operations.

    Chunk operations whose hash is now stored under operator are reported as
    satisfied. Other operations cannot be verified this way and always retry.
    """
    async def recheck(operations: list[WriteOperation]) -> set[int]:
        chunk_hashes = [op.id for op in operations if op.kind == OperationKind.CHUNK]
        if not chunk_hashes:
            return set()
        existing = await checker.check_chunk_set(chunk_hashes, operator)
        return {
            position for position, op in enumerate(operations)
            if op.kind == OperationKind.CHUNK and op.id in existing
        }

    return recheck


class RetryStrategy:
    """
    Exponential backoff retry over a shrinking set of failed operations.

    Attempt 1 runs immediately; attempt n >= 2 waits
    min(initial_delay * backoff_multiplier ** (n - 2), max_delay) ms.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        recheck: Optional[RecheckFn] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize retry strategy.

        Args:
            config: Backoff settings (defaults to RetryConfig())
            recheck: Function reporting operations that no longer need a retry
            sleep: Awaitable sleep taking seconds (injectable for tests)
        """
        self.config = config or RetryConfig()
        self.recheck = recheck
        self._sleep = sleep

    def delay_for_attempt(self, attempt: int) -> int:
        """
        Delay in milliseconds before the given 1-based attempt.

        Args:
            attempt: Attempt number (1 for the first retry)

        Returns:
            0 for the first attempt, then the capped exponential delay
        """
        if attempt <= 1:
            return 0
        delay = self.config.initial_delay * (self.config.backoff_multiplier ** (attempt - 2))
        return int(min(delay, self.config.max_delay))

    async def _drop_satisfied(self, operations: list[WriteOperation], pending: list[int]) -> tuple[list[int], list[int]]:
        if self.recheck is None or not pending:
            return pending, []

        satisfied = await self.recheck([operations[i] for i in pending])
        recovered = [index for position, index in enumerate(pending) if position in satisfied]
        still_pending = [index for position, index in enumerate(pending) if position not in satisfied]
        if recovered:
            logger.info(f"Recheck found {len(recovered)} operations already stored, excluding from retry")
        return still_pending, recovered

    async def retry_failed(
        self,
        operations: list[WriteOperation],
        failed_indexes: list[int],
        submit: SubmitFn,
    ) -> RetryOutcome:
        """
        Retry failed operations until none remain or max_retries is reached.

        Exhaustion is reported through the outcome, not raised. A submit call
        that raises counts as a failed attempt for every pending operation.

        Args:
            operations: Operations originally submitted
            failed_indexes: Indexes into operations that failed
            submit: Function submitting a list of operations

        Returns:
            RetryOutcome with indexes relative to operations
        """
        pending = sorted(set(failed_indexes))
        merged = SubmissionResult()
        outcome = RetryOutcome(result=merged)
        last_errors: dict[int, str] = {}

        while pending and outcome.attempts < self.config.max_retries:
            outcome.attempts += 1
            attempt = outcome.attempts

            pending, recovered = await self._drop_satisfied(operations, pending)
            outcome.recovered_indexes.extend(recovered)
            merged.successful_indexes.extend(recovered)
            if not pending:
                break

            delay_ms = self.delay_for_attempt(attempt)
            if delay_ms > 0:
                logger.info(f"Retry attempt {attempt}/{self.config.max_retries} in {delay_ms}ms [pending={len(pending)}]")
                await self._sleep(delay_ms / 1000)
            else:
                logger.info(f"Retry attempt {attempt}/{self.config.max_retries} [pending={len(pending)}]")

            try:
                result = await submit([operations[i] for i in pending])
            except NetStoreError as e:
                logger.warning(f"Retry attempt {attempt} failed: {e}")
                for index in pending:
                    last_errors[index] = str(e)
                continue

            merged.transaction_hashes.extend(result.transaction_hashes)
            merged.successful_indexes.extend(pending[i] for i in result.successful_indexes)
            merged.transactions_sent += result.transactions_sent
            if result.sponsor_address:
                merged.sponsor_address = result.sponsor_address
            for error in result.errors:
                last_errors[pending[error['index']]] = error['error']

            pending = [pending[i] for i in result.failed_indexes]

        merged.failed_indexes = pending
        merged.transactions_failed = len(pending)
        merged.errors = [{'index': index, 'error': last_errors.get(index, 'retry limit reached')} for index in pending]

        if pending:
            logger.warning(f"Retries exhausted after {outcome.attempts} attempts, {len(pending)} operations still failed")
        return outcome
