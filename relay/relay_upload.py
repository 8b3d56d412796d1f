"""
Sponsored upload through the relay backend.

Chunks are written by the sponsor account in sequential batches; the metadata
document is written afterwards by the caller, and only once every chunk it
references is stored.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional

from common.constants import (
    INTER_BATCH_CONFIRMATION_TIMEOUT_MS,
    MAX_BATCH_SIZE_BYTES,
    MAX_TRANSACTIONS_PER_BATCH,
    OPTIMAL_CHUNK_SIZE,
    SESSION_EXPIRES_IN_SECONDS,
)
from common.exceptions import (
    ConfirmationTimeoutError,
    NetStoreError,
    RelayBalanceError,
    RelayFundingError,
    RelaySubmitError,
    SystemicBatchFailure,
)
from common.logging_config import get_logger
from common.types import ConfirmationConfig, RelayUploadResult, RetryConfig, SubmissionResult, WriteOperation
from relay.batching import batch_operations
from relay.confirmations import wait_for_confirmations
from relay.relay_client import RelayClient, RelaySession
from relay.retry import RetryStrategy, recheck_chunk_operations
from uploader.storage_check import StorageChecker
from uploader.storage_client import LedgerWriter, StorageReader
from uploader.transaction_filter import filter_chunked_operations
from uploader.transaction_prep import build_chunked_plan
from uploader.upload import read_content_file

logger = get_logger(__name__)


@dataclass
class RelayUploadOptions:
    """
    Options for a sponsored upload.

    Attributes:
        file_path: File to upload
        storage_key: Logical storage key for the metadata document
        text: Label stored with the metadata (defaults to the file name)
        chunk_size: Characters per chunk
        retry_config: Backoff settings for partially failed batches
        confirmation: Final confirmation settings (chunks and metadata)
        inter_batch_confirmation: Confirmation settings between batches
        session_expires_in: Session lifetime in seconds
        max_batch_count: Maximum operations per batch
        max_batch_bytes: Maximum estimated request size per batch
    """
    file_path: Path
    storage_key: str
    text: str = ""
    chunk_size: int = OPTIMAL_CHUNK_SIZE
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    confirmation: ConfirmationConfig = field(default_factory=ConfirmationConfig)
    inter_batch_confirmation: ConfirmationConfig = field(
        default_factory=lambda: ConfirmationConfig(count=1, timeout_ms=INTER_BATCH_CONFIRMATION_TIMEOUT_MS)
    )
    session_expires_in: int = SESSION_EXPIRES_IN_SECONDS
    max_batch_count: int = MAX_TRANSACTIONS_PER_BATCH
    max_batch_bytes: int = MAX_BATCH_SIZE_BYTES

    def __post_init__(self):
        self.file_path = Path(self.file_path)
        if not self.text:
            self.text = self.file_path.name


@dataclass
class _ChunkProgress:
    transaction_hashes: list[str] = field(default_factory=list)
    chunks_sent: int = 0
    errors: list[str] = field(default_factory=list)
    aborted: bool = False


class RelayUploader:
    """
    Drives one sponsored upload: balance check, funding, session, batched
    chunk submission with retry, confirmation and metadata submission.
    """

    def __init__(
        self,
        relay: RelayClient,
        storage: StorageReader,
        writer: LedgerWriter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize relay uploader.

        Args:
            relay: Relay backend client for the caller's identity
            storage: Storage reader for existence checks
            writer: Caller's ledger writer (metadata and receipt polling)
            sleep: Awaitable sleep used by retry backoff
        """
        self.relay = relay
        self.storage = storage
        self.writer = writer
        self.checker = StorageChecker(storage)
        self._sleep = sleep
        self.session: Optional[RelaySession] = None

    async def ensure_funded(self) -> str:
        """
        Make sure the sponsor account can pay for submissions.

        A failing balance endpoint is treated as an insufficient balance.

        Returns:
            Sponsor address

        Raises:
            RelayFundingError: If funding is needed and fails
        """
        sponsor_address = None
        should_fund = True
        try:
            balance = await self.relay.check_balance()
            sponsor_address = balance.backend_wallet_address
            should_fund = not balance.sufficient_balance
        except RelayBalanceError as e:
            logger.warning(f"Balance check failed, funding anyway: {e}")

        if should_fund:
            funded = await self.relay.fund()
            sponsor_address = funded.sponsor_address

        if not sponsor_address:
            raise RelayFundingError("Failed to determine sponsor address")
        return sponsor_address.lower()

    async def _session(self, options: RelayUploadOptions) -> RelaySession:
        if self.session is None or self.session.is_expired():
            self.session = await self.relay.create_session(options.session_expires_in)
        return self.session

    async def _submit(self, operations: list[WriteOperation], options: RelayUploadOptions) -> SubmissionResult:
        return await self.relay.submit(operations, await self._session(options))

    async def _submit_batch(
        self,
        batch: list[WriteOperation],
        batch_index: int,
        total_batches: int,
        options: RelayUploadOptions,
        sponsor_address: str,
        progress: _ChunkProgress,
    ) -> list[str]:
        """
        Submit one batch, retrying a partial failure.

        Returns:
            Hashes of transactions dispatched for this batch

        Raises:
            SystemicBatchFailure: If every operation of the batch failed
            RelaySubmitError: If the relay rejected the whole request
        """
        label = f"{batch_index + 1}/{total_batches}"
        logger.info(f"Submitting batch [batch={label}, operations={len(batch)}]")

        result = await self._submit(batch, options)
        batch_hashes = list(result.transaction_hashes)
        progress.transaction_hashes.extend(batch_hashes)
        progress.chunks_sent += len(result.successful_indexes)

        if result.all_failed or len(result.failed_indexes) >= len(batch):
            raise SystemicBatchFailure(
                f"Batch {label}: all {len(batch)} transactions failed, likely insufficient sponsor "
                f"balance or network issues; stopping to avoid wasting fees",
                batch_index=batch_index,
            )

        if result.partially_failed:
            logger.warning(
                f"Batch partially failed, retrying [batch={label}, failed={len(result.failed_indexes)}/{len(batch)}]"
            )
            strategy = RetryStrategy(
                options.retry_config,
                recheck=recheck_chunk_operations(self.checker, sponsor_address),
                sleep=self._sleep,
            )
            outcome = await strategy.retry_failed(
                batch,
                result.failed_indexes,
                lambda operations: self._submit(operations, options),
            )
            batch_hashes.extend(outcome.result.transaction_hashes)
            progress.transaction_hashes.extend(outcome.result.transaction_hashes)
            progress.chunks_sent += len(outcome.result.successful_indexes)
            if outcome.exhausted:
                progress.errors.append(
                    f"Batch {label}: {len(outcome.result.failed_indexes)} transactions failed after retries"
                )

        return batch_hashes

    async def _submit_chunks(
        self,
        chunk_ops: list[WriteOperation],
        options: RelayUploadOptions,
        sponsor_address: str,
    ) -> _ChunkProgress:
        progress = _ChunkProgress()
        batches = batch_operations(chunk_ops, options.max_batch_count, options.max_batch_bytes)
        if len(batches) > 1:
            logger.info(f"Splitting {len(chunk_ops)} chunks into {len(batches)} batches")

        for batch_index, batch in enumerate(batches):
            try:
                batch_hashes = await self._submit_batch(
                    batch, batch_index, len(batches), options, sponsor_address, progress
                )
            except SystemicBatchFailure as e:
                logger.error(str(e))
                progress.errors.append(str(e))
                progress.aborted = True
                break
            except RelaySubmitError as e:
                logger.error(f"Relay rejected batch {batch_index + 1}/{len(batches)}: {e}")
                progress.errors.append(f"Batch {batch_index + 1}/{len(batches)}: {e}")
                progress.aborted = True
                break

            if batch_index < len(batches) - 1 and batch_hashes:
                try:
                    await wait_for_confirmations(
                        self.writer,
                        batch_hashes,
                        options.inter_batch_confirmation.count,
                        options.inter_batch_confirmation.timeout_ms,
                    )
                except ConfirmationTimeoutError as e:
                    logger.warning(f"Batch {batch_index + 1}/{len(batches)} confirmation timeout, continuing: {e}")

        return progress

    async def _submit_metadata(
        self,
        metadata_op: WriteOperation,
        options: RelayUploadOptions,
        errors: list[str],
    ) -> Optional[str]:
        operator = self.writer.address.lower()
        missing = await self.checker.missing_required_chunks(metadata_op, operator)
        if missing:
            message = f"Metadata withheld: {len(missing)} referenced chunks are not stored"
            logger.error(f"{message} [key={metadata_op.id}]")
            errors.append(message)
            return None

        if await self.checker.check_operation(metadata_op, operator):
            logger.info(f"Metadata already stored, skipping [key={metadata_op.id}]")
            return None

        try:
            tx_hash = await self.writer.send(metadata_op.call)
        except NetStoreError as e:
            errors.append(f"Metadata submission failed: {e}")
            return None

        try:
            await wait_for_confirmations(
                self.writer, [tx_hash], options.confirmation.count, options.confirmation.timeout_ms
            )
        except ConfirmationTimeoutError as e:
            errors.append(f"Metadata confirmation failed: {e}")
        return tx_hash

    async def upload(self, options: RelayUploadOptions) -> RelayUploadResult:
        """
        Run the sponsored upload.

        Args:
            options: Relay upload options

        Returns:
            RelayUploadResult with counts and any per-step errors

        Raises:
            RelayFundingError: If the sponsor cannot be funded
            RelayAuthenticationError: If no session can be created
        """
        encoded = read_content_file(options.file_path)
        operator = self.writer.address.lower()

        sponsor_address = await self.ensure_funded()
        await self._session(options)

        plan = build_chunked_plan(
            encoded.text,
            options.storage_key,
            options.text,
            operator,
            chunk_operator=sponsor_address,
            chunk_size=options.chunk_size,
        )
        filtered = await filter_chunked_operations(self.checker, plan.chunk_operations, sponsor_address)
        chunks_skipped = len(filtered.skipped)

        progress = _ChunkProgress()
        if filtered.to_send:
            progress = await self._submit_chunks(filtered.to_send, options, sponsor_address)

        if progress.transaction_hashes:
            try:
                await wait_for_confirmations(
                    self.writer,
                    progress.transaction_hashes,
                    options.confirmation.count,
                    options.confirmation.timeout_ms,
                )
            except ConfirmationTimeoutError as e:
                logger.warning(f"Chunk confirmation incomplete, metadata will re-check chunk presence: {e}")

        errors = list(progress.errors)
        metadata_hash = None
        if progress.aborted:
            logger.error(f"Chunk upload aborted, metadata not submitted [key={options.storage_key}]")
        else:
            metadata_hash = await self._submit_metadata(plan.metadata_operation, options, errors)

        result = RelayUploadResult(
            success=len(errors) == 0,
            top_level_hash=plan.top_level_hash,
            chunks_sent=progress.chunks_sent,
            chunks_skipped=chunks_skipped,
            metadata_submitted=metadata_hash is not None,
            chunk_transaction_hashes=progress.transaction_hashes,
            metadata_transaction_hash=metadata_hash,
            sponsor_address=sponsor_address,
            errors=errors or None,
        )
        logger.info(
            f"Relay upload finished [key={options.storage_key}, success={result.success}, "
            f"chunks_sent={result.chunks_sent}, chunks_skipped={result.chunks_skipped}, "
            f"metadata_submitted={result.metadata_submitted}]"
        )
        return result


async def upload_file_with_relay(
    options: RelayUploadOptions,
    relay: RelayClient,
    storage: StorageReader,
    writer: LedgerWriter,
) -> RelayUploadResult:
    """
    Upload a file with chunk fees paid by the relay sponsor.

    Args:
        options: Relay upload options
        relay: Relay backend client
        storage: Storage reader for existence checks
        writer: Caller's ledger writer

    Returns:
        RelayUploadResult
    """
    return await RelayUploader(relay, storage, writer).upload(options)
