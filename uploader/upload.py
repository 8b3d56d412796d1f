"""Direct upload and preview orchestration."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from common.constants import OPTIMAL_CHUNK_SIZE, STRATEGY_THRESHOLD_BYTES
from common.exceptions import ContentTooLargeError
from common.logging_config import get_logger
from common.types import (
    ConfirmationConfig,
    OperationKind,
    PreviewResult,
    RetryConfig,
    StorageStrategy,
    UploadResult,
)
from uploader.content import EncodedContent, encode_content
from uploader.storage_check import StorageChecker
from uploader.storage_client import LedgerWriter, StorageReader
from uploader.transaction_filter import filter_upload_plan
from uploader.transaction_prep import UploadPlan, build_upload_plan
from uploader.transaction_send import send_operations_with_idempotency

logger = get_logger(__name__)


@dataclass
class UploadOptions:
    """
    Options for a direct upload or preview.

    Attributes:
        file_path: File to upload
        storage_key: Logical storage key
        text: Label stored with the value (defaults to the file name)
        chunk_size: Characters per chunk for chunked storage
        threshold: Largest content stored without chunking
        max_content_size: Optional cap on the encoded content size
        confirmation: Receipt wait settings
        retry_config: Retry failed operations when set
    """
    file_path: Path
    storage_key: str
    text: str = ""
    chunk_size: int = OPTIMAL_CHUNK_SIZE
    threshold: int = STRATEGY_THRESHOLD_BYTES
    max_content_size: Optional[int] = None
    confirmation: ConfirmationConfig = field(default_factory=ConfirmationConfig)
    retry_config: Optional[RetryConfig] = None

    def __post_init__(self):
        self.file_path = Path(self.file_path)
        if not self.text:
            self.text = self.file_path.name


def read_content_file(file_path: Path, max_content_size: Optional[int] = None) -> EncodedContent:
    """
    Read a file and encode it for storage.

    Args:
        file_path: File to read
        max_content_size: Optional cap on the encoded text length

    Returns:
        EncodedContent

    Raises:
        FileNotFoundError: If the file does not exist
        ContentTooLargeError: If the encoded content exceeds max_content_size
    """
    with open(file_path, 'rb') as f:
        data = f.read()

    encoded = encode_content(data)
    if max_content_size is not None and len(encoded.text) > max_content_size:
        raise ContentTooLargeError(
            f"Content size {len(encoded.text)} exceeds maximum of {max_content_size}"
        )

    logger.debug(
        f"Read {len(data)} bytes from {file_path} "
        f"[binary={encoded.is_binary}, mime_type={encoded.mime_type}]"
    )
    return encoded


def _plan_for(options: UploadOptions, operator: str) -> UploadPlan:
    encoded = read_content_file(options.file_path, options.max_content_size)
    return build_upload_plan(
        encoded.text,
        options.storage_key,
        options.text,
        operator,
        chunk_size=options.chunk_size,
        threshold=options.threshold,
    )


async def upload_file(options: UploadOptions, storage: StorageReader, writer: LedgerWriter) -> UploadResult:
    """
    Upload a file with the caller's own credentials.

    Reads and classifies the file, prepares the plan, drops operations that
    are already stored, then sends the rest sequentially.

    Args:
        options: Upload options
        storage: Storage reader used for existence checks
        writer: Ledger writer holding the caller's key

    Returns:
        UploadResult (skipped=True with zero sends when nothing was needed)
    """
    operator = writer.address.lower()
    plan = _plan_for(options, operator)
    checker = StorageChecker(storage)

    filtered = await filter_upload_plan(checker, plan, operator)
    skipped_count = len(filtered.skipped)

    if filtered.is_noop:
        logger.info(f"All {skipped_count} operations already stored, nothing to send [key={options.storage_key}]")
        return UploadResult(
            success=True,
            skipped=True,
            transactions_sent=0,
            transactions_skipped=skipped_count,
            transactions_failed=0,
            operator_address=operator,
            storage_type=plan.strategy,
        )

    result = await send_operations_with_idempotency(
        checker,
        writer,
        filtered.to_send,
        operator=operator,
        confirmation=options.confirmation,
        retry_config=options.retry_config,
    )
    result.transactions_skipped += skipped_count
    result.skipped = result.transactions_skipped > 0
    result.storage_type = plan.strategy

    logger.info(
        f"Upload finished [key={options.storage_key}, success={result.success}, sent={result.transactions_sent}, "
        f"skipped={result.transactions_skipped}, failed={result.transactions_failed}]"
    )
    return result


async def preview_file(options: UploadOptions, storage: StorageReader, operator: str) -> PreviewResult:
    """
    Report what an upload would send without sending anything.

    Args:
        options: Upload options
        storage: Storage reader used for existence checks
        operator: Address the upload would write as

    Returns:
        PreviewResult
    """
    operator = operator.lower()
    plan = _plan_for(options, operator)
    filtered = await filter_upload_plan(StorageChecker(storage), plan, operator)

    total = len(plan.operations)
    if plan.strategy == StorageStrategy.CHUNKED:
        return PreviewResult(
            storage_type=plan.strategy,
            total_chunks=len(plan.chunk_operations),
            already_stored_chunks=sum(1 for op in filtered.skipped if op.kind == OperationKind.CHUNK),
            need_to_store_chunks=sum(1 for op in filtered.to_send if op.kind == OperationKind.CHUNK),
            metadata_needs_storage=filtered.metadata_needs_storage,
            operator_address=operator,
            storage_key=options.storage_key,
            total_transactions=total,
            transactions_to_send=len(filtered.to_send),
            transactions_skipped=len(filtered.skipped),
        )

    return PreviewResult(
        storage_type=plan.strategy,
        total_chunks=1,
        already_stored_chunks=len(filtered.skipped),
        need_to_store_chunks=len(filtered.to_send),
        operator_address=operator,
        storage_key=options.storage_key,
        total_transactions=total,
        transactions_to_send=len(filtered.to_send),
        transactions_skipped=len(filtered.skipped),
    )
