"""Idempotency filter: drops write operations whose data is already stored."""

from typing import Optional

from common.logging_config import get_logger
from common.types import FilterOutcome, OperationKind, StorageStrategy, WriteOperation
from uploader.storage_check import StorageChecker
from uploader.transaction_prep import UploadPlan

logger = get_logger(__name__)


async def filter_existing_operations(
    checker: StorageChecker,
    operations: list[WriteOperation],
    operator: str,
) -> FilterOutcome:
    """
    Partition operations one by one into to-send and skipped.

    A stored but mismatched value is kept in to_send; the new write
    overwrites it once confirmed.

    Args:
        checker: Existence checker
        operations: Operations in plan order
        operator: Address whose namespace is checked

    Returns:
        FilterOutcome preserving plan order in both lists
    """
    outcome = FilterOutcome()
    for op in operations:
        if await checker.check_operation(op, operator):
            logger.info(f"Skipping {op.kind.value} operation, already stored [id={op.id}]")
            outcome.skipped.append(op)
        else:
            outcome.to_send.append(op)
    return outcome


async def filter_chunked_operations(
    checker: StorageChecker,
    operations: list[WriteOperation],
    operator: str,
    chunk_operator: Optional[str] = None,
) -> FilterOutcome:
    """
    Filter a chunked plan, checking every chunk concurrently.

    Chunks are skipped when present. Metadata is skipped only when every chunk
    it references is present and its own stored body matches; otherwise it is
    placed at the front of to_send.

    Args:
        checker: Existence checker
        operations: Metadata and chunk operations
        operator: Address that writes the metadata
        chunk_operator: Address that writes the chunks (defaults to operator)

    Returns:
        FilterOutcome
    """
    chunk_operator = chunk_operator or operator
    metadata_op = next((op for op in operations if op.kind == OperationKind.METADATA), None)
    chunk_ops = [op for op in operations if op.kind == OperationKind.CHUNK]
    chunk_hashes = [op.id for op in chunk_ops]

    existing = await checker.check_chunk_set(chunk_hashes, chunk_operator)

    outcome = FilterOutcome()
    for op in chunk_ops:
        if op.id in existing:
            outcome.skipped.append(op)
        else:
            outcome.to_send.append(op)

    if metadata_op is not None:
        required = metadata_op.requires_confirmed_chunks or tuple(chunk_hashes)
        all_chunks_exist = len(required) > 0 and all(chunk_hash in existing for chunk_hash in required)

        if all_chunks_exist and await checker.check_operation(metadata_op, operator):
            outcome.skipped.append(metadata_op)
        else:
            if not all_chunks_exist:
                logger.info(
                    f"Metadata must be sent, {len(required) - len(existing & set(required))} "
                    f"referenced chunks missing [key={metadata_op.id}]"
                )
            outcome.to_send.insert(0, metadata_op)

    logger.info(
        f"Filtered chunked plan: {len(outcome.to_send)} to send, {len(outcome.skipped)} skipped "
        f"[chunks_present={len(existing)}/{len(chunk_hashes)}]"
    )
    return outcome


async def filter_upload_plan(
    checker: StorageChecker,
    plan: UploadPlan,
    operator: str,
    chunk_operator: Optional[str] = None,
) -> FilterOutcome:
    """Filter a plan with the strategy-appropriate filter."""
    if plan.strategy == StorageStrategy.CHUNKED:
        return await filter_chunked_operations(checker, plan.operations, operator, chunk_operator)
    return await filter_existing_operations(checker, plan.operations, operator)
