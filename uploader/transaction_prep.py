"""Builds upload plans (ordered write operations) from content."""

from dataclasses import dataclass, field
from typing import Optional

from common.constants import (
    CHUNKED_STORAGE_CONTRACT_ADDRESS,
    CHUNKED_STORAGE_PUT_FUNCTION,
    OPTIMAL_CHUNK_SIZE,
    STORAGE_CONTRACT_ADDRESS,
    STORAGE_PUT_FUNCTION,
    STRATEGY_THRESHOLD_BYTES,
)
from common.logging_config import get_logger
from common.types import (
    ChunkArgs,
    EncodedCall,
    MetadataArgs,
    NormalArgs,
    OperationKind,
    StorageStrategy,
    WriteOperation,
)
from uploader.content import classify, compress_to_segments, prepare_chunks, text_to_hex
from uploader.keys import get_storage_key_bytes

logger = get_logger(__name__)


@dataclass
class UploadPlan:
    """
    Ordered write operations for one logical upload.

    Attributes:
        strategy: Storage strategy chosen for the content
        storage_key: Normalized storage key
        operations: Metadata first (chunked) or the single normal write
        chunk_hashes: Hashes of all chunk operations in content order
        top_level_hash: Hash of the ordered chunk set (chunked only)
    """
    strategy: StorageStrategy
    storage_key: str
    operations: list[WriteOperation] = field(default_factory=list)
    chunk_hashes: list[str] = field(default_factory=list)
    top_level_hash: Optional[str] = None

    @property
    def chunk_operations(self) -> list[WriteOperation]:
        return [op for op in self.operations if op.kind == OperationKind.CHUNK]

    @property
    def metadata_operation(self) -> Optional[WriteOperation]:
        for op in self.operations:
            if op.kind == OperationKind.METADATA:
                return op
        return None


def prepare_normal_operation(content: str, storage_key: str, text: str) -> WriteOperation:
    """
    Prepare a single direct key/value write.

    Args:
        content: Content text
        storage_key: Caller-supplied key (normalized here)
        text: Label stored with the value

    Returns:
        WriteOperation whose id is the normalized key
    """
    key = get_storage_key_bytes(storage_key)
    args = NormalArgs(key=key, text=text, value=text_to_hex(content))
    return WriteOperation(
        id=key,
        kind=OperationKind.NORMAL,
        typed_args=args,
        call=EncodedCall(
            to=STORAGE_CONTRACT_ADDRESS,
            function_name=STORAGE_PUT_FUNCTION,
            args=(args.key, args.text, args.value),
        ),
    )


def prepare_chunk_operation(chunk: str, chunk_hash: str) -> WriteOperation:
    """Prepare a content-addressed chunk write."""
    args = ChunkArgs(hash=chunk_hash, text="", chunks=tuple(compress_to_segments(chunk)))
    return WriteOperation(
        id=chunk_hash,
        kind=OperationKind.CHUNK,
        typed_args=args,
        call=EncodedCall(
            to=CHUNKED_STORAGE_CONTRACT_ADDRESS,
            function_name=CHUNKED_STORAGE_PUT_FUNCTION,
            args=(args.hash, args.text, args.chunks),
        ),
    )


def build_chunked_plan(
    content: str,
    storage_key: str,
    text: str,
    operator: str,
    chunk_operator: Optional[str] = None,
    chunk_size: int = OPTIMAL_CHUNK_SIZE,
) -> UploadPlan:
    """
    Prepare a metadata write plus one write per chunk.

    Args:
        content: Content text
        storage_key: Caller-supplied key
        text: Label stored with the metadata document
        operator: Address that will write the metadata
        chunk_operator: Address that will write the chunks (defaults to operator)
        chunk_size: Characters per chunk

    Returns:
        UploadPlan with the metadata operation first
    """
    chunk_operator = (chunk_operator or operator).lower()
    chunk_plan = prepare_chunks(content, chunk_operator, chunk_size)
    key = get_storage_key_bytes(storage_key)

    metadata_args = MetadataArgs(
        key=key,
        text=text,
        value=text_to_hex(chunk_plan.metadata),
        requires_confirmed_chunks=chunk_plan.chunk_hashes,
        chunk_operator=chunk_operator,
    )
    metadata_op = WriteOperation(
        id=key,
        kind=OperationKind.METADATA,
        typed_args=metadata_args,
        call=EncodedCall(
            to=STORAGE_CONTRACT_ADDRESS,
            function_name=STORAGE_PUT_FUNCTION,
            args=(metadata_args.key, metadata_args.text, metadata_args.value),
        ),
    )

    chunk_ops = [
        prepare_chunk_operation(chunk, chunk_hash)
        for chunk, chunk_hash in zip(chunk_plan.chunks, chunk_plan.chunk_hashes)
    ]

    logger.info(
        f"Prepared chunked plan: 1 metadata + {len(chunk_ops)} chunk operations "
        f"[key={storage_key}, top_level_hash={chunk_plan.top_level_hash}]"
    )
    return UploadPlan(
        strategy=StorageStrategy.CHUNKED,
        storage_key=key,
        operations=[metadata_op] + chunk_ops,
        chunk_hashes=[op.id for op in chunk_ops],
        top_level_hash=chunk_plan.top_level_hash,
    )


def build_upload_plan(
    content: str,
    storage_key: str,
    text: str,
    operator: str,
    chunk_operator: Optional[str] = None,
    chunk_size: int = OPTIMAL_CHUNK_SIZE,
    threshold: int = STRATEGY_THRESHOLD_BYTES,
    force_chunked: bool = False,
) -> UploadPlan:
    """
    Classify content and prepare its upload plan.

    Args:
        content: Content text
        storage_key: Caller-supplied key
        text: Label
        operator: Caller address
        chunk_operator: Address that will write chunks (relay sponsor)
        chunk_size: Characters per chunk
        threshold: Largest content size stored without chunking
        force_chunked: Always use the chunked strategy

    Returns:
        UploadPlan
    """
    strategy = StorageStrategy.CHUNKED if force_chunked else classify(content, threshold)

    if strategy == StorageStrategy.NORMAL:
        op = prepare_normal_operation(content, storage_key, text)
        logger.info(f"Prepared normal plan [key={storage_key}, size={len(content)}]")
        return UploadPlan(strategy=strategy, storage_key=op.id, operations=[op])

    return build_chunked_plan(content, storage_key, text, operator, chunk_operator, chunk_size)
