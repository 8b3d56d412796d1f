"""Shared data type definitions (write operations, check results, upload results)."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from common.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_CONFIRMATION_TIMEOUT_MS,
    DEFAULT_CONFIRMATIONS,
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
)


class OperationKind(str, Enum):
    """Kind of write operation in an upload plan."""
    NORMAL = "normal"
    CHUNK = "chunk"
    METADATA = "metadata"


class StorageStrategy(str, Enum):
    """Storage strategy selected for a piece of content."""
    NORMAL = "normal"
    CHUNKED = "chunked"


@dataclass(frozen=True)
class NormalArgs:
    """
    Arguments of a direct key/value write.

    Attributes:
        key: Normalized 32-byte storage key (0x hex)
        text: Caller-supplied label
        value: 0x hex of the UTF-8 encoded content
    """
    key: str
    text: str
    value: str


@dataclass(frozen=True)
class MetadataArgs:
    """
    Arguments of a metadata document write.

    Attributes:
        key: Normalized 32-byte storage key (0x hex)
        text: Caller-supplied label
        value: 0x hex of the metadata document
        requires_confirmed_chunks: Chunk hashes that must be present before this write is sent
        chunk_operator: Operator whose namespace holds the referenced chunks
    """
    key: str
    text: str
    value: str
    requires_confirmed_chunks: tuple[str, ...] = ()
    chunk_operator: str = ""


@dataclass(frozen=True)
class ChunkArgs:
    """
    Arguments of a content-addressed chunk write.

    Attributes:
        hash: Content hash of the chunk segment
        text: Label (always empty for chunks)
        chunks: Compressed 0x hex segments stored in the chunk record
    """
    hash: str
    text: str
    chunks: tuple[str, ...]


TypedArgs = Union[NormalArgs, MetadataArgs, ChunkArgs]


@dataclass(frozen=True)
class EncodedCall:
    """Low-level contract call needed to submit a write operation."""
    to: str
    function_name: str
    args: tuple[Any, ...]
    value: int = 0

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict (value omitted when zero)."""
        data = {
            'to': self.to,
            'functionName': self.function_name,
            'args': [list(arg) if isinstance(arg, tuple) else arg for arg in self.args],
        }
        if self.value > 0:
            data['value'] = str(self.value)
        return data

    def to_json(self) -> str:
        """Serialize to a compact JSON string."""
        return json.dumps(self.to_dict(), separators=(',', ':'))


@dataclass(frozen=True)
class WriteOperation:
    """
    Atomic unit submitted to the ledger.

    For chunk operations `id` is the content hash, so existence of `id` implies
    content identity. For normal and metadata operations `id` is the storage key.
    """
    id: str
    kind: OperationKind
    typed_args: TypedArgs
    call: EncodedCall

    @property
    def requires_confirmed_chunks(self) -> tuple[str, ...]:
        if isinstance(self.typed_args, MetadataArgs):
            return self.typed_args.requires_confirmed_chunks
        return ()


@dataclass(frozen=True)
class ExistenceResult:
    """Result of checking whether equivalent data is already stored."""
    exists: bool
    matches: Optional[bool] = None

    @property
    def satisfied(self) -> bool:
        return self.exists and self.matches is True


@dataclass
class FilterOutcome:
    """Partition of an upload plan into operations to send and operations already satisfied."""
    to_send: list[WriteOperation] = field(default_factory=list)
    skipped: list[WriteOperation] = field(default_factory=list)

    @property
    def metadata_needs_storage(self) -> bool:
        return any(op.kind == OperationKind.METADATA for op in self.to_send)

    @property
    def is_noop(self) -> bool:
        return len(self.to_send) == 0


@dataclass(frozen=True)
class StoredValue:
    """Record returned by the storage primitive for (key, operator)."""
    text: str
    value: str


@dataclass(frozen=True)
class ChunkedRecord:
    """Metadata returned by the chunked storage primitive for (hash, operator)."""
    chunk_count: int
    text: str = ""


@dataclass(frozen=True)
class RetryConfig:
    """Exponential backoff settings (delays in milliseconds)."""
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: int = DEFAULT_INITIAL_DELAY_MS
    max_delay: int = DEFAULT_MAX_DELAY_MS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER


@dataclass(frozen=True)
class ConfirmationConfig:
    """How many confirmations to wait for and for how long (milliseconds)."""
    count: int = DEFAULT_CONFIRMATIONS
    timeout_ms: int = DEFAULT_CONFIRMATION_TIMEOUT_MS


@dataclass
class SubmissionResult:
    """Per-batch (or merged) relay submission result. Indexes refer to the submitted list."""
    transaction_hashes: list[str] = field(default_factory=list)
    successful_indexes: list[int] = field(default_factory=list)
    failed_indexes: list[int] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)
    transactions_sent: int = 0
    transactions_failed: int = 0
    sponsor_address: Optional[str] = None

    @property
    def all_failed(self) -> bool:
        return len(self.failed_indexes) > 0 and len(self.successful_indexes) == 0

    @property
    def partially_failed(self) -> bool:
        return len(self.failed_indexes) > 0 and len(self.successful_indexes) > 0


@dataclass
class UploadResult:
    """Result of a direct (caller-paid) upload."""
    success: bool
    skipped: bool
    transactions_sent: int
    transactions_skipped: int
    transactions_failed: int
    final_hash: Optional[str] = None
    error: Optional[str] = None
    operator_address: Optional[str] = None
    storage_type: Optional[StorageStrategy] = None


@dataclass
class RelayUploadResult:
    """Result of a sponsored (relay) upload."""
    success: bool
    top_level_hash: str
    chunks_sent: int
    chunks_skipped: int
    metadata_submitted: bool
    chunk_transaction_hashes: list[str] = field(default_factory=list)
    metadata_transaction_hash: Optional[str] = None
    sponsor_address: Optional[str] = None
    errors: Optional[list[str]] = None


@dataclass
class PreviewResult:
    """Statistics about what an upload would send, without sending anything."""
    storage_type: StorageStrategy
    total_chunks: int
    already_stored_chunks: int
    need_to_store_chunks: int
    operator_address: str
    storage_key: str
    total_transactions: int
    transactions_to_send: int
    transactions_skipped: int
    metadata_needs_storage: Optional[bool] = None
