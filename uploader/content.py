"""
Content classification, chunking and metadata document handling.

Content is carried as text end to end. Binary files are turned into a
base64 data URI first so they survive a text-only storage primitive.
"""

import base64
import gzip
import re
from dataclasses import dataclass
from typing import Optional

from common.constants import (
    BINARY_DETECTION_WINDOW,
    CHUNKED_STORAGE_SEGMENT_BYTES,
    MAX_CHUNKS,
    OPTIMAL_CHUNK_SIZE,
    REFERENCE_VERSION,
    STRATEGY_THRESHOLD_BYTES,
)
from common.exceptions import ContentTooLargeError
from common.hashing import compute_content_hash, compute_top_level_hash
from common.logging_config import get_logger
from common.types import StorageStrategy

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

_DATA_URI_PATTERN = re.compile(r'^data:([\w.+-]+/[\w.+-]+);base64,')
_REFERENCE_PATTERN = re.compile(
    r'<net\s+k="([^"]+)"\s+v="([^"]+)"(?:\s+i="([^"]+)")?(?:\s+o="([^"]+)")?(?:\s+s="([^"]+)")?\s*/>'
)

# (prefix, mime) pairs checked against the start of the raw bytes
_MAGIC_PREFIXES = (
    (b'%PDF-', 'application/pdf'),
    (b'\x89PNG\r\n\x1a\n', 'image/png'),
    (b'\xff\xd8\xff', 'image/jpeg'),
    (b'GIF87a', 'image/gif'),
    (b'GIF89a', 'image/gif'),
    (b'ID3', 'audio/mpeg'),
    (b'PK\x03\x04', 'application/zip'),
)


@dataclass(frozen=True)
class EncodedContent:
    """File content ready for storage as text."""
    text: str
    is_binary: bool
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class ChunkReference:
    """One parsed `<net ... />` reference from a metadata document."""
    hash: str
    version: str
    index: Optional[int] = None
    operator: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class ChunkPlan:
    """
    Chunked representation of one piece of content.

    Attributes:
        chunks: Content segments in order
        chunk_hashes: Content hash of each segment (same order)
        metadata: Metadata document referencing every chunk
        top_level_hash: Hash identifying the ordered chunk set
    """
    chunks: tuple[str, ...]
    chunk_hashes: tuple[str, ...]
    metadata: str
    top_level_hash: str


def is_binary(data: bytes, window: int = BINARY_DETECTION_WINDOW) -> bool:
    """
    Check a bounded prefix of data for null or control bytes.

    Tab, newline and carriage return are treated as text.
    """
    for byte in data[:window]:
        if byte == 0 or (byte < 32 and byte not in (9, 10, 13)):
            return True
    return False


def detect_mime_type(data: bytes) -> Optional[str]:
    """
    Detect a MIME type from file signature bytes.

    Args:
        data: Raw file bytes

    Returns:
        MIME type string, or None if the type is not recognized
    """
    if not data:
        return None

    for prefix, mime in _MAGIC_PREFIXES:
        if data.startswith(prefix):
            return mime

    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'image/webp'

    head = data[:200].decode('latin-1')
    if '<svg' in head or '<SVG' in head:
        return 'image/svg+xml'
    lowered = head.lower()
    if '<html' in lowered or '<!doctype' in lowered:
        return 'text/html'

    if len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xF0) == 0xF0:
        return 'audio/mpeg'

    if b'ftyp' in data[:40]:
        return 'video/mp4'

    if data[:10].strip().startswith((b'{', b'[')):
        return 'application/json'

    return None


def encode_content(data: bytes) -> EncodedContent:
    """
    Turn raw file bytes into storable text.

    Text is decoded as UTF-8. Binary data becomes a base64 data URI tagged
    with its detected MIME type (application/octet-stream when unknown).
    """
    if not is_binary(data):
        try:
            return EncodedContent(text=data.decode('utf-8'), is_binary=False)
        except UnicodeDecodeError:
            logger.debug("Content is not valid UTF-8, encoding as binary")

    mime_type = detect_mime_type(data) or DEFAULT_MIME_TYPE
    encoded = base64.b64encode(data).decode('ascii')
    return EncodedContent(text=f"data:{mime_type};base64,{encoded}", is_binary=True, mime_type=mime_type)


def decode_content(text: str) -> bytes:
    """
    Reverse encode_content.

    Args:
        text: Stored text (plain text or base64 data URI)

    Returns:
        Original bytes
    """
    match = _DATA_URI_PATTERN.match(text)
    if match:
        return base64.b64decode(text[match.end():])
    return text.encode('utf-8')


def contains_references(text: str) -> bool:
    return _REFERENCE_PATTERN.search(text) is not None


def parse_references(metadata: str) -> list[ChunkReference]:
    """
    Parse chunk references from a metadata document.

    Format: <net k="hash" v="0.0.1" i="0" o="0xoperator" />
    """
    references = []
    for match in _REFERENCE_PATTERN.finditer(metadata):
        hash_value, version, index, operator, source = match.groups()
        references.append(ChunkReference(
            hash=hash_value,
            version=version,
            index=int(index) if index is not None else None,
            operator=operator.lower() if operator else None,
            source=source,
        ))
    return references


def classify(content: str, threshold: int = STRATEGY_THRESHOLD_BYTES) -> StorageStrategy:
    """
    Select the storage strategy for content.

    Content up to and including the threshold is stored normally. Larger
    content, or content that already carries chunk references, is chunked.
    """
    if len(content) > threshold or contains_references(content):
        return StorageStrategy.CHUNKED
    return StorageStrategy.NORMAL


def chunk_content(content: str, chunk_size: int = OPTIMAL_CHUNK_SIZE) -> list[str]:
    """Split content into consecutive segments of at most chunk_size characters."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [content[i:i + chunk_size] for i in range(0, len(content), chunk_size)]


def compress_to_segments(chunk: str, segment_bytes: int = CHUNKED_STORAGE_SEGMENT_BYTES) -> list[str]:
    """
    Compress a chunk and split it into hex segments for a chunk record.

    Args:
        chunk: Content segment
        segment_bytes: Maximum compressed bytes per segment

    Returns:
        List of 0x-prefixed hex strings (at least one)
    """
    compressed = gzip.compress(chunk.encode('utf-8'), mtime=0)
    segments = [
        '0x' + compressed[i:i + segment_bytes].hex()
        for i in range(0, len(compressed), segment_bytes)
    ]
    return segments or ['0x']


def assemble_chunks(segments: list[str]) -> str:
    """
    Reassemble and decompress the segments of a chunk record.

    Raises:
        ValueError: If the segments do not hold gzip data
    """
    raw = b''.join(hex_to_bytes(segment) for segment in segments)
    try:
        return gzip.decompress(raw).decode('utf-8')
    except (OSError, EOFError, UnicodeDecodeError) as e:
        raise ValueError(f"Failed to decompress chunked data: {e}") from e


def generate_metadata(chunk_hashes: list[str], operator: str, historical_index: int = 0) -> str:
    """
    Build the metadata document referencing chunks stored under operator.

    Returns:
        Concatenated <net ... /> references in chunk order
    """
    operator = operator.lower()
    return ''.join(
        f'<net k="{chunk_hash}" v="{REFERENCE_VERSION}" i="{historical_index}" o="{operator}" />'
        for chunk_hash in chunk_hashes
    )


def prepare_chunks(content: str, operator: str, chunk_size: int = OPTIMAL_CHUNK_SIZE) -> ChunkPlan:
    """
    Chunk content, hash each chunk and build its metadata document.

    Args:
        content: Content text
        operator: Operator whose namespace will hold the chunks
        chunk_size: Characters per chunk

    Returns:
        ChunkPlan for the content

    Raises:
        ValueError: If content is empty
        ContentTooLargeError: If more than MAX_CHUNKS chunks are needed
    """
    chunks = chunk_content(content, chunk_size)
    if not chunks:
        raise ValueError("No chunks generated: content is empty")
    if len(chunks) > MAX_CHUNKS:
        raise ContentTooLargeError(
            f"Too many chunks: {len(chunks)} exceeds maximum of {MAX_CHUNKS}"
        )

    chunk_hashes = [compute_content_hash(chunk) for chunk in chunks]
    metadata = generate_metadata(chunk_hashes, operator)

    logger.debug(f"Prepared {len(chunks)} chunks [chunk_size={chunk_size}, operator={operator}]")
    return ChunkPlan(
        chunks=tuple(chunks),
        chunk_hashes=tuple(chunk_hashes),
        metadata=metadata,
        top_level_hash=compute_top_level_hash(chunk_hashes),
    )


def text_to_hex(text: str) -> str:
    """Encode text as 0x-prefixed hex of its UTF-8 bytes."""
    return '0x' + text.encode('utf-8').hex()


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith(('0x', '0X')) else value)
