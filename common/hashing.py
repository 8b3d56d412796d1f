"""Provides content hashing helpers for chunk identifiers and storage keys."""

import hashlib


def compute_content_hash(data: bytes | str) -> str:
    """
    Compute the 0x-prefixed SHA-256 hash of data.

    Args:
        data: Bytes or text to hash (text is UTF-8 encoded)

    Returns:
        0x-prefixed 64 character hex digest
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return '0x' + hashlib.sha256(data).hexdigest()


def compute_top_level_hash(chunk_hashes: list[str]) -> str:
    """
    Compute the hash identifying an ordered set of chunks.

    Args:
        chunk_hashes: Chunk hashes in content order

    Returns:
        0x-prefixed hex digest of the concatenated hashes
    """
    return compute_content_hash(''.join(chunk_hashes))


def verify_content_hash(data: bytes | str, expected: str) -> bool:
    """
    Verify that data hashes to the expected identifier.

    Args:
        data: Bytes or text to verify
        expected: Expected 0x-prefixed digest

    Returns:
        True if the hash matches (case-insensitive), False otherwise
    """
    return compute_content_hash(data) == expected.lower()
