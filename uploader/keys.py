"""Storage key normalization and display helpers."""

import hashlib
import re
from urllib.parse import quote

from common.constants import STORAGE_URL_BASE
from common.exceptions import InvalidStorageKeyError

KEY_BYTES = 32

_BYTES32_PATTERN = re.compile(r'^0x[0-9a-fA-F]{64}$')


def is_bytes32_hex(key: str) -> bool:
    return bool(_BYTES32_PATTERN.match(key))


def get_storage_key_bytes(key: str) -> str:
    """
    Normalize a caller-supplied storage key into a 32-byte hex identifier.

    Keys that are already 0x-prefixed 32-byte hex are lower-cased and used
    as-is. Other keys are lower-cased; keys longer than 32 bytes are hashed,
    shorter keys are right-padded with zero bytes.

    Args:
        key: Logical storage key (e.g. "doc1")

    Returns:
        0x-prefixed 64 character hex key

    Raises:
        InvalidStorageKeyError: If key is empty
    """
    if not key:
        raise InvalidStorageKeyError("Storage key must not be empty")

    if is_bytes32_hex(key):
        return key.lower()

    raw = key.lower().encode('utf-8')
    if len(raw) > KEY_BYTES:
        return '0x' + hashlib.sha256(raw).hexdigest()
    return '0x' + raw.ljust(KEY_BYTES, b'\x00').hex()


def format_storage_key_for_display(storage_key: str) -> tuple[str, bool]:
    """
    Convert a normalized key back into readable text when possible.

    Args:
        storage_key: Key as passed by the caller or as normalized

    Returns:
        Tuple of (display_text, is_decoded). is_decoded is True only when a
        zero-padded 32-byte key was turned back into printable text.
    """
    if not is_bytes32_hex(storage_key):
        return storage_key, False

    raw = bytes.fromhex(storage_key[2:]).rstrip(b'\x00')
    if not raw:
        return storage_key, False

    try:
        text = raw.decode('utf-8')
    except UnicodeDecodeError:
        return storage_key, False

    if not text.isprintable():
        return storage_key, False
    return text, True


def generate_storage_url(operator_address: str | None, chain_id: int, storage_key: str) -> str | None:
    """
    Build the public URL under which stored content can be loaded.

    Returns:
        URL string, or None when no operator address is known
    """
    if not operator_address:
        return None
    return f"{STORAGE_URL_BASE}/{chain_id}/storage/load/{operator_address}/{quote(storage_key, safe='')}"
