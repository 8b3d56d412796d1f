"""Ed25519 signing for relay session authentication and payment headers."""

import hashlib
import json
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat


def _decode_hex(value: str) -> bytes:
    value = value.strip()
    if value.startswith(('0x', '0X')):
        value = value[2:]
    return bytes.fromhex(value)


def canonical_message(obj: dict[str, Any]) -> bytes:
    """
    Serialize a message dict deterministically for signing.

    Args:
        obj: JSON-compatible message

    Returns:
        UTF-8 bytes of the sorted, whitespace-free JSON encoding
    """
    return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def address_from_public_key(public_key: bytes) -> str:
    """Derive a 20-byte 0x address from raw public key bytes."""
    return '0x' + hashlib.sha256(public_key).hexdigest()[-40:]


class Ed25519Signer:
    """
    Holds the caller's private key and signs relay messages.

    The operator address is derived from the public key, so the same key
    always writes into the same storage namespace.
    """

    def __init__(self, private_key: str):
        """
        Initialize signer.

        Args:
            private_key: 32-byte seed as hex (0x prefix optional)

        Raises:
            ValueError: If the key is not a 32-byte hex seed
        """
        try:
            seed = _decode_hex(private_key)
        except ValueError as e:
            raise ValueError("private key must be hex encoded") from e
        if len(seed) == 64:
            seed = seed[:32]
        if len(seed) != 32:
            raise ValueError("private key must be a 32-byte ed25519 seed")

        self._key = Ed25519PrivateKey.from_private_bytes(seed)
        self._public_bytes = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)

    @classmethod
    def generate(cls) -> 'Ed25519Signer':
        """Create a signer with a fresh random key."""
        key = Ed25519PrivateKey.generate()
        seed = key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return cls(seed.hex())

    @property
    def public_key(self) -> str:
        return '0x' + self._public_bytes.hex()

    @property
    def address(self) -> str:
        return address_from_public_key(self._public_bytes)

    def sign(self, message: bytes) -> str:
        """
        Sign raw message bytes.

        Returns:
            0x-prefixed hex signature
        """
        return '0x' + self._key.sign(message).hex()

    def sign_message(self, obj: dict[str, Any]) -> str:
        """Sign the canonical encoding of a message dict."""
        return self.sign(canonical_message(obj))


def verify_signature(message: bytes, signature: str, public_key: str) -> bool:
    """
    Verify an Ed25519 signature.

    Args:
        message: Signed message bytes
        signature: 0x hex signature
        public_key: 0x hex raw public key

    Returns:
        True if valid, else False
    """
    try:
        key = Ed25519PublicKey.from_public_bytes(_decode_hex(public_key))
        key.verify(_decode_hex(signature), message)
        return True
    except (InvalidSignature, ValueError):
        return False
