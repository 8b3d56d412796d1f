"""Tests for Ed25519 signing helpers."""

import pytest

from common.signing import Ed25519Signer, address_from_public_key, canonical_message, verify_signature


def test_canonical_message_is_order_independent():
    assert canonical_message({'b': 1, 'a': [1, 2]}) == canonical_message({'a': [1, 2], 'b': 1})
    assert canonical_message({'a': 1}) == b'{"a":1}'


def test_sign_and_verify():
    signer = Ed25519Signer.generate()
    message = {'operatorAddress': signer.address, 'expiresAt': 123}

    signature = signer.sign_message(message)

    assert verify_signature(canonical_message(message), signature, signer.public_key)
    assert not verify_signature(canonical_message({**message, 'expiresAt': 124}), signature, signer.public_key)


def test_same_seed_same_address():
    seed = '0x' + '07' * 32
    a, b = Ed25519Signer(seed), Ed25519Signer(seed[2:])

    assert a.address == b.address
    assert a.address == address_from_public_key(bytes.fromhex(a.public_key[2:]))
    assert len(a.address) == 42


@pytest.mark.parametrize('bad_key', ['zz', '0x1234'])
def test_invalid_private_key(bad_key):
    with pytest.raises(ValueError):
        Ed25519Signer(bad_key)


def test_verify_rejects_malformed_signature():
    signer = Ed25519Signer.generate()
    assert not verify_signature(b'msg', '0xnothex', signer.public_key)
