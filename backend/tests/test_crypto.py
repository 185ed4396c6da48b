"""Tests for the crypto providers."""

from __future__ import annotations

import base64
import json

import pytest

from rutherford.config import Settings
from rutherford.crypto import (
    AesGcmCrypto,
    EncryptedEnvelope,
    NullCrypto,
    crypto_from_settings,
    generate_key,
)
from rutherford.errors import CryptoError


def test_aes_gcm_round_trip() -> None:
    crypto = AesGcmCrypto(generate_key())
    envelope = crypto.encrypt(b'{"version": 1}')

    assert envelope.scheme == "aes-256-gcm"
    assert len(base64.b64decode(envelope.iv)) == 12
    assert len(base64.b64decode(envelope.auth_tag)) == 16
    assert crypto.decrypt(envelope) == b'{"version": 1}'


def test_envelope_json_uses_wire_names() -> None:
    envelope = AesGcmCrypto(generate_key()).encrypt(b"secret")
    payload = json.loads(envelope.to_json())
    assert payload["_encrypted"] is True
    assert payload["version"] == 1
    assert set(payload) == {"_encrypted", "version", "scheme", "iv", "authTag", "ciphertext"}
    assert EncryptedEnvelope.model_validate(payload) == envelope


def test_locked_provider_refuses_to_encrypt() -> None:
    crypto = AesGcmCrypto()
    assert not crypto.is_unlocked()
    with pytest.raises(CryptoError):
        crypto.encrypt(b"data")

    crypto.unlock(generate_key())
    assert crypto.is_unlocked()
    crypto.lock()
    assert not crypto.is_unlocked()


def test_tampered_envelope_fails_to_decrypt() -> None:
    crypto = AesGcmCrypto(generate_key())
    envelope = crypto.encrypt(b"payload")
    tampered = envelope.model_copy(update={"auth_tag": base64.b64encode(b"\x00" * 16).decode()})
    with pytest.raises(CryptoError):
        crypto.decrypt(tampered)


@pytest.mark.parametrize("key", ["not base64!!", base64.b64encode(b"short").decode(), b"x" * 31])
def test_bad_keys_are_rejected(key) -> None:
    with pytest.raises(CryptoError):
        AesGcmCrypto(key)


def test_null_crypto_is_the_none_scheme() -> None:
    crypto = NullCrypto()
    assert crypto.name == "none"
    assert crypto.is_unlocked()
    with pytest.raises(CryptoError):
        crypto.encrypt(b"data")


def test_crypto_from_settings() -> None:
    assert isinstance(crypto_from_settings(Settings(RUTHERFORD_CRYPTO_SCHEME="none")), NullCrypto)

    locked = crypto_from_settings(Settings(RUTHERFORD_CRYPTO_SCHEME="aes-256-gcm"))
    assert isinstance(locked, AesGcmCrypto) and not locked.is_unlocked()

    unlocked = crypto_from_settings(
        Settings(RUTHERFORD_CRYPTO_SCHEME="aes-256-gcm", RUTHERFORD_ENCRYPTION_KEY=generate_key())
    )
    assert unlocked.is_unlocked()
