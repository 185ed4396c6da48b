"""Crypto providers used to encrypt profiles at rest."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
from typing import Literal, Optional, Protocol, Union, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .errors import CryptoError

logger = logging.getLogger(__name__)

NO_ENCRYPTION = "none"
AES_256_GCM = "aes-256-gcm"
KEY_BYTES = 32
NONCE_BYTES = 12
TAG_BYTES = 16


class EncryptedEnvelope(BaseModel):
    """Serialized form written in place of plaintext when encryption is on."""

    model_config = ConfigDict(populate_by_name=True)

    encrypted: Literal[True] = Field(default=True, alias="_encrypted")
    version: Literal[1] = 1
    scheme: str
    iv: str
    auth_tag: str = Field(alias="authTag")
    ciphertext: str

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


@runtime_checkable
class CryptoProvider(Protocol):
    name: str

    def is_unlocked(self) -> bool:  # pragma: no cover - protocol definition
        ...

    def encrypt(self, plaintext: bytes) -> EncryptedEnvelope:  # pragma: no cover - protocol definition
        ...


class NullCrypto:
    """Provider that leaves documents in plaintext."""

    name = NO_ENCRYPTION

    def is_unlocked(self) -> bool:
        return True

    def encrypt(self, plaintext: bytes) -> EncryptedEnvelope:
        raise CryptoError("The 'none' crypto provider cannot encrypt.")


def _decode_key(key: Union[bytes, str]) -> bytes:
    if isinstance(key, str):
        try:
            key = base64.b64decode(key, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError("Encryption key must be base64 encoded.") from exc
    if len(key) != KEY_BYTES:
        raise CryptoError(f"Encryption key must be {KEY_BYTES} bytes, got {len(key)}.")
    return key


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class AesGcmCrypto:
    """AES-256-GCM provider. Starts locked until a key is supplied."""

    name = AES_256_GCM

    def __init__(self, key: Optional[Union[bytes, str]] = None) -> None:
        self._lock = threading.RLock()
        self._cipher: Optional[AESGCM] = None
        if key is not None:
            self.unlock(key)

    def unlock(self, key: Union[bytes, str]) -> None:
        cipher = AESGCM(_decode_key(key))
        with self._lock:
            self._cipher = cipher
        logger.info("Crypto provider %s unlocked", self.name)

    def lock(self) -> None:
        with self._lock:
            self._cipher = None

    def is_unlocked(self) -> bool:
        with self._lock:
            return self._cipher is not None

    def _require_cipher(self) -> AESGCM:
        with self._lock:
            cipher = self._cipher
        if cipher is None:
            raise CryptoError("Crypto provider is locked.")
        return cipher

    def encrypt(self, plaintext: bytes) -> EncryptedEnvelope:
        cipher = self._require_cipher()
        nonce = os.urandom(NONCE_BYTES)
        sealed = cipher.encrypt(nonce, plaintext, None)
        return EncryptedEnvelope(
            scheme=self.name,
            iv=_b64(nonce),
            auth_tag=_b64(sealed[-TAG_BYTES:]),
            ciphertext=_b64(sealed[:-TAG_BYTES]),
        )

    def decrypt(self, envelope: EncryptedEnvelope) -> bytes:
        if envelope.scheme != self.name:
            raise CryptoError(f"Envelope scheme {envelope.scheme!r} does not match {self.name!r}.")
        cipher = self._require_cipher()
        try:
            nonce = base64.b64decode(envelope.iv)
            sealed = base64.b64decode(envelope.ciphertext) + base64.b64decode(envelope.auth_tag)
            return cipher.decrypt(nonce, sealed, None)
        except (InvalidTag, binascii.Error, ValueError) as exc:
            raise CryptoError("Unable to decrypt envelope.") from exc


def generate_key() -> str:
    """Return a fresh base64 encoded 256-bit key."""
    return _b64(AESGCM.generate_key(bit_length=KEY_BYTES * 8))


def crypto_from_settings(settings: Settings) -> CryptoProvider:
    if settings.crypto_scheme == NO_ENCRYPTION:
        return NullCrypto()
    provider = AesGcmCrypto()
    if settings.encryption_key:
        provider.unlock(settings.encryption_key)
    else:
        logger.warning("No encryption key configured; profiles will be written in plaintext until unlocked.")
    return provider


__all__ = [
    "AES_256_GCM",
    "AesGcmCrypto",
    "CryptoProvider",
    "EncryptedEnvelope",
    "NO_ENCRYPTION",
    "NullCrypto",
    "crypto_from_settings",
    "generate_key",
]
