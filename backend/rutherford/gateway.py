"""Persistence gateway between the signup pipeline and its collaborators."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional, Protocol, Union

from .crypto import NO_ENCRYPTION, CryptoProvider
from .errors import CryptoError, DuplicateUserError, ProfileExistsError, StorageError
from .profile import HotContext
from .sessions import SessionStore
from .storage import ProfileStorage, UniqueProfileStorage

logger = logging.getLogger(__name__)


def serialize_document(document: Union[HotContext, Mapping[str, Any]]) -> bytes:
    """Canonical byte encoding of a profile document (2-space indented JSON)."""
    if isinstance(document, HotContext):
        document = document.to_document()
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


class DocumentEncoding(Protocol):
    name: str

    def encode(self, serialized: bytes) -> bytes:  # pragma: no cover - protocol definition
        ...


class PlaintextEncoding:
    name = "plaintext"

    def encode(self, serialized: bytes) -> bytes:
        return serialized


class EncryptedEncoding:
    name = "encrypted"

    def __init__(self, crypto: CryptoProvider) -> None:
        self._crypto = crypto

    def encode(self, serialized: bytes) -> bytes:
        try:
            envelope = self._crypto.encrypt(serialized)
        except CryptoError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise CryptoError(f"{self._crypto.name} encryption failed: {exc}") from exc
        return envelope.to_json().encode("utf-8")


def select_encoding(crypto: Optional[CryptoProvider]) -> DocumentEncoding:
    """Encrypt only when the provider is unlocked and is not the ``none`` scheme."""
    if crypto is None or crypto.name == NO_ENCRYPTION or not crypto.is_unlocked():
        return PlaintextEncoding()
    return EncryptedEncoding(crypto)


class ProfileWriter(Protocol):
    name: str

    def write(self, user_id: str, payload: bytes) -> None:  # pragma: no cover - protocol definition
        ...


class UniqueCreateWriter:
    """Writes through ``create_profile``, so a concurrent duplicate loses at storage."""

    name = "unique-create"

    def __init__(self, storage: UniqueProfileStorage) -> None:
        self._storage = storage

    def write(self, user_id: str, payload: bytes) -> None:
        self._storage.create_profile(user_id, payload)


class OverwriteWriter:
    """Plain ``write_profile``; only the prior existence check guards duplicates."""

    name = "overwrite"

    def __init__(self, storage: ProfileStorage) -> None:
        self._storage = storage

    def write(self, user_id: str, payload: bytes) -> None:
        self._storage.write_profile(user_id, payload)


def select_writer(storage: ProfileStorage) -> ProfileWriter:
    """Use unique creates whenever the storage offers them."""
    if isinstance(storage, UniqueProfileStorage):
        return UniqueCreateWriter(storage)
    logger.warning(
        "%s has no create_profile; concurrent signups for one id may overwrite each other",
        type(storage).__name__,
    )
    return OverwriteWriter(storage)


class PersistenceGateway:
    """Existence checks, (optionally encrypted) writes and session linking.

    Storage and session collaborators are synchronous; their calls run in a
    worker thread so the pipeline can await them.
    """

    def __init__(self, storage: ProfileStorage, sessions: Optional[SessionStore] = None) -> None:
        self._storage = storage
        self._writer = select_writer(storage)
        self._sessions = sessions

    @property
    def storage(self) -> ProfileStorage:
        return self._storage

    @property
    def writer(self) -> ProfileWriter:
        return self._writer

    async def exists(self, user_id: str) -> bool:
        try:
            existing = await asyncio.to_thread(self._storage.read_profile, user_id)
        except Exception as exc:  # noqa: BLE001
            raise StorageError(f"Existence check failed for {user_id}: {exc}") from exc
        return existing is not None

    async def persist(
        self,
        user_id: str,
        document: Union[HotContext, Mapping[str, Any]],
        crypto: Optional[CryptoProvider],
    ) -> None:
        serialized = serialize_document(document)
        encoding = select_encoding(crypto)
        payload = encoding.encode(serialized)
        try:
            await asyncio.to_thread(self._writer.write, user_id, payload)
        except ProfileExistsError as exc:
            raise DuplicateUserError(user_id) from exc
        except Exception as exc:  # noqa: BLE001
            raise StorageError(f"Writing profile {user_id} failed: {exc}") from exc
        logger.info(
            "Stored profile %s (%s, %s, %d bytes)", user_id, encoding.name, self._writer.name, len(payload)
        )

    async def link_session(self, session_id: Optional[str], user_id: str) -> bool:
        """Point a tracked session at ``user_id``. Never raises."""
        sessions = self._sessions
        if not session_id or sessions is None:
            return False
        try:
            return await asyncio.to_thread(_link_session, sessions, session_id, user_id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to link session %s to profile %s", session_id, user_id)
            return False


def _link_session(sessions: SessionStore, session_id: str, user_id: str) -> bool:
    if not sessions.has(session_id):
        logger.debug("Session %s is not tracked; skipping link", session_id)
        return False
    record = sessions.get(session_id)
    if record is None:
        return False
    record.profile_user_id = user_id
    sessions.set(session_id, record)
    return True


__all__ = [
    "DocumentEncoding",
    "EncryptedEncoding",
    "OverwriteWriter",
    "PersistenceGateway",
    "PlaintextEncoding",
    "ProfileWriter",
    "UniqueCreateWriter",
    "select_encoding",
    "select_writer",
    "serialize_document",
]
