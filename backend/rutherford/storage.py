"""Storage providers for serialized profile documents."""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

from .config import Settings
from .errors import ProfileExistsError

logger = logging.getLogger(__name__)

_SAFE_USER_ID = re.compile(r"^[a-z0-9_]+$")


@runtime_checkable
class ProfileStorage(Protocol):
    """Minimal contract the persistence gateway relies on."""

    def read_profile(self, user_id: str) -> Optional[bytes]:  # pragma: no cover - protocol definition
        ...

    def write_profile(self, user_id: str, data: bytes) -> None:  # pragma: no cover - protocol definition
        ...


@runtime_checkable
class UniqueProfileStorage(ProfileStorage, Protocol):
    """Storage that can refuse to overwrite an existing profile."""

    def create_profile(self, user_id: str, data: bytes) -> None:  # pragma: no cover - protocol definition
        """Store ``data`` only if nothing exists for ``user_id``; raise ProfileExistsError otherwise."""
        ...


def _require_safe_id(user_id: str) -> str:
    if not _SAFE_USER_ID.match(user_id or ""):
        raise ValueError(f"Refusing to store profile under unsafe id {user_id!r}.")
    return user_id


class InMemoryProfileStorage:
    """Process-local storage, mostly for tests and the ``memory`` mode."""

    def __init__(self) -> None:
        self._profiles: Dict[str, bytes] = {}
        self._lock = threading.RLock()

    def read_profile(self, user_id: str) -> Optional[bytes]:
        with self._lock:
            return self._profiles.get(user_id)

    def write_profile(self, user_id: str, data: bytes) -> None:
        with self._lock:
            self._profiles[_require_safe_id(user_id)] = bytes(data)

    def create_profile(self, user_id: str, data: bytes) -> None:
        with self._lock:
            if user_id in self._profiles:
                raise ProfileExistsError(user_id)
            self._profiles[_require_safe_id(user_id)] = bytes(data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)


class FileProfileStorage:
    """One ``<user_id>.json`` file per profile under ``root``.

    Writes go to a temporary sibling first so readers never observe a partial
    document.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, user_id: str) -> Path:
        return self._root / f"{_require_safe_id(user_id)}.json"

    def read_profile(self, user_id: str) -> Optional[bytes]:
        path = self.path_for(user_id)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def _write_temp(self, data: bytes) -> Path:
        self._root.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(dir=self._root, prefix=".profile-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
        except BaseException:
            Path(name).unlink(missing_ok=True)
            raise
        return Path(name)

    def write_profile(self, user_id: str, data: bytes) -> None:
        target = self.path_for(user_id)
        with self._lock:
            temp = self._write_temp(data)
            try:
                os.replace(temp, target)
            except BaseException:
                temp.unlink(missing_ok=True)
                raise

    def create_profile(self, user_id: str, data: bytes) -> None:
        target = self.path_for(user_id)
        with self._lock:
            temp = self._write_temp(data)
            try:
                # link() refuses to overwrite, which makes the create atomic across processes.
                os.link(temp, target)
            except FileExistsError as exc:
                raise ProfileExistsError(user_id) from exc
            finally:
                temp.unlink(missing_ok=True)


def storage_from_settings(settings: Settings) -> ProfileStorage:
    if settings.storage_mode == "memory":
        return InMemoryProfileStorage()
    if settings.storage_mode == "database":
        from .repositories.profiles import DatabaseProfileStorage

        return DatabaseProfileStorage()
    logger.info("Using file profile storage at %s", settings.data_dir)
    return FileProfileStorage(settings.data_dir)


__all__ = [
    "FileProfileStorage",
    "InMemoryProfileStorage",
    "ProfileStorage",
    "UniqueProfileStorage",
    "storage_from_settings",
]
