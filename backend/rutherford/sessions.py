"""Session registry injected into the signup pipeline."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol, runtime_checkable
from uuid import uuid4

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionRecord:
    session_id: str
    profile_user_id: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    data: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class SessionStore(Protocol):
    def has(self, session_id: str) -> bool:  # pragma: no cover - protocol definition
        ...

    def get(self, session_id: str) -> Optional[SessionRecord]:  # pragma: no cover - protocol definition
        ...

    def set(self, session_id: str, record: SessionRecord) -> None:  # pragma: no cover - protocol definition
        ...


class SessionStoreClosedError(RuntimeError):
    pass


class InMemorySessionStore:
    """Process-local session registry with an explicit open/close lifecycle.

    Records older than ``ttl`` are treated as unknown. They are dropped when
    read and swept out whenever a record is stored.
    A ``ttl`` of ``None`` keeps records until the store is closed.
    """

    def __init__(self, ttl: Optional[timedelta] = None) -> None:
        self._ttl = ttl
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.RLock()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "InMemorySessionStore":
        with self._lock:
            self._open = True
        return self

    def close(self) -> None:
        with self._lock:
            dropped = len(self._records)
            self._records.clear()
            self._open = False
        logger.info("Session store closed; dropped %d session(s)", dropped)

    def __enter__(self) -> "InMemorySessionStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require_open(self) -> None:
        if not self._open:
            raise SessionStoreClosedError("Session store is not open.")

    def _expired(self, record: SessionRecord) -> bool:
        return self._ttl is not None and _now() - record.created_at > self._ttl

    def create(self, session_id: Optional[str] = None, **data: Any) -> SessionRecord:
        record = SessionRecord(session_id=session_id or uuid4().hex, data=dict(data))
        self.set(record.session_id, record)
        return record

    def has(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            self._require_open()
            record = self._records.get(session_id)
            if record is None:
                return None
            if self._expired(record):
                self._records.pop(session_id, None)
                return None
            return replace(record, data=dict(record.data))

    def set(self, session_id: str, record: SessionRecord) -> None:
        with self._lock:
            self._require_open()
            self._prune_expired()
            self._records[session_id] = replace(record, session_id=session_id, data=dict(record.data))

    def _prune_expired(self) -> None:
        expired = [key for key, record in self._records.items() if self._expired(record)]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("Pruned %d expired session(s)", len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = [
    "InMemorySessionStore",
    "SessionRecord",
    "SessionStore",
    "SessionStoreClosedError",
]
