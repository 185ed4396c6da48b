"""Connection pool telemetry for the profile database."""

from __future__ import annotations

import os
import time
import weakref
from dataclasses import asdict, dataclass
from typing import Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..telemetry import EventName, emit_event

POOL_EVENT: EventName = "profile_db_pool"


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    invalidations: int = 0
    last_emit: float = 0.0

    def public(self) -> Dict[str, int]:
        counters = asdict(self)
        counters.pop("last_emit")
        return counters


_COUNTERS: "weakref.WeakKeyDictionary[Engine, PoolCounters]" = weakref.WeakKeyDictionary()
_EMIT_INTERVAL = float(os.getenv("RUTHERFORD_DB_TELEMETRY_INTERVAL", "30"))


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # pragma: no cover
        return f"unavailable: {exc}"


def instrument_engine(engine: Engine) -> None:
    """Count pool activity for ``engine`` and periodically emit it as telemetry."""
    if engine in _COUNTERS:
        return
    counters = PoolCounters()
    _COUNTERS[engine] = counters

    def bump(field: str, trigger: str) -> None:
        setattr(counters, field, getattr(counters, field) + 1)
        now = time.time()
        if _EMIT_INTERVAL > 0 and now - counters.last_emit < _EMIT_INTERVAL:
            return
        counters.last_emit = now
        emit_event(POOL_EVENT, trigger=trigger, status=_pool_status(engine), **counters.public())

    event.listen(engine, "connect", lambda *_: bump("connects", "connect"))
    event.listen(engine, "checkout", lambda *_: bump("checkouts", "checkout"))
    event.listen(engine, "checkin", lambda *_: bump("checkins", "checkin"))
    event.listen(engine, "invalidate", lambda *_: bump("invalidations", "invalidate"))


def pool_snapshot(engine: Engine) -> Dict[str, object]:
    counters = _COUNTERS.get(engine, PoolCounters())
    return {"status": _pool_status(engine), **counters.public()}


__all__ = [
    "POOL_EVENT",
    "instrument_engine",
    "pool_snapshot",
]
