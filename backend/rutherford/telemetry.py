"""Signup and storage telemetry.

Events are fanned out to in-process listeners and logged as one
``TELEMETRY {json}`` line each. Only the event names below are accepted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, FrozenSet, List, Literal, Optional, Tuple, get_args

logger = logging.getLogger("rutherford.telemetry")

EventName = Literal["signup_completed", "signup_rejected", "signup_failed", "profile_db_pool"]
EVENT_NAMES: FrozenSet[str] = frozenset(get_args(EventName))


@dataclass(frozen=True)
class TelemetryEvent:
    name: EventName
    payload: Dict[str, Any]

    @property
    def user_id(self) -> Optional[str]:
        return self.payload.get("user_id")


Listener = Callable[[TelemetryEvent], None]

# Each listener is paired with the event names it wants; ``None`` means all of them.
_listeners: List[Tuple[Listener, Optional[FrozenSet[str]]]] = []
_lock = RLock()


def register_listener(listener: Listener, *, events: Optional[List[EventName]] = None) -> None:
    """Subscribe ``listener`` to every event, or only to ``events``."""
    wanted = frozenset(events) if events is not None else None
    if wanted is not None and not wanted <= EVENT_NAMES:
        raise ValueError(f"Unknown telemetry events: {sorted(wanted - EVENT_NAMES)}")
    with _lock:
        _listeners.append((listener, wanted))


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: EventName, **fields: Any) -> None:
    if name not in EVENT_NAMES:
        raise ValueError(f"Unknown telemetry event {name!r}")
    # Stage and reason enums travel as their wire values.
    payload = {key: value.value if isinstance(value, Enum) else value for key, value in fields.items()}
    event = TelemetryEvent(name=name, payload=payload)

    with _lock:
        targets = [listener for listener, wanted in _listeners if wanted is None or name in wanted]

    for listener in targets:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, sort_keys=True))


__all__ = [
    "EVENT_NAMES",
    "EventName",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
