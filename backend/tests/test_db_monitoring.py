from __future__ import annotations

from sqlalchemy import create_engine, text

from rutherford.db import monitoring


def test_instrument_engine_emits_pool_telemetry(monkeypatch) -> None:
    emitted: list[tuple[str, dict[str, object]]] = []

    def record(event_name: str, **payload: object) -> None:
        emitted.append((event_name, payload))

    monkeypatch.setattr(monitoring, "_EMIT_INTERVAL", 0)
    monkeypatch.setattr(monitoring, "emit_event", record)

    engine = create_engine("sqlite:///:memory:", future=True)
    try:
        monitoring.instrument_engine(engine)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        assert emitted, "Expected telemetry emission when instrumentation is active."
        event_name, payload = emitted[0]
        assert event_name == monitoring.POOL_EVENT
        assert payload["connects"] >= 1
        assert payload["trigger"] == "connect"
    finally:
        engine.dispose()


def test_instrument_engine_is_idempotent_and_snapshots(monkeypatch) -> None:
    monkeypatch.setattr(monitoring, "emit_event", lambda *_args, **_kwargs: None)
    engine = create_engine("sqlite:///:memory:", future=True)
    try:
        monitoring.instrument_engine(engine)
        monitoring.instrument_engine(engine)
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        snapshot = monitoring.pool_snapshot(engine)
        assert snapshot["checkouts"] == 1
        assert snapshot["checkins"] == 1
        assert isinstance(snapshot["status"], str)
    finally:
        engine.dispose()
