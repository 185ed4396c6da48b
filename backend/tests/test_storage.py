"""Tests for file, in-memory and database profile storage."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from rutherford.config import get_settings
from rutherford.db.session import create_schema, dispose_engine, session_scope
from rutherford.errors import ProfileExistsError
from rutherford.repositories.profiles import DatabaseProfileStorage, profile_records
from rutherford.storage import FileProfileStorage, InMemoryProfileStorage, ProfileStorage


def test_file_storage_create_and_read(tmp_path: Path) -> None:
    storage = FileProfileStorage(tmp_path / "profiles")
    assert storage.read_profile("ada") is None

    storage.create_profile("ada", b'{"version": 1}')
    assert storage.read_profile("ada") == b'{"version": 1}'
    assert (tmp_path / "profiles" / "ada.json").exists()


def test_file_storage_create_refuses_existing(tmp_path: Path) -> None:
    storage = FileProfileStorage(tmp_path)
    storage.create_profile("ada", b"first")
    with pytest.raises(ProfileExistsError):
        storage.create_profile("ada", b"second")
    assert storage.read_profile("ada") == b"first"


def test_file_storage_leaves_no_temporary_files(tmp_path: Path) -> None:
    storage = FileProfileStorage(tmp_path)
    storage.create_profile("ada", b"first")
    with pytest.raises(ProfileExistsError):
        storage.create_profile("ada", b"second")
    storage.write_profile("grace", b"one")
    storage.write_profile("grace", b"two")
    assert sorted(os.listdir(tmp_path)) == ["ada.json", "grace.json"]
    assert storage.read_profile("grace") == b"two"


def test_file_storage_rejects_unsafe_ids(tmp_path: Path) -> None:
    storage = FileProfileStorage(tmp_path)
    with pytest.raises(ValueError):
        storage.write_profile("../escape", b"data")


def test_memory_storage_enforces_uniqueness() -> None:
    storage = InMemoryProfileStorage()
    assert isinstance(storage, ProfileStorage)
    storage.create_profile("ada", b"first")
    with pytest.raises(ProfileExistsError):
        storage.create_profile("ada", b"second")
    storage.write_profile("ada", b"replaced")
    assert storage.read_profile("ada") == b"replaced"
    assert len(storage) == 1


@pytest.fixture()
def database_storage(monkeypatch) -> Iterator[DatabaseProfileStorage]:
    monkeypatch.setenv("RUTHERFORD_DATABASE_URL", "sqlite://")
    get_settings.cache_clear()
    dispose_engine()
    create_schema()
    yield DatabaseProfileStorage()
    dispose_engine()
    get_settings.cache_clear()


def test_database_storage_create_and_read(database_storage: DatabaseProfileStorage) -> None:
    assert database_storage.read_profile("ada") is None
    database_storage.create_profile("ada", b'{"_encrypted": true}')
    assert database_storage.read_profile("ada") == b'{"_encrypted": true}'

    with session_scope(commit=False) as session:
        record = profile_records.get(session, "ada")
        assert record is not None and record.encrypted is True
        events = profile_records.audit_events(session, "ada")
        assert [event.event_type for event in events] == ["profile_created"]


def test_database_storage_unique_create(database_storage: DatabaseProfileStorage) -> None:
    database_storage.create_profile("ada", b"first")
    with pytest.raises(ProfileExistsError):
        database_storage.create_profile("ada", b"second")
    assert database_storage.read_profile("ada") == b"first"


def test_database_storage_write_replaces(database_storage: DatabaseProfileStorage) -> None:
    database_storage.write_profile("grace", b"one")
    database_storage.write_profile("grace", b"two")
    assert database_storage.read_profile("grace") == b"two"
