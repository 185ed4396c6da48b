"""Database-backed profile repository."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import PersistenceAuditEventModel, ProfileRecordModel
from ..db.session import session_scope
from ..errors import ProfileExistsError

logger = logging.getLogger(__name__)


def _normalize_user_id(user_id: str) -> str:
    normalized = user_id.strip()
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


def _looks_encrypted(data: bytes) -> bool:
    try:
        payload = json.loads(data)
    except ValueError:
        return False
    return isinstance(payload, dict) and payload.get("_encrypted") is True


class ProfileRecordRepository:
    """Session-scoped helpers around :class:`ProfileRecordModel`."""

    def get(self, session: Session, user_id: str) -> ProfileRecordModel | None:
        stmt = select(ProfileRecordModel).where(ProfileRecordModel.user_id == _normalize_user_id(user_id))
        return session.execute(stmt).scalar_one_or_none()

    def create(self, session: Session, user_id: str, data: bytes) -> ProfileRecordModel:
        normalized = _normalize_user_id(user_id)
        model = ProfileRecordModel(user_id=normalized, payload=data, encrypted=_looks_encrypted(data))
        session.add(model)
        try:
            session.flush()
        except IntegrityError as exc:
            raise ProfileExistsError(normalized) from exc
        self._record_audit(session, normalized, "profile_created", {"encrypted": model.encrypted})
        return model

    def replace(self, session: Session, user_id: str, data: bytes) -> ProfileRecordModel:
        model = self.get(session, user_id)
        if model is None:
            return self.create(session, user_id, data)
        model.payload = data
        model.encrypted = _looks_encrypted(data)
        session.flush()
        self._record_audit(session, model.user_id, "profile_replaced", {"encrypted": model.encrypted})
        return model

    def audit_events(self, session: Session, user_id: str, limit: int = 50) -> list[PersistenceAuditEventModel]:
        stmt = (
            select(PersistenceAuditEventModel)
            .where(PersistenceAuditEventModel.user_id == _normalize_user_id(user_id))
            .order_by(PersistenceAuditEventModel.created_at.desc())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())

    def _record_audit(self, session: Session, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        session.add(
            PersistenceAuditEventModel(
                user_id=user_id,
                event_type=event_type,
                payload=payload,
                actor="system",
            )
        )


profile_records = ProfileRecordRepository()


class DatabaseProfileStorage:
    """:class:`~rutherford.storage.ProfileStorage` over the configured database."""

    def __init__(self, repository: Optional[ProfileRecordRepository] = None) -> None:
        self._repository = repository or profile_records

    def read_profile(self, user_id: str) -> Optional[bytes]:
        with session_scope(commit=False) as session:
            model = self._repository.get(session, user_id)
            return bytes(model.payload) if model is not None else None

    def write_profile(self, user_id: str, data: bytes) -> None:
        with session_scope() as session:
            self._repository.replace(session, user_id, data)

    def create_profile(self, user_id: str, data: bytes) -> None:
        try:
            with session_scope() as session:
                self._repository.create(session, user_id, data)
        except IntegrityError as exc:
            # Some backends only report the unique violation at commit time.
            raise ProfileExistsError(user_id) from exc


__all__ = ["DatabaseProfileStorage", "ProfileRecordRepository", "profile_records"]
