"""Signup orchestration: answers in, exactly one result out."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel

from .builder import SignupAnswers, build_profile, require_identity
from .crypto import CryptoProvider
from .errors import (
    GENERIC_FAILURE_MESSAGE,
    FailureReason,
    SchemaError,
    SignupError,
    USER_EXISTS_MESSAGE,
)
from .gateway import PersistenceGateway
from .profile import validate_profile
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class SignupStage(str, Enum):
    VALIDATING_INPUT = "validating_input"
    CHECKING_EXISTING = "checking_existing"
    BUILDING_DOCUMENT = "building_document"
    VALIDATING_SCHEMA = "validating_schema"
    PERSISTING = "persisting"
    LINKING_SESSION = "linking_session"
    DONE = "done"
    FAILED = "failed"


class SignupResult(BaseModel):
    success: bool
    user_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[FailureReason] = None
    stage: SignupStage = SignupStage.DONE
    failed_at: Optional[SignupStage] = None
    session_linked: bool = False

    @classmethod
    def succeeded(cls, user_id: str, *, session_linked: bool = False) -> "SignupResult":
        return cls(success=True, user_id=user_id, session_linked=session_linked)

    @classmethod
    def failed(cls, reason: FailureReason, message: str, stage: SignupStage) -> "SignupResult":
        return cls(success=False, error=message, reason=reason, stage=SignupStage.FAILED, failed_at=stage)

    @property
    def status_code(self) -> int:
        if self.success:
            return 200
        if self.reason in (FailureReason.MISSING_REQUIRED_FIELDS, FailureReason.INVALID_INPUT):
            return 400
        if self.reason is FailureReason.USER_ALREADY_EXISTS:
            return 409
        return 500

    def to_payload(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "user_id": self.user_id}
        return {"success": False, "error": self.error}


# Failures the caller can act on keep their message; everything else is opaque.
_CALLER_FACING = {
    FailureReason.MISSING_REQUIRED_FIELDS,
    FailureReason.INVALID_INPUT,
    FailureReason.USER_ALREADY_EXISTS,
}


class SignupOrchestrator:
    """Runs one signup through validation, duplicate check, build and persist."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        crypto: Optional[CryptoProvider] = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._gateway = gateway
        self._crypto = crypto
        self._clock = clock

    async def process(
        self,
        answers: Union[SignupAnswers, Mapping[str, Any]],
        session_id: Optional[str] = None,
    ) -> SignupResult:
        stage = SignupStage.VALIDATING_INPUT
        user_id: Optional[str] = None
        try:
            parsed = SignupAnswers.from_payload(answers)
            _, _, user_id = require_identity(parsed)

            stage = SignupStage.CHECKING_EXISTING
            if await self._gateway.exists(user_id):
                emit_event("signup_rejected", user_id=user_id, reason=FailureReason.USER_ALREADY_EXISTS)
                return SignupResult.failed(
                    FailureReason.USER_ALREADY_EXISTS,
                    USER_EXISTS_MESSAGE,
                    stage,
                )

            stage = SignupStage.BUILDING_DOCUMENT
            document = build_profile(parsed, now=self._clock())

            stage = SignupStage.VALIDATING_SCHEMA
            profile = validate_profile(document)

            stage = SignupStage.PERSISTING
            await self._gateway.persist(user_id, profile, self._crypto)

            stage = SignupStage.LINKING_SESSION
            linked = await self._gateway.link_session(session_id, user_id)
        except SignupError as exc:
            return self._fail(exc, stage, user_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected signup failure at %s for %s", stage.value, user_id)
            emit_event("signup_failed", user_id=user_id, stage=stage, reason=FailureReason.UNEXPECTED)
            return SignupResult.failed(FailureReason.UNEXPECTED, GENERIC_FAILURE_MESSAGE, stage)

        emit_event("signup_completed", user_id=user_id, session_linked=linked)
        logger.info("Created profile %s", user_id)
        return SignupResult.succeeded(user_id, session_linked=linked)

    def _fail(self, exc: SignupError, stage: SignupStage, user_id: Optional[str]) -> SignupResult:
        if isinstance(exc, SchemaError):
            logger.error(
                "Built profile for %s failed schema validation at %s: expected %s",
                user_id,
                exc.path,
                exc.expected,
            )
        elif exc.reason in _CALLER_FACING:
            logger.info("Signup rejected at %s: %s", stage.value, exc)
        else:
            logger.error("Signup failed at %s for %s: %s", stage.value, user_id, exc, exc_info=exc)

        if exc.reason in _CALLER_FACING:
            emit_event("signup_rejected", user_id=user_id, stage=stage, reason=exc.reason)
            return SignupResult.failed(exc.reason, exc.message, stage)
        emit_event("signup_failed", user_id=user_id, stage=stage, reason=exc.reason)
        return SignupResult.failed(exc.reason, GENERIC_FAILURE_MESSAGE, stage)


async def process_signup(
    answers: Union[SignupAnswers, Mapping[str, Any]],
    *,
    gateway: PersistenceGateway,
    crypto: Optional[CryptoProvider] = None,
    session_id: Optional[str] = None,
) -> SignupResult:
    return await SignupOrchestrator(gateway, crypto).process(answers, session_id)


__all__ = [
    "SignupOrchestrator",
    "SignupResult",
    "SignupStage",
    "process_signup",
]
