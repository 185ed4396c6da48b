"""Error taxonomy shared by the signup pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Stable, machine-distinguishable signup failure reasons."""

    MISSING_REQUIRED_FIELDS = "missing_required_fields"
    INVALID_INPUT = "invalid_input"
    USER_ALREADY_EXISTS = "user_already_exists"
    SCHEMA_INVALID = "schema_invalid"
    STORAGE_FAILURE = "storage_failure"
    CRYPTO_FAILURE = "crypto_failure"
    UNEXPECTED = "unexpected"


MISSING_FIELDS_MESSAGE = "Name and username (or GitHub ID) are required"
USER_EXISTS_MESSAGE = "User already exists"
GENERIC_FAILURE_MESSAGE = "Unable to create profile"


class SignupError(Exception):
    """Base class for failures raised inside the signup pipeline."""

    reason: FailureReason = FailureReason.UNEXPECTED
    status_code: int = 500
    public_message: str = GENERIC_FAILURE_MESSAGE

    @property
    def message(self) -> str:
        return self.public_message


class InputError(SignupError):
    """Missing or invalid required answers; the caller should re-prompt."""

    reason = FailureReason.MISSING_REQUIRED_FIELDS
    status_code = 400

    def __init__(self, message: str = MISSING_FIELDS_MESSAGE, *, invalid: bool = False) -> None:
        super().__init__(message)
        self.public_message = message
        if invalid:
            self.reason = FailureReason.INVALID_INPUT


class DuplicateUserError(SignupError):
    reason = FailureReason.USER_ALREADY_EXISTS
    status_code = 409
    public_message = USER_EXISTS_MESSAGE

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Profile '{user_id}' already exists.")
        self.user_id = user_id


class SchemaError(SignupError):
    """A document failed schema validation.

    Raised for builder output this indicates a bug, so the orchestrator logs it
    loudly and reports a generic failure.
    """

    reason = FailureReason.SCHEMA_INVALID

    def __init__(self, path: str, expected: str, detail: Optional[str] = None) -> None:
        message = f"{path or '<root>'}: expected {expected}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.path = path
        self.expected = expected
        self.detail = detail


class StorageError(SignupError):
    reason = FailureReason.STORAGE_FAILURE


class CryptoError(SignupError):
    reason = FailureReason.CRYPTO_FAILURE


class ProfileExistsError(Exception):
    """Raised by storage providers when a unique create hits an existing id."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Profile '{user_id}' is already stored.")
        self.user_id = user_id


__all__ = [
    "CryptoError",
    "DuplicateUserError",
    "FailureReason",
    "GENERIC_FAILURE_MESSAGE",
    "InputError",
    "MISSING_FIELDS_MESSAGE",
    "ProfileExistsError",
    "SchemaError",
    "SignupError",
    "StorageError",
    "USER_EXISTS_MESSAGE",
]
