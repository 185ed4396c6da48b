"""Build hot-context profile documents from onboarding answers."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from .errors import InputError
from .identifiers import derive_org_id, derive_user_id, normalize_key_refs
from .profile import PROFILE_VERSION

GENESIS_MARKER = "genesis"
GENESIS_PREVIOUS_HASH = "0" * 64
INDEPENDENT_ORG = "independent"
DEFAULT_ORG_ROLE = "member"
DEFAULT_TIMEZONE = "UTC"

DEFAULT_MAX_PARALLEL = 3
REQUIRE_APPROVAL_ACTIONS = ("git_push", "destructive_operations", "external_api_calls", "file_delete")
AUTONOMOUS_ACTIONS = ("file_read", "file_write", "git_commit", "code_execution_sandbox")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    return value


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class SignupAnswers(BaseModel):
    """Flat answer set produced by the onboarding conversation."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    github_id: Optional[str] = None
    username: Optional[str] = None
    roles: List[str] = Field(default_factory=list)
    org_name: Optional[str] = None
    org_role: Optional[str] = None
    style: List[str] = Field(default_factory=list)
    key_refs: List[Any] = Field(default_factory=list)
    heroes: List[str] = Field(default_factory=list)
    planning_mode: Literal["critical", "important", "optional"] = "important"
    verbosity: Literal["minimal", "concise", "detailed"] = "concise"
    emoji: bool = False

    @field_validator("name", "github_id", "username", "org_name", "org_role", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("roles", "style", "heroes", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[str]:
        return _string_list(value)

    @field_validator("key_refs", mode="before")
    @classmethod
    def _coerce_key_refs(cls, value: Any) -> List[Any]:
        if isinstance(value, str):
            return [value]
        if not isinstance(value, (list, tuple)):
            return []
        return list(value)

    @field_validator("planning_mode", "verbosity", mode="before")
    @classmethod
    def _default_blank_choice(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("emoji", mode="before")
    @classmethod
    def _coerce_emoji(cls, value: Any) -> bool:
        # Forms post checkboxes as the string "true".
        return value is True or value == "true"

    @property
    def identifier(self) -> Optional[str]:
        return self.github_id or self.username

    @classmethod
    def from_payload(cls, payload: Union["SignupAnswers", Mapping[str, Any]]) -> "SignupAnswers":
        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, Mapping):
            raise InputError("Signup answers must be an object", invalid=True)
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "answers"
            raise InputError(f"Invalid answer for {field}: {first.get('msg')}", invalid=True) from exc


def require_identity(answers: SignupAnswers) -> Tuple[str, str, str]:
    """Return ``(name, identifier, user_id)`` or raise :class:`InputError`."""
    identifier = answers.identifier
    if not answers.name or not identifier:
        raise InputError()
    user_id = derive_user_id(identifier)
    if not user_id:
        raise InputError()
    return answers.name, identifier, user_id


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compute_genesis_hash(timestamp: str, user_id: str) -> str:
    seed = f"{GENESIS_MARKER}:{timestamp}:{user_id}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


def chain_forward(previous_hash: str, session_count: int, content: Union[str, bytes]) -> str:
    """Next link in the identity-continuity chain.

    ``sha256(previous_hash + session_count + sha256(content))``, all hex.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    content_hash = hashlib.sha256(content).hexdigest()
    material = f"{previous_hash}{session_count}{content_hash}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def build_organizations(org_name: Optional[str], org_role: Optional[str]) -> List[Dict[str, str]]:
    if not org_name or org_name.lower() == INDEPENDENT_ORG:
        return []
    return [
        {
            "id": derive_org_id(org_name),
            "name": org_name,
            "role": org_role or DEFAULT_ORG_ROLE,
        }
    ]


def build_notes(heroes: List[str]) -> List[str]:
    if not heroes:
        return []
    return [f"Heroes: {', '.join(heroes)}"]


def build_profile(
    answers: Union[SignupAnswers, Mapping[str, Any]],
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Assemble a complete profile document with every default applied."""
    parsed = SignupAnswers.from_payload(answers)
    name, identifier, user_id = require_identity(parsed)
    timestamp = format_timestamp(now or datetime.now(timezone.utc))

    identity: Dict[str, Any] = {
        "id": user_id,
        "name": name,
        "roles": list(parsed.roles),
        "orgs": build_organizations(parsed.org_name, parsed.org_role),
        "key_refs": normalize_key_refs(parsed.key_refs),
        "style": list(parsed.style),
        "github_id": parsed.github_id or identifier,
        "tz": DEFAULT_TIMEZONE,
    }
    if parsed.heroes:
        identity["heroes"] = list(parsed.heroes)

    return {
        "version": PROFILE_VERSION,
        "updated_at": timestamp,
        "identity": identity,
        "active": {
            "project": None,
            "sprint": None,
            "focus": None,
            "blockers": [],
            "next": [],
            "context_refs": [],
            "notes": build_notes(parsed.heroes),
        },
        "prefs": {
            "planning_mode": parsed.planning_mode,
            "feedback_style": "continuous",
            "verbosity": parsed.verbosity,
            "emoji": parsed.emoji,
            "proactive_suggestions": True,
            "auto_commit": False,
        },
        "delegation": {
            "allowed": True,
            "max_parallel": DEFAULT_MAX_PARALLEL,
            "require_approval": list(REQUIRE_APPROVAL_ACTIONS),
            "autonomous": list(AUTONOMOUS_ACTIONS),
        },
        "ephemeral": {
            "session_count": 1,
            "current_session_start": timestamp,
            "last_session_end": None,
            "last_summary": None,
            "open_threads": [],
            "vessel": None,
            "integrity": {
                "chain_hash": compute_genesis_hash(timestamp, user_id),
                "previous_hash": GENESIS_PREVIOUS_HASH,
                "genesis": timestamp,
            },
        },
    }


__all__ = [
    "AUTONOMOUS_ACTIONS",
    "GENESIS_PREVIOUS_HASH",
    "REQUIRE_APPROVAL_ACTIONS",
    "SignupAnswers",
    "build_notes",
    "build_organizations",
    "build_profile",
    "chain_forward",
    "compute_genesis_hash",
    "format_timestamp",
    "require_identity",
]
