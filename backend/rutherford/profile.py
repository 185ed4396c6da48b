"""Hot-context profile models and schema validation.

The hot context is the dense profile document loaded at the start of every
session. These models describe its shape; :func:`validate_profile` turns an
untyped document into a :class:`HotContext` or raises :class:`SchemaError`.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    StrictBool,
    StrictInt,
    StringConstraints,
    ValidationError,
)

from .errors import SchemaError
from .identifiers import KEY_REF_PATTERN

PROFILE_VERSION = 1

_UTC_TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z$")


def _require_iso_timestamp(value: str) -> str:
    if not _UTC_TIMESTAMP.fullmatch(value):
        raise ValueError("must be an ISO 8601 UTC timestamp ending in Z")
    try:
        datetime.strptime(value[:19], "%Y-%m-%dT%H:%M:%S")
    except ValueError as exc:
        raise ValueError("must be a real calendar date and time") from exc
    return value


IsoTimestamp = Annotated[str, AfterValidator(_require_iso_timestamp)]
KeyRef = Annotated[str, StringConstraints(pattern=KEY_REF_PATTERN.pattern)]

PlanningMode = Literal["critical", "important", "optional"]
FeedbackStyle = Literal["continuous", "batched", "end_of_task"]
Verbosity = Literal["minimal", "concise", "detailed"]

# Culture ship names used as session character labels.
Vessel = Literal[
    "GSV Sleeper Service",
    "GSV Just Read The Instructions",
    "GCU Grey Area",
    "GSV So Much For Subtlety",
    "ROU Frank Exchange Of Views",
    "GSV Quietly Confident",
]


class Organization(BaseModel):
    id: str
    name: str
    role: str


class Identity(BaseModel):
    """Who the human is."""

    id: str
    name: str
    roles: List[str]
    orgs: List[Organization]
    key_refs: List[KeyRef] = Field(description="Foundational references in namespace:identifier form")
    style: List[str] = Field(description="Communication and working style markers")
    tz: Optional[str] = None
    github_id: Optional[str] = Field(default=None, description="External login used for OAuth")
    email: Optional[str] = None
    api_key: Optional[str] = Field(default=None, description="Per-user API key for CLI uploads")
    interests: Optional[List[str]] = None
    heroes: Optional[List[str]] = None


class ActiveState(BaseModel):
    """Current work context. Everything is empty at signup."""

    project: Optional[str]
    sprint: Optional[StrictInt]
    focus: Optional[str]
    blockers: List[str]
    next: List[str]
    context_refs: List[str] = Field(description="Relevant file paths or URLs")
    sprint_plan: Optional[Dict[str, str]] = None
    notes: Optional[List[str]] = None
    context_bindings: Optional[Dict[str, str]] = Field(
        default=None,
        description="Directory path to group id; scopes group memory by working directory",
    )


class Preferences(BaseModel):
    planning_mode: PlanningMode
    feedback_style: FeedbackStyle
    verbosity: Verbosity
    emoji: StrictBool
    proactive_suggestions: StrictBool
    auto_commit: StrictBool


class Delegation(BaseModel):
    """How sub-agents are allowed to act on the user's behalf."""

    allowed: StrictBool
    max_parallel: StrictInt
    require_approval: List[str]
    autonomous: List[str]


class Integrity(BaseModel):
    chain_hash: str = Field(description="sha256(previous_hash + session_count + content_hash)")
    previous_hash: str
    genesis: IsoTimestamp


class Ephemeral(BaseModel):
    """Autobiographical session continuity."""

    session_count: StrictInt = Field(ge=1)
    current_session_start: IsoTimestamp
    last_session_end: Optional[IsoTimestamp]
    last_summary: Optional[str]
    open_threads: List[str]
    vessel: Optional[Vessel]
    integrity: Integrity


class HotContext(BaseModel):
    version: Literal[1]
    updated_at: IsoTimestamp
    identity: Identity
    active: ActiveState
    prefs: Preferences
    delegation: Delegation
    ephemeral: Optional[Ephemeral] = None

    def to_document(self) -> Dict[str, Any]:
        """JSON-compatible form that keeps only the fields actually provided."""
        return self.model_dump(mode="json", exclude_unset=True)


def _format_location(loc: tuple) -> str:
    parts: List[str] = []
    for item in loc:
        if isinstance(item, int) and parts:
            parts[-1] = f"{parts[-1]}[{item}]"
        else:
            parts.append(str(item))
    return ".".join(parts)


def validate_profile(document: Mapping[str, Any]) -> HotContext:
    """Validate and coerce an untyped document into a :class:`HotContext`."""
    if isinstance(document, HotContext):
        return document
    if not isinstance(document, Mapping):
        raise SchemaError("", "an object", detail=type(document).__name__)
    try:
        return HotContext.model_validate(dict(document))
    except ValidationError as exc:
        first = exc.errors()[0]
        path = _format_location(tuple(first.get("loc", ())))
        raise SchemaError(path, first.get("msg", "a valid value"), detail=first.get("type")) from exc


__all__ = [
    "ActiveState",
    "Delegation",
    "Ephemeral",
    "HotContext",
    "Identity",
    "Integrity",
    "Organization",
    "PROFILE_VERSION",
    "Preferences",
    "Vessel",
    "validate_profile",
]
