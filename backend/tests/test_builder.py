"""Tests for profile document assembly."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone

import pytest

from rutherford.builder import (
    AUTONOMOUS_ACTIONS,
    GENESIS_PREVIOUS_HASH,
    REQUIRE_APPROVAL_ACTIONS,
    SignupAnswers,
    build_profile,
    chain_forward,
    compute_genesis_hash,
    format_timestamp,
)
from rutherford.errors import FailureReason, InputError
from rutherford.profile import validate_profile

NOW = datetime(2026, 10, 17, 9, 30, 15, 123456, tzinfo=timezone.utc)


def _answers(**overrides: object) -> dict[str, object]:
    answers: dict[str, object] = {
        "name": "Ada Lovelace",
        "github_id": "Ada-Lovelace",
        "roles": ["engineer", "researcher"],
        "org_name": "Analytical Engines Ltd",
        "org_role": "founder",
        "style": ["direct", "curious"],
        "key_refs": ["Hofstadter: GEB!", "already:valid_ref", "garbage"],
        "heroes": ["Turing", "Lovelace"],
        "planning_mode": "critical",
        "verbosity": "detailed",
        "emoji": True,
    }
    answers.update(overrides)
    return answers


def test_build_profile_populates_identity_and_defaults() -> None:
    document = build_profile(_answers(), now=NOW)

    identity = document["identity"]
    assert identity["id"] == "adalovelace"
    assert identity["name"] == "Ada Lovelace"
    assert identity["github_id"] == "Ada-Lovelace"
    assert identity["tz"] == "UTC"
    assert identity["key_refs"] == ["hofstadter:_geb", "already:valid_ref"]
    assert identity["orgs"] == [
        {"id": "analytical_engines_ltd", "name": "Analytical Engines Ltd", "role": "founder"}
    ]

    prefs = document["prefs"]
    assert prefs == {
        "planning_mode": "critical",
        "feedback_style": "continuous",
        "verbosity": "detailed",
        "emoji": True,
        "proactive_suggestions": True,
        "auto_commit": False,
    }
    assert document["delegation"] == {
        "allowed": True,
        "max_parallel": 3,
        "require_approval": list(REQUIRE_APPROVAL_ACTIONS),
        "autonomous": list(AUTONOMOUS_ACTIONS),
    }
    active = document["active"]
    assert active["project"] is None and active["sprint"] is None and active["focus"] is None
    assert active["blockers"] == [] and active["next"] == [] and active["context_refs"] == []


def test_build_profile_output_validates() -> None:
    for overrides in (
        {},
        {"org_name": None, "heroes": [], "key_refs": [], "emoji": "false"},
        {"github_id": None, "username": "chosen.name", "planning_mode": "", "verbosity": None},
    ):
        document = build_profile(_answers(**overrides), now=NOW)
        validated = validate_profile(document)
        assert validated.identity.id == document["identity"]["id"]


def test_minimal_answers_get_defaults() -> None:
    document = build_profile({"name": "Grace", "username": "grace"}, now=NOW)
    assert document["identity"]["roles"] == []
    assert document["identity"]["orgs"] == []
    assert document["identity"]["github_id"] == "grace"
    assert document["prefs"]["planning_mode"] == "important"
    assert document["prefs"]["verbosity"] == "concise"
    assert document["prefs"]["emoji"] is False
    assert document["active"]["notes"] == []
    assert "heroes" not in document["identity"]


@pytest.mark.parametrize("org_name", ["independent", "Independent", "INDEPENDENT"])
def test_independent_org_yields_no_orgs(org_name: str) -> None:
    document = build_profile(_answers(org_name=org_name), now=NOW)
    assert document["identity"]["orgs"] == []


def test_org_role_defaults_to_member() -> None:
    document = build_profile(_answers(org_name="Independent Studios", org_role=None), now=NOW)
    assert document["identity"]["orgs"] == [
        {"id": "independent_studios", "name": "Independent Studios", "role": "member"}
    ]


def test_heroes_become_a_single_note() -> None:
    document = build_profile(_answers(heroes=["Turing", "Lovelace"]), now=NOW)
    assert document["active"]["notes"] == ["Heroes: Turing, Lovelace"]
    assert document["identity"]["heroes"] == ["Turing", "Lovelace"]


@pytest.mark.parametrize("emoji", [True, "true"])
def test_emoji_accepts_boolean_and_string(emoji: object) -> None:
    assert build_profile(_answers(emoji=emoji), now=NOW)["prefs"]["emoji"] is True


@pytest.mark.parametrize("emoji", [False, "false", "yes", 1, None])
def test_emoji_defaults_false_for_other_values(emoji: object) -> None:
    assert build_profile(_answers(emoji=emoji), now=NOW)["prefs"]["emoji"] is False


def test_integrity_seeds_the_chain() -> None:
    document = build_profile(_answers(), now=NOW)
    ephemeral = document["ephemeral"]
    timestamp = "2026-10-17T09:30:15.123Z"

    assert document["updated_at"] == timestamp
    assert ephemeral["current_session_start"] == timestamp
    assert ephemeral["session_count"] == 1
    assert ephemeral["last_session_end"] is None
    assert ephemeral["vessel"] is None

    integrity = ephemeral["integrity"]
    assert integrity["genesis"] == timestamp
    assert integrity["previous_hash"] == GENESIS_PREVIOUS_HASH
    assert len(integrity["previous_hash"]) == len(integrity["chain_hash"]) == 64
    expected = hashlib.sha256(f"genesis:{timestamp}:adalovelace".encode()).hexdigest()
    assert integrity["chain_hash"] == expected == compute_genesis_hash(timestamp, "adalovelace")


def test_chain_forward_binds_previous_hash_and_count() -> None:
    genesis = compute_genesis_hash("2026-10-17T09:30:15.123Z", "ada")
    first = chain_forward(genesis, 2, "summary")
    assert first != chain_forward(genesis, 3, "summary")
    assert first != chain_forward(GENESIS_PREVIOUS_HASH, 2, "summary")
    assert first == chain_forward(genesis, 2, b"summary")


def test_format_timestamp_treats_naive_as_utc() -> None:
    assert format_timestamp(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05.000Z"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": None},
        {"name": "   "},
        {"github_id": None, "username": None},
        {"github_id": "", "username": ""},
        {"github_id": "!!!"},
    ],
)
def test_missing_required_fields(overrides: dict[str, object]) -> None:
    with pytest.raises(InputError) as excinfo:
        build_profile(_answers(**overrides), now=NOW)
    assert excinfo.value.reason is FailureReason.MISSING_REQUIRED_FIELDS
    assert str(excinfo.value) == "Name and username (or GitHub ID) are required"


def test_invalid_choice_is_an_input_error() -> None:
    with pytest.raises(InputError) as excinfo:
        SignupAnswers.from_payload(_answers(verbosity="chatty"))
    assert excinfo.value.reason is FailureReason.INVALID_INPUT
    assert excinfo.value.status_code == 400


def test_github_id_wins_over_username() -> None:
    answers = SignupAnswers.from_payload(_answers(github_id="octo", username="someone"))
    assert answers.identifier == "octo"
