"""End-to-end recompute runs over small curricula."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from rollmodel.curriculum.engine import build_progress_and_recommendations
from rollmodel.curriculum.models import (
    ActionPack,
    Checkoff,
    CheckoffEvidence,
    CurriculumSnapshot,
    Entry,
    OutcomeTrendPoint,
    OutcomeTrends,
    ProgressViewsReport,
    Skill,
    SkillRelationship,
)
from rollmodel.curriculum.mutations import seed_baseline_curriculum
from rollmodel.errors import CurriculumValidationError
from rollmodel.telemetry import CURRICULUM_RECOMPUTED, TelemetryEvent, clear_listeners, register_listener

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def captured_events():
    events: List[TelemetryEvent] = []
    register_listener(events.append)
    yield events
    clear_listeners()


def _run(skills, relationships, checkoffs=(), evidence=(), entries=(), progress_views=None, existing=None):
    existing = existing or {}
    return build_progress_and_recommendations(
        athlete_id="athlete-1",
        skills=skills,
        relationships=relationships,
        checkoffs=list(checkoffs),
        evidence=list(evidence),
        entries=list(entries),
        now=NOW,
        progress_views=progress_views,
        existing_progress=existing.get("progress"),
        existing_recommendations=existing.get("recommendations"),
    )


def test_two_skill_chain_blocks_the_dependent_skill(captured_events) -> None:
    skills = [
        Skill(skill_id="a", name="Guard Retention Basics", category="guard-retention", stage_id="white-belt"),
        Skill(skill_id="b", name="Basic Sweep", category="sweep", stage_id="white-belt", prerequisites=["a"]),
    ]
    relationships = [SkillRelationship(from_skill_id="a", to_skill_id="b", relation="prerequisite")]

    result = _run(skills, relationships)

    states = {item.skill_id: item.state for item in result.progressions}
    assert states == {"a": "not_started", "b": "blocked"}
    assert len(result.recommendations) <= 1
    for recommendation in result.recommendations:
        assert recommendation.skill_id == "b"
        assert recommendation.missing_prerequisite_skill_ids == ["a"]
    assert result.generated_at == NOW

    assert [event.name for event in captured_events] == [CURRICULUM_RECOMPUTED]
    payload = captured_events[0].payload
    assert payload["skill_count"] == 2
    assert payload["blocked_count"] == 1
    assert payload["athlete_id"] == "athlete-1"


def test_mutual_prerequisites_fail_before_any_derivation(captured_events) -> None:
    skills = [
        Skill(skill_id="a", name="A", category="concept", stage_id="white-belt", prerequisites=["b"]),
        Skill(skill_id="b", name="B", category="concept", stage_id="white-belt", prerequisites=["a"]),
    ]

    with pytest.raises(CurriculumValidationError) as excinfo:
        _run(skills, [])

    assert "cycle detected" in excinfo.value.message
    assert CURRICULUM_RECOMPUTED not in [event.name for event in captured_events]


def _rich_inputs():
    skills = [
        Skill(
            skill_id="bridge",
            name="Bridge Escape",
            category="escape",
            stage_id="white-belt",
            common_failures=["late frames"],
            drills=["wall shrimping"],
        ),
        Skill(
            skill_id="guard",
            name="Closed Guard",
            category="guard-retention",
            stage_id="white-belt",
            prerequisites=["bridge"],
            key_concepts=["hip mobility"],
        ),
    ]
    checkoffs = [
        Checkoff(
            checkoff_id="chk-guard",
            athlete_id="athlete-1",
            skill_id="guard",
            evidence_type="hit-in-live-roll",
        )
    ]
    evidence = [
        CheckoffEvidence(
            evidence_id=f"ev-{index}",
            checkoff_id="chk-guard",
            athlete_id="athlete-1",
            skill_id="guard",
            entry_id=f"entry-{index}",
            evidence_type="hit-in-live-roll",
            statement=f"Kept closed guard for round {index}",
            created_at=NOW - timedelta(days=index + 1),
        )
        for index in range(2)
    ]
    entries = [
        Entry(
            entry_id=f"entry-{index}",
            created_at=NOW - timedelta(days=index + 1),
            action_pack_draft=ActionPack(leaks=["late frames under side control"], wins=["Closed guard felt solid"]),
        )
        for index in range(3)
    ]
    views = ProgressViewsReport(outcome_trends=OutcomeTrends(points=[OutcomeTrendPoint(escapes_success_rate=0.25)]))
    return skills, checkoffs, evidence, entries, views


def test_recompute_is_idempotent_for_identical_inputs() -> None:
    skills, checkoffs, evidence, entries, views = _rich_inputs()

    first = _run(skills, [], checkoffs, evidence, entries, views)
    second = _run(skills, [], checkoffs, evidence, entries, views)
    assert first.model_dump() == second.model_dump()

    # feeding the persisted output back in does not change anything either
    rerun = _run(
        skills,
        [],
        checkoffs,
        evidence,
        entries,
        views,
        existing={"progress": first.progressions, "recommendations": first.recommendations},
    )
    assert rerun.model_dump() == first.model_dump()


def test_recompute_combines_failures_and_trends() -> None:
    skills, checkoffs, evidence, entries, views = _rich_inputs()

    result = _run(skills, [], checkoffs, evidence, entries, views)

    progress = {item.skill_id: item for item in result.progressions}
    assert progress["bridge"].state == "not_started"
    assert progress["guard"].state == "blocked"
    assert progress["guard"].rationale[0] == "Blocked by prerequisites: bridge"
    assert "Closed guard felt solid" in progress["guard"].rationale

    by_skill = {item.skill_id: item for item in result.recommendations}
    bridge = by_skill["bridge"]
    assert bridge.action_title == "wall shrimping"
    assert [item.signal_type for item in bridge.source_evidence] == [
        "failure-pattern",
        "failure-pattern",
        "failure-pattern",
        "progress-trend",
    ]
    assert bridge.source_evidence[-1].excerpt == "Escape success trend is 25%."
    assert bridge.source_evidence[-1].entry_id == "entry-0"
    assert bridge.rationale == "3 recurring failure signals on Bridge Escape; Escape success trend is 25%."
    assert by_skill["guard"].missing_prerequisite_skill_ids == ["bridge"]
    assert result.recommendations[0].score >= result.recommendations[-1].score


def test_baseline_seed_recomputes_cleanly() -> None:
    seeded = seed_baseline_curriculum(CurriculumSnapshot(), NOW)

    result = _run(seeded.skills, seeded.relationships)

    states = {item.skill_id: item.state for item in result.progressions}
    assert states == {
        "bridge-hip-escape": "not_started",
        "closed-guard-retention": "blocked",
        "scissor-sweep": "blocked",
        "knee-cut-pass": "blocked",
        "x-guard-sweep": "blocked",
    }
    assert {item.skill_id for item in result.recommendations} == {
        "closed-guard-retention",
        "scissor-sweep",
        "knee-cut-pass",
        "x-guard-sweep",
    }
    suggested = {item.skill_id: item.suggested_next_skill_ids for item in result.progressions}
    assert suggested["scissor-sweep"] == ["x-guard-sweep"]


def test_non_latin_drill_names_do_not_break_recompute() -> None:
    skills = [
        Skill(
            skill_id="shrimp-escape",
            name="Shrimp Escape",
            category="escape",
            stage_id="white-belt",
            common_failures=["stuck under side control"],
            drills=["エビ"],
        )
    ]
    entries = [
        Entry(
            entry_id="entry-1",
            created_at=NOW - timedelta(days=1),
            action_pack_draft=ActionPack(leaks=["stuck under side control again"]),
        )
    ]

    result = _run(skills, [], entries=entries)

    assert len(result.recommendations) == 1
    recommendation = result.recommendations[0]
    assert recommendation.recommendation_id == "shrimp-escape:drill:step"
    assert recommendation.action_title == "エビ"
