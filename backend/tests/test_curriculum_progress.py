"""Progress state derivation, blocking precedence and manual overrides."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from rollmodel.curriculum.models import Checkoff, CheckoffEvidence, Skill, SkillProgress, SkillRelationship
from rollmodel.curriculum.progress import (
    confidence_from_evidence_count,
    derive_skill_progress,
    state_from_signals,
    usable_evidence_by_skill,
)
from rollmodel.curriculum.weights import CurriculumWeights

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def _skills() -> List[Skill]:
    return [
        Skill(skill_id="a", name="Bridge Escape", category="escape", stage_id="white-belt"),
        Skill(skill_id="b", name="Scissor Sweep", category="sweep", stage_id="blue-belt", prerequisites=["a"]),
    ]


def _checkoff(skill_id: str, status: str) -> Checkoff:
    return Checkoff(
        checkoff_id=f"{skill_id}-{status}",
        athlete_id="athlete-1",
        skill_id=skill_id,
        evidence_type="hit-in-live-roll",
        status=status,
    )


def _evidence(skill_id: str, index: int, mapping_status: str = "confirmed") -> CheckoffEvidence:
    return CheckoffEvidence(
        evidence_id=f"{skill_id}-ev-{index}",
        checkoff_id=f"{skill_id}-pending",
        athlete_id="athlete-1",
        skill_id=skill_id,
        entry_id=f"entry-{index}",
        evidence_type="hit-in-live-roll",
        statement=f"Hit it in round {index}",
        mapping_status=mapping_status,
        created_at=NOW - timedelta(days=index),
    )


def _derive(checkoffs, evidence, existing=None, relationships=None, weights=None):
    return {
        item.skill_id: item
        for item in derive_skill_progress(
            athlete_id="athlete-1",
            skills=_skills(),
            relationships=relationships or [],
            checkoffs=checkoffs,
            evidence=evidence,
            entries=[],
            now=NOW,
            existing_progress=existing,
            weights=weights or CurriculumWeights(),
        )
    }


@pytest.mark.parametrize(
    ("evidence_count", "pending", "earned", "blocked", "expected"),
    [
        (5, 1, 1, True, "blocked"),
        (0, 0, 1, False, "complete"),
        (9, 2, 1, False, "complete"),
        (3, 1, 0, False, "ready_for_review"),
        (3, 0, 0, False, "evidence_present"),
        (2, 0, 0, False, "working"),
        (0, 1, 0, False, "working"),
        (0, 0, 0, False, "not_started"),
    ],
)
def test_state_precedence(evidence_count: int, pending: int, earned: int, blocked: bool, expected: str) -> None:
    assert state_from_signals(evidence_count, pending, earned, blocked) == expected


def test_confidence_thresholds() -> None:
    assert confidence_from_evidence_count(0) == "low"
    assert confidence_from_evidence_count(1) == "low"
    assert confidence_from_evidence_count(2) == "medium"
    assert confidence_from_evidence_count(3) == "medium"
    assert confidence_from_evidence_count(4) == "high"


def test_rejected_evidence_is_ignored_and_recent_first() -> None:
    grouped = usable_evidence_by_skill(
        [_evidence("a", 3), _evidence("a", 1), _evidence("a", 2, "rejected"), _evidence("b", 0)]
    )
    assert [item.evidence_id for item in grouped["a"]] == ["a-ev-1", "a-ev-3"]
    assert [item.evidence_id for item in grouped["b"]] == ["b-ev-0"]


def test_unearned_prerequisite_blocks_even_with_full_evidence() -> None:
    progress = _derive(
        checkoffs=[_checkoff("b", "pending")],
        evidence=[_evidence("b", index) for index in range(3)],
    )

    assert progress["a"].state == "not_started"
    assert progress["b"].state == "blocked"
    assert progress["b"].rationale[0] == "Blocked by prerequisites: a"
    assert "Evidence items: 3" in progress["b"].rationale
    assert "Pending checkoffs: 1" in progress["b"].rationale
    assert progress["b"].confidence == "medium"
    assert progress["b"].evidence_count == 3
    assert progress["b"].source_entry_ids == ["entry-0", "entry-1", "entry-2"]
    assert progress["b"].last_evaluated_at == NOW


def test_earned_prerequisite_unblocks_the_next_skill() -> None:
    progress = _derive(
        checkoffs=[_checkoff("a", "revalidated"), _checkoff("b", "pending")],
        evidence=[_evidence("b", index) for index in range(3)],
    )

    assert progress["a"].state == "complete"
    assert progress["b"].state == "ready_for_review"
    assert not any(line.startswith("Blocked by") for line in progress["b"].rationale)


def test_evidence_threshold_comes_from_weights() -> None:
    progress = _derive(
        checkoffs=[_checkoff("a", "earned")],
        evidence=[_evidence("b", 0), _evidence("b", 1)],
        weights=CurriculumWeights(evidence_ready_threshold=2),
    )
    assert progress["b"].state == "evidence_present"


def test_manual_override_replaces_state_and_keeps_derived_reasoning() -> None:
    existing = [
        SkillProgress(
            athlete_id="athlete-1",
            skill_id="a",
            state="complete",
            last_evaluated_at=NOW - timedelta(days=3),
            manual_override_state="complete",
            manual_override_reason="Coach observed it live",
            coach_reviewed_by="coach-1",
            coach_reviewed_at=NOW - timedelta(days=3),
        )
    ]

    progress = _derive(checkoffs=[], evidence=[_evidence("a", 0)], existing=existing)

    override = progress["a"]
    assert override.state == "complete"
    assert override.manual_override_state == "complete"
    assert override.rationale[0] == "Manual override applied: complete (derived state: working)"
    assert "Derived before override: Evidence items: 1" in override.rationale
    assert override.rationale[-1] == "Manual override: Coach observed it live"
    assert override.coach_reviewed_by == "coach-1"
    # the override does not count as an earned checkoff for dependents
    assert progress["b"].state == "blocked"


def test_suggested_next_skills_only_include_known_targets() -> None:
    relationships = [
        SkillRelationship(from_skill_id="a", to_skill_id="b", relation="supports"),
        SkillRelationship(from_skill_id="a", to_skill_id="ghost", relation="transition"),
    ]
    progress = _derive(checkoffs=[], evidence=[], relationships=relationships)

    assert progress["a"].suggested_next_skill_ids == ["b"]
    assert progress["b"].suggested_next_skill_ids == []
