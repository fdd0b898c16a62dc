"""Stage, skill and relationship edits plus baseline seeding."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from rollmodel.curriculum.models import (
    CurriculumSnapshot,
    CurriculumStage,
    Skill,
    SkillProgress,
    SkillRelationship,
)
from rollmodel.curriculum.mutations import (
    remove_relationship,
    remove_skill,
    seed_baseline_curriculum,
    upsert_relationship,
    upsert_skill,
    upsert_stages,
)
from rollmodel.curriculum.payloads import (
    parse_stages_payload,
    parse_upsert_relationship_payload,
    parse_upsert_skill_payload,
)
from rollmodel.errors import CurriculumConflictError, CurriculumNotFoundError, CurriculumValidationError
from rollmodel.telemetry import (
    CURRICULUM_SEEDED,
    CURRICULUM_SKILL_REMOVED,
    TelemetryEvent,
    clear_listeners,
    register_listener,
)

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)
EARLIER = NOW - timedelta(days=30)


@pytest.fixture
def captured_events():
    events: List[TelemetryEvent] = []
    register_listener(events.append)
    yield events
    clear_listeners()


def _snapshot() -> CurriculumSnapshot:
    return CurriculumSnapshot(
        stages=[CurriculumStage(stage_id="white-belt", name="White Belt", order=1, updated_at=EARLIER)],
        skills=[
            Skill(skill_id="a", name="Bridge", category="escape", stage_id="white-belt", created_at=EARLIER),
            Skill(skill_id="b", name="Guard", category="guard-retention", stage_id="white-belt", prerequisites=["a"]),
        ],
        relationships=[
            SkillRelationship(from_skill_id="a", to_skill_id="b", relation="prerequisite", created_at=EARLIER),
        ],
        progressions=[
            SkillProgress(athlete_id="athlete-1", skill_id="b", state="blocked", last_evaluated_at=EARLIER),
        ],
    )


def test_upsert_stages_merges_and_sorts_by_order() -> None:
    stages = parse_stages_payload(
        {
            "stages": [
                {"stage_id": "Blue Belt", "name": "Blue Belt", "order": 2, "milestone_skills": ["Scissor Sweep"]},
                {"stage_id": "white-belt", "name": "White Belt (revised)", "order": 1},
            ]
        }
    )

    updated = upsert_stages(_snapshot(), stages, NOW)

    assert [(stage.stage_id, stage.order) for stage in updated.stages] == [("white-belt", 1), ("blue-belt", 2)]
    assert updated.stages[0].name == "White Belt (revised)"
    assert updated.stages[1].milestone_skills == ["scissor-sweep"]
    assert updated.stages[1].updated_at == NOW


def test_upsert_stages_rejects_order_collisions() -> None:
    colliding = [CurriculumStage(stage_id="blue-belt", name="Blue Belt", order=1)]
    with pytest.raises(CurriculumValidationError) as excinfo:
        upsert_stages(_snapshot(), colliding, NOW)
    assert excinfo.value.message == 'Stage order 1 is already used by stage "white-belt".'

    duplicates = [
        CurriculumStage(stage_id="blue-belt", name="Blue", order=2),
        CurriculumStage(stage_id="purple-belt", name="Purple", order=2),
    ]
    with pytest.raises(CurriculumValidationError):
        upsert_stages(_snapshot(), duplicates, NOW)


@pytest.mark.parametrize("order", [0, 100, True, "3", None])
def test_stage_payload_rejects_bad_orders(order) -> None:
    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_stages_payload({"stages": [{"stage_id": "x", "name": "X", "order": order}]})
    assert excinfo.value.message.startswith("stages[0].order: Input should be")
    assert excinfo.value.status_code == 400


def test_stage_payload_rejects_non_list_and_slugless_ids() -> None:
    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_stages_payload({"stages": "white-belt"})
    assert excinfo.value.message.startswith("stages: Input should be a valid list")

    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_stages_payload({"stages": [{"stage_id": "???", "name": "X", "order": 1}]})
    assert excinfo.value.message == "stage_id must include letters or numbers."


def test_skill_payload_reports_every_invalid_field_category_first() -> None:
    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_upsert_skill_payload({"skill_id": "", "category": "wrestling"})
    message = excinfo.value.message
    assert message.startswith("category: Input should be")
    assert "skill_id: String should have at least 1 character." in message
    assert "name: Field required." in message
    assert "stage_id: Field required." in message


def test_skill_payload_trims_lists_and_requires_an_id() -> None:
    skill = parse_upsert_skill_payload(
        {
            "skill_id": "Knee Cut",
            "name": " Knee Cut ",
            "category": "pass",
            "stage_id": "Blue Belt",
            "prerequisites": ["Closed Guard Retention"],
            "drills": [" knee slice reps "],
        }
    )
    assert (skill.skill_id, skill.name, skill.stage_id) == ("knee-cut", "Knee Cut", "blue-belt")
    assert skill.prerequisites == ["closed-guard-retention"]
    assert skill.drills == ["knee slice reps"]

    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_upsert_skill_payload({"name": "Knee Cut", "category": "pass", "stage_id": "blue-belt"})
    assert excinfo.value.message == "skill_id is required."

    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_upsert_skill_payload(
            {"skill_id": "knee-cut", "name": "Knee Cut", "category": "pass", "stage_id": "b", "drills": ["  "]}
        )
    assert excinfo.value.message == "drills[0]: String should have at least 1 character."


def test_upsert_skill_requires_an_existing_stage() -> None:
    skill = parse_upsert_skill_payload(
        {"skill_id": "Knee Cut", "name": "Knee Cut", "category": "pass", "stage_id": "brown-belt"}
    )
    with pytest.raises(CurriculumValidationError) as excinfo:
        upsert_skill(_snapshot(), skill, NOW)
    assert excinfo.value.message == 'stage_id "brown-belt" does not exist.'


def test_upsert_skill_preserves_created_at_and_uses_path_id() -> None:
    skill = parse_upsert_skill_payload(
        {"name": "Bridge and Roll", "category": "escape", "stage_id": "White Belt", "drills": ["upa reps"]},
        skill_id_from_path="A",
    )

    updated = upsert_skill(_snapshot(), skill, NOW)

    stored = next(item for item in updated.skills if item.skill_id == "a")
    assert stored.name == "Bridge and Roll"
    assert stored.drills == ["upa reps"]
    assert stored.created_at == EARLIER
    assert stored.updated_at == NOW
    assert len(updated.skills) == 2


def test_upsert_skill_rejects_a_new_cycle_and_leaves_the_snapshot_alone() -> None:
    snapshot = _snapshot()
    skill = Skill(skill_id="a", name="Bridge", category="escape", stage_id="white-belt", prerequisites=["b"])

    with pytest.raises(CurriculumValidationError) as excinfo:
        upsert_skill(snapshot, skill, NOW)

    assert "b -> a -> b" in excinfo.value.message
    assert snapshot.skills[0].prerequisites == []


def test_upsert_relationship_validates_endpoints() -> None:
    with pytest.raises(CurriculumValidationError) as excinfo:
        upsert_relationship(
            _snapshot(),
            SkillRelationship(from_skill_id="A", to_skill_id="a", relation="supports"),
            NOW,
        )
    assert excinfo.value.message == "from_skill_id and to_skill_id must be different."

    with pytest.raises(CurriculumValidationError) as excinfo:
        upsert_relationship(
            _snapshot(),
            SkillRelationship(from_skill_id="a", to_skill_id="ghost", relation="supports"),
            NOW,
        )
    assert excinfo.value.message == 'to_skill_id "ghost" does not exist.'


def test_upsert_relationship_replaces_the_existing_edge() -> None:
    relationship = parse_upsert_relationship_payload(
        {"from_skill_id": "A", "to_skill_id": "B", "relation": "prerequisite", "rationale": " hips first "}
    )

    updated = upsert_relationship(_snapshot(), relationship, NOW)

    assert len(updated.relationships) == 1
    stored = updated.relationships[0]
    assert stored.rationale == "hips first"
    assert stored.created_at == EARLIER
    assert stored.updated_at == NOW


def test_prerequisite_relationship_closing_a_loop_is_rejected_but_supports_is_fine() -> None:
    backwards = SkillRelationship(from_skill_id="b", to_skill_id="a", relation="prerequisite")
    with pytest.raises(CurriculumValidationError):
        upsert_relationship(_snapshot(), backwards, NOW)

    informational = backwards.model_copy(update={"relation": "supports"})
    updated = upsert_relationship(_snapshot(), informational, NOW)
    assert len(updated.relationships) == 2


def test_relationship_payload_rejects_unknown_relation() -> None:
    with pytest.raises(CurriculumValidationError) as excinfo:
        parse_upsert_relationship_payload({"from_skill_id": "a", "to_skill_id": "b", "relation": "blocks"})
    assert excinfo.value.message.startswith("relation: Input should be 'prerequisite'")


def test_remove_skill_drops_relationships_and_progress(captured_events) -> None:
    removal = remove_skill(_snapshot(), " B ")

    assert removal.skill_id == "b"
    assert [(item.from_skill_id, item.to_skill_id) for item in removal.removed_relationships] == [("a", "b")]
    assert removal.removed_progress is True
    assert [skill.skill_id for skill in removal.snapshot.skills] == ["a"]
    assert removal.snapshot.relationships == []
    assert removal.snapshot.progressions == []
    assert captured_events[-1].name == CURRICULUM_SKILL_REMOVED
    assert captured_events[-1].payload == {"skill_id": "b", "removed_relationships": 1}


def test_remove_skill_slugs_the_requested_id() -> None:
    snapshot = _snapshot().model_copy(
        update={
            "skills": [
                *_snapshot().skills,
                Skill(skill_id="closed-guard", name="Closed Guard", category="guard-retention", stage_id="white-belt"),
            ]
        }
    )

    removal = remove_skill(snapshot, "Closed Guard")

    assert removal.skill_id == "closed-guard"
    assert [skill.skill_id for skill in removal.snapshot.skills] == ["a", "b"]


def test_remove_unknown_skill_is_not_found() -> None:
    with pytest.raises(CurriculumNotFoundError) as excinfo:
        remove_skill(_snapshot(), "ghost")
    assert excinfo.value.status_code == 404


def test_remove_relationship_is_idempotent() -> None:
    removal = remove_relationship(_snapshot(), " A ", "B")

    assert (removal.from_skill_id, removal.to_skill_id) == ("a", "b")
    assert removal.removed is True
    assert removal.snapshot.relationships == []
    assert [skill.skill_id for skill in removal.snapshot.skills] == ["a", "b"]

    again = remove_relationship(removal.snapshot, "a", "b")
    assert again.removed is False
    assert again.snapshot.relationships == []


def test_remove_relationship_rejects_blank_ids() -> None:
    with pytest.raises(CurriculumValidationError) as excinfo:
        remove_relationship(_snapshot(), "  ", "b")
    assert excinfo.value.message == "from_skill_id must include letters or numbers."


def test_seed_populates_an_empty_curriculum(captured_events) -> None:
    seeded = seed_baseline_curriculum(CurriculumSnapshot(), NOW)

    assert [stage.order for stage in seeded.stages] == [1, 2, 3, 4, 5]
    assert len(seeded.skills) == 5
    assert {relation.relation for relation in seeded.relationships} == {"prerequisite", "supports", "counter"}
    assert all(skill.created_at == NOW for skill in seeded.skills)
    assert captured_events[-1].name == CURRICULUM_SEEDED
    assert captured_events[-1].payload["forced"] is False


def test_seed_refuses_to_overwrite_without_force() -> None:
    with pytest.raises(CurriculumConflictError) as excinfo:
        seed_baseline_curriculum(_snapshot(), NOW)
    assert excinfo.value.message == "Curriculum already exists. Set force=true to overwrite with baseline seed."
    assert excinfo.value.status_code == 409

    forced = seed_baseline_curriculum(_snapshot(), NOW, force=True)
    assert "a" not in forced.skill_ids()
    assert "bridge-hip-escape" in forced.skill_ids()
