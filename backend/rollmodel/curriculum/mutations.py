"""Validated edits to an athlete's curriculum graph.

Each helper takes the current snapshot and returns the next one; nothing is
persisted here. Every edit that can change the prerequisite graph is checked
for cycles before it is returned, so callers only ever write acyclic graphs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence

from ..errors import CurriculumConflictError, CurriculumNotFoundError, CurriculumValidationError
from ..telemetry import CURRICULUM_SEEDED, CURRICULUM_SKILL_REMOVED, emit_event
from .graph import assert_no_invalid_cycles
from .models import CurriculumSnapshot, CurriculumStage, Skill, SkillRelationship
from .normalization import normalize_id, normalize_skill, normalize_string_list
from .payloads import MAX_STAGE_ORDER, MIN_STAGE_ORDER
from .seed import baseline_curriculum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkillRemoval:
    skill_id: str
    removed_relationships: List[SkillRelationship]
    removed_progress: bool
    snapshot: CurriculumSnapshot


@dataclass(frozen=True)
class RelationshipRemoval:
    from_skill_id: str
    to_skill_id: str
    removed: bool
    snapshot: CurriculumSnapshot


def upsert_stages(
    snapshot: CurriculumSnapshot,
    stages: Sequence[CurriculumStage],
    now: datetime,
) -> CurriculumSnapshot:
    incoming: Dict[str, CurriculumStage] = {}
    seen_orders: set[int] = set()
    for stage in stages:
        stage_id = normalize_id(stage.stage_id, "stage_id")
        if not MIN_STAGE_ORDER <= stage.order <= MAX_STAGE_ORDER:
            raise CurriculumValidationError(
                f"Stage order must be an integer between {MIN_STAGE_ORDER} and {MAX_STAGE_ORDER}."
            )
        if stage.order in seen_orders:
            raise CurriculumValidationError("Duplicate stage order values are not allowed.")
        if stage_id in incoming:
            raise CurriculumValidationError(f'Duplicate stage_id "{stage_id}" in request.')
        seen_orders.add(stage.order)
        incoming[stage_id] = stage.model_copy(
            update={
                "stage_id": stage_id,
                "name": stage.name.strip(),
                "milestone_skills": normalize_string_list(
                    normalize_id(item, "milestone_skills[]") for item in stage.milestone_skills
                ),
                "updated_at": now,
            }
        )

    merged = [stage for stage in snapshot.stages if stage.stage_id not in incoming]
    taken = {stage.order: stage.stage_id for stage in merged}
    for stage in incoming.values():
        if stage.order in taken:
            raise CurriculumValidationError(
                f'Stage order {stage.order} is already used by stage "{taken[stage.order]}".'
            )
    merged.extend(incoming.values())
    merged.sort(key=lambda stage: (stage.order, stage.name))
    return snapshot.model_copy(update={"stages": merged})


def upsert_skill(snapshot: CurriculumSnapshot, skill: Skill, now: datetime) -> CurriculumSnapshot:
    normalized = normalize_skill(skill)
    if not any(stage.stage_id == normalized.stage_id for stage in snapshot.stages):
        raise CurriculumValidationError(f'stage_id "{normalized.stage_id}" does not exist.')

    existing = next((item for item in snapshot.skills if item.skill_id == normalized.skill_id), None)
    normalized = normalized.model_copy(
        update={
            "created_at": existing.created_at if existing and existing.created_at else now,
            "updated_at": now,
        }
    )
    next_skills = [item for item in snapshot.skills if item.skill_id != normalized.skill_id]
    next_skills.append(normalized)

    assert_no_invalid_cycles(next_skills, snapshot.relationships)
    return snapshot.model_copy(update={"skills": next_skills})


def upsert_relationship(
    snapshot: CurriculumSnapshot,
    relationship: SkillRelationship,
    now: datetime,
) -> CurriculumSnapshot:
    from_skill_id = normalize_id(relationship.from_skill_id, "from_skill_id")
    to_skill_id = normalize_id(relationship.to_skill_id, "to_skill_id")
    if from_skill_id == to_skill_id:
        raise CurriculumValidationError("from_skill_id and to_skill_id must be different.")

    known = snapshot.skill_ids()
    if from_skill_id not in known:
        raise CurriculumValidationError(f'from_skill_id "{from_skill_id}" does not exist.')
    if to_skill_id not in known:
        raise CurriculumValidationError(f'to_skill_id "{to_skill_id}" does not exist.')

    existing = next(
        (
            item
            for item in snapshot.relationships
            if item.from_skill_id == from_skill_id and item.to_skill_id == to_skill_id
        ),
        None,
    )
    relation = relationship.model_copy(
        update={
            "from_skill_id": from_skill_id,
            "to_skill_id": to_skill_id,
            "created_at": existing.created_at if existing and existing.created_at else now,
            "updated_at": now,
        }
    )
    next_relationships = [
        item
        for item in snapshot.relationships
        if not (item.from_skill_id == from_skill_id and item.to_skill_id == to_skill_id)
    ]
    next_relationships.append(relation)

    assert_no_invalid_cycles(snapshot.skills, next_relationships)
    return snapshot.model_copy(update={"relationships": next_relationships})


def remove_skill(snapshot: CurriculumSnapshot, skill_id: str) -> SkillRemoval:
    """Drop a skill with every relationship touching it and its progress record."""
    key = normalize_id(skill_id, "skill_id")
    if key not in snapshot.skill_ids():
        raise CurriculumNotFoundError(f'Skill "{key}" was not found.')

    removed = [item for item in snapshot.relationships if key in (item.from_skill_id, item.to_skill_id)]
    removed_progress = any(item.skill_id == key for item in snapshot.progressions)
    pruned = snapshot.model_copy(
        update={
            "skills": [item for item in snapshot.skills if item.skill_id != key],
            "relationships": [item for item in snapshot.relationships if item not in removed],
            "progressions": [item for item in snapshot.progressions if item.skill_id != key],
        }
    )
    emit_event(CURRICULUM_SKILL_REMOVED, skill_id=key, removed_relationships=len(removed))
    return SkillRemoval(
        skill_id=key,
        removed_relationships=removed,
        removed_progress=removed_progress,
        snapshot=pruned,
    )


def remove_relationship(snapshot: CurriculumSnapshot, from_skill_id: str, to_skill_id: str) -> RelationshipRemoval:
    """Idempotent: removing an edge that is not there reports ``removed=False``."""
    from_key = normalize_id(from_skill_id, "from_skill_id")
    to_key = normalize_id(to_skill_id, "to_skill_id")
    kept = [
        item
        for item in snapshot.relationships
        if not (item.from_skill_id == from_key and item.to_skill_id == to_key)
    ]
    return RelationshipRemoval(
        from_skill_id=from_key,
        to_skill_id=to_key,
        removed=len(kept) != len(snapshot.relationships),
        snapshot=snapshot.model_copy(update={"relationships": kept}),
    )


def seed_baseline_curriculum(
    snapshot: CurriculumSnapshot,
    now: datetime,
    *,
    force: bool = False,
) -> CurriculumSnapshot:
    if not force and not snapshot.is_empty():
        raise CurriculumConflictError("Curriculum already exists. Set force=true to overwrite with baseline seed.")

    seeded = baseline_curriculum(now)
    assert_no_invalid_cycles(seeded.skills, seeded.relationships)
    logger.info(
        "Seeding baseline curriculum stages=%d skills=%d relationships=%d",
        len(seeded.stages),
        len(seeded.skills),
        len(seeded.relationships),
    )
    emit_event(
        CURRICULUM_SEEDED,
        stages=len(seeded.stages),
        skills=len(seeded.skills),
        relationships=len(seeded.relationships),
        forced=force,
    )
    return seeded.model_copy(
        update={
            "progressions": list(snapshot.progressions),
            "recommendations": list(snapshot.recommendations),
        }
    )


__all__ = [
    "RelationshipRemoval",
    "SkillRemoval",
    "remove_relationship",
    "remove_skill",
    "seed_baseline_curriculum",
    "upsert_relationship",
    "upsert_skill",
    "upsert_stages",
]
