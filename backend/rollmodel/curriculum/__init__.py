"""Curriculum graph validation, progress derivation and recommendation engine."""

from .engine import build_progress_and_recommendations
from .graph import assert_no_invalid_cycles, build_prerequisite_adjacency, find_prerequisite_cycle
from .models import CurriculumComputation, CurriculumSnapshot, ProgressSignals
from .mutations import (
    RelationshipRemoval,
    SkillRemoval,
    remove_relationship,
    remove_skill,
    seed_baseline_curriculum,
    upsert_relationship,
    upsert_skill,
    upsert_stages,
)
from .records import parse_curriculum_snapshot, parse_progress_signals, parse_record
from .review import (
    apply_progress_override,
    apply_recommendation_update,
    clear_progress_override,
    parse_recommendation_update,
    parse_skill_progress_override,
)
from .weights import DEFAULT_WEIGHTS, CurriculumWeights

__all__ = [
    "CurriculumComputation",
    "CurriculumSnapshot",
    "CurriculumWeights",
    "DEFAULT_WEIGHTS",
    "ProgressSignals",
    "RelationshipRemoval",
    "SkillRemoval",
    "apply_progress_override",
    "apply_recommendation_update",
    "assert_no_invalid_cycles",
    "build_prerequisite_adjacency",
    "build_progress_and_recommendations",
    "clear_progress_override",
    "find_prerequisite_cycle",
    "parse_curriculum_snapshot",
    "parse_progress_signals",
    "parse_record",
    "parse_recommendation_update",
    "parse_skill_progress_override",
    "remove_relationship",
    "remove_skill",
    "seed_baseline_curriculum",
    "upsert_relationship",
    "upsert_skill",
    "upsert_stages",
]
