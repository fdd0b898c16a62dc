"""Tunable constants for progress derivation, trend boosts and recommendation scoring."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field


class CurriculumWeights(BaseModel):
    """Scoring configuration passed into the engine; defaults are the production values."""

    model_config = ConfigDict(frozen=True)

    # progress derivation
    evidence_ready_threshold: int = Field(default=3, ge=1)
    high_confidence_evidence: int = Field(default=4, ge=1)
    medium_confidence_evidence: int = Field(default=2, ge=1)
    rationale_evidence_statements: int = Field(default=2, ge=0)
    rationale_entry_mentions: int = Field(default=2, ge=0)
    entry_mention_window: int = Field(default=4, ge=1)

    # relevance
    failure_relevance_weight: int = 14
    evidence_relevance_weight: int = 8
    recent_failure_days: int = 7
    fresh_failure_days: int = 21
    recent_failure_bonus: int = 12
    fresh_failure_bonus: int = 7
    stale_failure_bonus: int = 3
    default_recency_days: int = 120

    # impact
    failure_impact_weight: int = 16
    ready_for_review_bonus: int = 18
    evidence_present_bonus: int = 12
    default_state_bonus: int = 7

    # effort
    drill_effort: int = 18
    concept_effort: int = 32
    skill_effort: int = 48
    missing_prerequisite_effort: int = 12

    # total score
    relevance_share: float = 0.5
    impact_share: float = 0.45
    effort_penalty: float = 0.2

    component_floor: int = 5
    component_ceiling: int = 100
    score_floor: int = 1
    score_ceiling: int = 100

    # trend boosts
    escape_success_floor: float = 0.5
    escape_trend_boost: int = 15
    guard_retention_failure_ceiling: float = 0.4
    guard_retention_trend_boost: int = 20
    neglected_position_boost: int = 10

    # list bounds
    max_relevant_evidence: int = Field(default=3, ge=0)
    max_failure_evidence: int = Field(default=3, ge=0)
    max_source_evidence: int = Field(default=6, ge=0)
    max_recommendations: int = Field(default=12, ge=1)


DEFAULT_WEIGHTS = CurriculumWeights()


def clamp(value: float, minimum: int, maximum: int) -> int:
    return int(max(minimum, min(maximum, value)))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


__all__ = ["CurriculumWeights", "DEFAULT_WEIGHTS", "clamp", "round_half_up"]
