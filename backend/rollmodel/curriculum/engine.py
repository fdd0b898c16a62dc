"""Top-level curriculum recompute: validate the graph, derive progress, recommend."""

from __future__ import annotations

import logging
from datetime import datetime
from time import perf_counter
from typing import Optional, Sequence

from ..telemetry import CURRICULUM_RECOMPUTED, emit_event
from .graph import assert_no_invalid_cycles
from .models import (
    Checkoff,
    CheckoffEvidence,
    CurriculumComputation,
    CurriculumRecommendation,
    Entry,
    ProgressViewsReport,
    Skill,
    SkillProgress,
    SkillRelationship,
)
from .progress import derive_skill_progress
from .recommendations import build_curriculum_recommendations
from .weights import DEFAULT_WEIGHTS, CurriculumWeights

logger = logging.getLogger(__name__)


def build_progress_and_recommendations(
    *,
    athlete_id: str,
    skills: Sequence[Skill],
    relationships: Sequence[SkillRelationship],
    checkoffs: Sequence[Checkoff],
    evidence: Sequence[CheckoffEvidence],
    entries: Sequence[Entry],
    now: datetime,
    progress_views: Optional[ProgressViewsReport] = None,
    existing_progress: Optional[Sequence[SkillProgress]] = None,
    existing_recommendations: Optional[Sequence[CurriculumRecommendation]] = None,
    weights: CurriculumWeights = DEFAULT_WEIGHTS,
) -> CurriculumComputation:
    """Recompute every progress record and the ranked recommendation list.

    Pure over its inputs: the same snapshot and ``now`` always yield the same
    result, so callers can persist both lists as last-write-wins upserts keyed
    by skill id and recommendation id. A prerequisite cycle raises
    ``CurriculumValidationError`` before anything is derived.
    """
    started_at = perf_counter()
    assert_no_invalid_cycles(skills, relationships)

    progressions = derive_skill_progress(
        athlete_id=athlete_id,
        skills=skills,
        relationships=relationships,
        checkoffs=checkoffs,
        evidence=evidence,
        entries=entries,
        now=now,
        existing_progress=existing_progress,
        weights=weights,
    )
    recommendations = build_curriculum_recommendations(
        athlete_id=athlete_id,
        now=now,
        skills=skills,
        relationships=relationships,
        progressions=progressions,
        evidence=evidence,
        entries=entries,
        progress_views=progress_views,
        existing_recommendations=existing_recommendations,
        weights=weights,
    )

    latency_ms = round((perf_counter() - started_at) * 1000, 2)
    logger.info(
        "Recomputed curriculum for athlete=%s skills=%d recommendations=%d in %.2fms",
        athlete_id,
        len(progressions),
        len(recommendations),
        latency_ms,
    )
    emit_event(
        CURRICULUM_RECOMPUTED,
        athlete_id=athlete_id,
        skill_count=len(progressions),
        recommendation_count=len(recommendations),
        blocked_count=sum(1 for item in progressions if item.state == "blocked"),
        latency_ms=latency_ms,
    )
    return CurriculumComputation(
        athlete_id=athlete_id,
        generated_at=now,
        progressions=progressions,
        recommendations=recommendations,
    )


__all__ = ["build_progress_and_recommendations"]
