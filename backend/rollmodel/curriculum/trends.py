"""Relevance boosts derived from the externally computed progress-views report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .models import ProgressViewsReport, Skill
from .normalization import normalize_text_token
from .signals import MIN_TERM_LENGTH
from .weights import DEFAULT_WEIGHTS, CurriculumWeights


@dataclass(frozen=True)
class TrendBoost:
    boost: int = 0
    notes: List[str] = field(default_factory=list)


NO_TREND = TrendBoost()


def _overlaps(skill_name: str, position: str) -> bool:
    """Whole-word containment in either direction; very short labels never match."""
    label = normalize_text_token(position)
    name = normalize_text_token(skill_name)
    if len(label) < MIN_TERM_LENGTH or not name:
        return False
    return f" {label} " in f" {name} " or f" {name} " in f" {label} "


def score_trend_boost(
    skill: Skill,
    progress_views: Optional[ProgressViewsReport],
    weights: CurriculumWeights = DEFAULT_WEIGHTS,
) -> TrendBoost:
    """Additive, unclamped boost; the recommendation scorer clamps downstream."""
    if progress_views is None:
        return NO_TREND

    points = progress_views.outcome_trends.points
    latest = points[-1] if points else None
    notes: List[str] = []
    boost = 0

    if skill.category == "escape" and latest is not None and latest.escapes_success_rate is not None:
        if latest.escapes_success_rate < weights.escape_success_floor:
            boost += weights.escape_trend_boost
            notes.append(f"Escape success trend is {latest.escapes_success_rate * 100:.0f}%.")

    if (
        skill.category == "guard-retention"
        and latest is not None
        and latest.guard_retention_failure_rate is not None
    ):
        if latest.guard_retention_failure_rate > weights.guard_retention_failure_ceiling:
            boost += weights.guard_retention_trend_boost
            notes.append(
                f"Guard retention failure trend is {latest.guard_retention_failure_rate * 100:.0f}%."
            )

    skill_name = skill.name.strip().lower()
    neglected = [cell.position for cell in progress_views.position_heatmap.cells if cell.neglected]
    if skill_name and any(_overlaps(skill_name, position) for position in neglected):
        boost += weights.neglected_position_boost
        notes.append("Matches a neglected position in recent sessions.")

    return TrendBoost(boost=boost, notes=notes)


__all__ = ["NO_TREND", "TrendBoost", "score_trend_boost"]
