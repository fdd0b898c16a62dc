"""Coach review actions: manual progress overrides and recommendation edits."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, model_validator

from ..errors import CurriculumForbiddenError, CurriculumNotFoundError
from ..telemetry import CURRICULUM_PROGRESS_OVERRIDDEN, CURRICULUM_RECOMMENDATION_REVIEWED, emit_event
from .models import (
    ActionType,
    CurriculumRecommendation,
    RecommendationStatus,
    SkillProgress,
    SkillProgressState,
)
from .normalization import normalize_id, slugify
from .payloads import NonEmptyStr, validate_payload

logger = logging.getLogger(__name__)

COACH_ROLES = frozenset({"coach", "admin"})


class ProgressOverride(BaseModel):
    manual_override_state: SkillProgressState
    manual_override_reason: NonEmptyStr


class RecommendationUpdate(BaseModel):
    status: Optional[RecommendationStatus] = None
    action_type: Optional[ActionType] = None
    action_title: Optional[NonEmptyStr] = None
    action_detail: Optional[NonEmptyStr] = None
    rationale: Optional[NonEmptyStr] = None
    coach_note: Optional[NonEmptyStr] = None

    @model_validator(mode="after")
    def _require_an_edit(self) -> "RecommendationUpdate":
        if not self.model_dump(exclude_none=True):
            raise ValueError("recommendation update must include at least one editable field.")
        return self


class RecommendationReview(BaseModel):
    """Review body: the edit arrives under ``recommendation``."""

    recommendation: RecommendationUpdate


def parse_skill_progress_override(raw: Any) -> ProgressOverride:
    return validate_payload(ProgressOverride, raw)


def find_progress(progressions: Iterable[SkillProgress], skill_id: str) -> SkillProgress:
    key = normalize_id(skill_id, "skill_id")
    for progress in progressions:
        if progress.skill_id == key:
            return progress
    raise CurriculumNotFoundError(f'Progress record for skill "{key}" was not found. Run recompute first.')


def apply_progress_override(
    progress: SkillProgress,
    override: ProgressOverride,
    *,
    reviewer_id: str,
    now: datetime,
) -> SkillProgress:
    """Pin a skill's state until the override is cleared; recomputes keep it."""
    updated = progress.model_copy(
        update={
            "state": override.manual_override_state,
            "manual_override_state": override.manual_override_state,
            "manual_override_reason": override.manual_override_reason,
            "coach_reviewed_by": reviewer_id,
            "coach_reviewed_at": now,
            "last_evaluated_at": now,
        }
    )
    emit_event(
        CURRICULUM_PROGRESS_OVERRIDDEN,
        athlete_id=progress.athlete_id,
        skill_id=progress.skill_id,
        previous_state=progress.state,
        state=override.manual_override_state,
        reviewer_id=reviewer_id,
    )
    return updated


def clear_progress_override(progress: SkillProgress, *, reviewer_id: str, now: datetime) -> SkillProgress:
    if progress.manual_override_state is None and progress.manual_override_reason is None:
        return progress
    logger.info("Clearing manual override for athlete=%s skill=%s", progress.athlete_id, progress.skill_id)
    return progress.model_copy(
        update={
            "manual_override_state": None,
            "manual_override_reason": None,
            "coach_reviewed_by": reviewer_id,
            "coach_reviewed_at": now,
            "last_evaluated_at": now,
        }
    )


def parse_recommendation_update(raw: Any) -> RecommendationUpdate:
    return validate_payload(RecommendationReview, raw).recommendation


def apply_recommendation_update(
    current: CurriculumRecommendation,
    update: RecommendationUpdate,
    *,
    reviewer_id: str,
    reviewer_roles: Sequence[str],
    acting_as_coach: bool,
    now: datetime,
) -> CurriculumRecommendation:
    """Apply a review edit; the engine keeps coach-owned active actions on recompute."""
    roles = set(reviewer_roles)
    is_coach = bool(roles & COACH_ROLES)
    if acting_as_coach and not is_coach:
        raise CurriculumForbiddenError("Only coach/admin may update recommendations for another athlete.")

    changes = update.model_dump(exclude_none=True)
    changes["updated_at"] = now
    if update.status == "active":
        changes["approved_by"] = reviewer_id
        changes["approved_at"] = now
    if acting_as_coach or "coach" in roles:
        changes["created_by_role"] = "coach"
    elif update.status == "active":
        changes["created_by_role"] = "athlete"

    reviewed = current.model_copy(update=changes)
    emit_event(
        CURRICULUM_RECOMMENDATION_REVIEWED,
        athlete_id=current.athlete_id,
        recommendation_id=current.recommendation_id,
        status=reviewed.status,
        created_by_role=reviewed.created_by_role,
        reviewer_id=reviewer_id,
    )
    return reviewed


def find_recommendation(
    recommendations: Iterable[CurriculumRecommendation],
    recommendation_id: str,
) -> CurriculumRecommendation:
    key = ":".join(slugify(part) for part in recommendation_id.split(":"))
    for recommendation in recommendations:
        if recommendation.recommendation_id == key:
            return recommendation
    raise CurriculumNotFoundError(f'Recommendation "{key}" was not found.')


__all__ = [
    "COACH_ROLES",
    "ProgressOverride",
    "RecommendationReview",
    "RecommendationUpdate",
    "apply_progress_override",
    "apply_recommendation_update",
    "clear_progress_override",
    "find_progress",
    "find_recommendation",
    "parse_recommendation_update",
    "parse_skill_progress_override",
]
