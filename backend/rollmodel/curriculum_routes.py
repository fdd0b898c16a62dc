"""Curriculum REST endpoints.

The router is stateless: every request carries the athlete's current snapshot
and gets back the next one. Persisting the result is the caller's job.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .curriculum.engine import build_progress_and_recommendations
from .curriculum.graph import assert_no_invalid_cycles
from .curriculum.models import (
    CurriculumComputation,
    CurriculumRecommendation,
    CurriculumSnapshot,
    ProgressSignals,
    ProgressViewsReport,
    SkillProgress,
    SkillRelationship,
)
from .curriculum.mutations import (
    remove_relationship,
    remove_skill,
    seed_baseline_curriculum,
    upsert_relationship,
    upsert_skill,
    upsert_stages,
)
from .curriculum.payloads import RelationshipPayload, SkillPayload, StagePayload
from .curriculum.review import (
    ProgressOverride,
    RecommendationReview,
    apply_progress_override,
    apply_recommendation_update,
    clear_progress_override,
    find_progress,
    find_recommendation,
)
from .curriculum.weights import CurriculumWeights
from .errors import CurriculumError

router = APIRouter(prefix="/api/curriculum", tags=["curriculum"])
logger = logging.getLogger(__name__)


class RecomputeRequest(BaseModel):
    athlete_id: Optional[str] = None
    snapshot: CurriculumSnapshot = Field(default_factory=CurriculumSnapshot)
    signals: ProgressSignals = Field(default_factory=ProgressSignals)
    progress_views: Optional[ProgressViewsReport] = None
    now: Optional[datetime] = None


class SnapshotRequest(BaseModel):
    snapshot: CurriculumSnapshot = Field(default_factory=CurriculumSnapshot)


class StagesRequest(SnapshotRequest):
    stages: List[StagePayload]


class SkillRequest(SnapshotRequest):
    skill: SkillPayload


class RelationshipRequest(SnapshotRequest):
    relationship: RelationshipPayload


class SeedRequest(SnapshotRequest):
    force: bool = False


class ProgressOverrideRequest(BaseModel):
    reviewer_id: str = Field(..., min_length=1)
    progressions: List[SkillProgress] = Field(default_factory=list)
    override: Optional[ProgressOverride] = None


class RecommendationReviewRequest(BaseModel):
    reviewer_id: str = Field(..., min_length=1)
    reviewer_roles: List[str] = Field(default_factory=list)
    acting_as_coach: bool = False
    recommendations: List[CurriculumRecommendation] = Field(default_factory=list)
    update: RecommendationReview


class ValidationResponse(BaseModel):
    valid: bool
    skill_count: int
    relationship_count: int


class RelationshipRemovalResponse(BaseModel):
    from_skill_id: str
    to_skill_id: str
    removed: bool
    snapshot: CurriculumSnapshot


class SkillRemovalResponse(BaseModel):
    skill_id: str
    removed_relationships: List[SkillRelationship]
    removed_progress: bool
    snapshot: CurriculumSnapshot


def _http_error(exc: CurriculumError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/recompute", response_model=CurriculumComputation, status_code=status.HTTP_200_OK)
def recompute_curriculum(
    payload: RecomputeRequest,
    settings: Settings = Depends(get_settings),
) -> CurriculumComputation:
    athlete_id = (payload.athlete_id or settings.default_athlete_id or "").strip()
    if not athlete_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_REQUEST", "message": "athlete_id is required."},
        )
    entries = sorted(payload.signals.entries, key=lambda entry: entry.created_at, reverse=True)
    snapshot = payload.snapshot
    try:
        return build_progress_and_recommendations(
            athlete_id=athlete_id,
            skills=snapshot.skills,
            relationships=snapshot.relationships,
            checkoffs=payload.signals.checkoffs,
            evidence=payload.signals.evidence,
            entries=entries[: settings.recent_entry_limit],
            now=payload.now or _utcnow(),
            progress_views=payload.progress_views,
            existing_progress=snapshot.progressions,
            existing_recommendations=snapshot.recommendations,
            weights=settings.curriculum_weights(),
        )
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.post("/validate", response_model=ValidationResponse, status_code=status.HTTP_200_OK)
def validate_curriculum(payload: SnapshotRequest) -> ValidationResponse:
    try:
        assert_no_invalid_cycles(payload.snapshot.skills, payload.snapshot.relationships)
    except CurriculumError as exc:
        raise _http_error(exc) from exc
    return ValidationResponse(
        valid=True,
        skill_count=len(payload.snapshot.skills),
        relationship_count=len(payload.snapshot.relationships),
    )


@router.post("/stages", response_model=CurriculumSnapshot, status_code=status.HTTP_200_OK)
def upsert_curriculum_stages(payload: StagesRequest) -> CurriculumSnapshot:
    try:
        stages = [stage.to_stage() for stage in payload.stages]
        return upsert_stages(payload.snapshot, stages, _utcnow())
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.post("/skills", response_model=CurriculumSnapshot, status_code=status.HTTP_200_OK)
def create_curriculum_skill(payload: SkillRequest) -> CurriculumSnapshot:
    try:
        skill = payload.skill.to_skill()
        return upsert_skill(payload.snapshot, skill, _utcnow())
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.put("/skills/{skill_id}", response_model=CurriculumSnapshot, status_code=status.HTTP_200_OK)
def update_curriculum_skill(skill_id: str, payload: SkillRequest) -> CurriculumSnapshot:
    try:
        skill = payload.skill.to_skill(skill_id_from_path=skill_id)
        return upsert_skill(payload.snapshot, skill, _utcnow())
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.post("/skills/{skill_id}/remove", response_model=SkillRemovalResponse, status_code=status.HTTP_200_OK)
def remove_curriculum_skill(skill_id: str, payload: SnapshotRequest) -> SkillRemovalResponse:
    try:
        removal = remove_skill(payload.snapshot, skill_id)
    except CurriculumError as exc:
        raise _http_error(exc) from exc
    return SkillRemovalResponse(
        skill_id=removal.skill_id,
        removed_relationships=removal.removed_relationships,
        removed_progress=removal.removed_progress,
        snapshot=removal.snapshot,
    )


@router.post("/relationships", response_model=CurriculumSnapshot, status_code=status.HTTP_200_OK)
def upsert_curriculum_relationship(payload: RelationshipRequest) -> CurriculumSnapshot:
    try:
        relationship = payload.relationship.to_relationship()
        return upsert_relationship(payload.snapshot, relationship, _utcnow())
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/relationships/{from_skill_id}/{to_skill_id}/remove",
    response_model=RelationshipRemovalResponse,
    status_code=status.HTTP_200_OK,
)
def remove_curriculum_relationship(
    from_skill_id: str,
    to_skill_id: str,
    payload: SnapshotRequest,
) -> RelationshipRemovalResponse:
    try:
        removal = remove_relationship(payload.snapshot, from_skill_id, to_skill_id)
    except CurriculumError as exc:
        raise _http_error(exc) from exc
    return RelationshipRemovalResponse(
        from_skill_id=removal.from_skill_id,
        to_skill_id=removal.to_skill_id,
        removed=removal.removed,
        snapshot=removal.snapshot,
    )


@router.post("/seed", response_model=CurriculumSnapshot, status_code=status.HTTP_200_OK)
def seed_curriculum(payload: SeedRequest) -> CurriculumSnapshot:
    try:
        return seed_baseline_curriculum(payload.snapshot, _utcnow(), force=payload.force)
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.post("/progress/{skill_id}/override", response_model=SkillProgress, status_code=status.HTTP_200_OK)
def override_skill_progress(skill_id: str, payload: ProgressOverrideRequest) -> SkillProgress:
    """Apply a manual state override; a null ``override`` clears it."""
    now = _utcnow()
    try:
        progress = find_progress(payload.progressions, skill_id)
        if payload.override is None:
            return clear_progress_override(progress, reviewer_id=payload.reviewer_id, now=now)
        return apply_progress_override(progress, payload.override, reviewer_id=payload.reviewer_id, now=now)
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/recommendations/{recommendation_id}/review",
    response_model=CurriculumRecommendation,
    status_code=status.HTTP_200_OK,
)
def review_recommendation(recommendation_id: str, payload: RecommendationReviewRequest) -> CurriculumRecommendation:
    try:
        current = find_recommendation(payload.recommendations, recommendation_id)
        return apply_recommendation_update(
            current,
            payload.update.recommendation,
            reviewer_id=payload.reviewer_id,
            reviewer_roles=payload.reviewer_roles,
            acting_as_coach=payload.acting_as_coach,
            now=_utcnow(),
        )
    except CurriculumError as exc:
        raise _http_error(exc) from exc


@router.get("/weights", response_model=CurriculumWeights, status_code=status.HTTP_200_OK)
def curriculum_weights(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    if not settings.debug_endpoints:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return settings.curriculum_weights().model_dump()


__all__ = ["router"]
