"""Curriculum graph, training signal, progress and recommendation models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


SkillCategory = Literal[
    "escape",
    "pass",
    "guard-retention",
    "sweep",
    "submission",
    "takedown",
    "control",
    "transition",
    "concept",
    "other",
]
SKILL_CATEGORIES: tuple[str, ...] = (
    "escape",
    "pass",
    "guard-retention",
    "sweep",
    "submission",
    "takedown",
    "control",
    "transition",
    "concept",
    "other",
)

RelationType = Literal["prerequisite", "supports", "counter", "transition"]

SkillProgressState = Literal[
    "not_started",
    "working",
    "evidence_present",
    "ready_for_review",
    "complete",
    "blocked",
]

ConfidenceLevel = Literal["low", "medium", "high"]
CheckoffStatus = Literal["pending", "earned", "revalidated", "superseded"]
EvidenceMappingStatus = Literal["pending_confirmation", "confirmed", "rejected"]
RecommendationStatus = Literal["draft", "active", "dismissed"]
ActionType = Literal["drill", "concept", "skill"]
CreatedByRole = Literal["system", "athlete", "coach"]
SignalType = Literal["failure-pattern", "checkoff-evidence", "curriculum-dependency", "progress-trend"]


class CurriculumStage(BaseModel):
    """Belt-level grouping of skills, ordered 1..99 per athlete."""

    stage_id: str
    name: str
    order: int
    milestone_skills: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class Skill(BaseModel):
    """Node of the curriculum graph."""

    skill_id: str
    name: str
    category: SkillCategory
    stage_id: str
    prerequisites: List[str] = Field(default_factory=list)
    key_concepts: List[str] = Field(default_factory=list)
    common_failures: List[str] = Field(default_factory=list)
    drills: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SkillRelationship(BaseModel):
    """Directed edge between two skills. Only ``prerequisite`` edges gate progress."""

    from_skill_id: str
    to_skill_id: str
    relation: RelationType
    rationale: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Checkoff(BaseModel):
    checkoff_id: str
    athlete_id: str
    skill_id: str
    evidence_type: str
    status: CheckoffStatus = "pending"
    min_evidence_required: int = Field(default=3, ge=0)
    confirmed_evidence_count: int = Field(default=0, ge=0)
    earned_at: Optional[datetime] = None
    revalidated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CheckoffEvidence(BaseModel):
    evidence_id: str
    checkoff_id: str
    athlete_id: str
    skill_id: str
    entry_id: str
    evidence_type: str
    source: str = "gpt-structured"
    statement: str
    confidence: ConfidenceLevel = "medium"
    mapping_status: EvidenceMappingStatus = "pending_confirmation"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ActionPack(BaseModel):
    """Structured takeaways extracted from a journal entry."""

    wins: List[str] = Field(default_factory=list)
    leaks: List[str] = Field(default_factory=list)
    one_focus: str = ""
    drills: List[str] = Field(default_factory=list)
    positional_requests: List[str] = Field(default_factory=list)
    fallback_decision_guidance: str = ""
    confidence_flags: List[Dict[str, Any]] = Field(default_factory=list)


class FinalizedActionPack(BaseModel):
    action_pack: ActionPack
    finalized_at: Optional[datetime] = None


class SessionReviewPromptSet(BaseModel):
    what_worked: List[str] = Field(default_factory=list)
    what_failed: List[str] = Field(default_factory=list)
    what_to_ask_coach: List[str] = Field(default_factory=list)
    what_to_drill_solo: List[str] = Field(default_factory=list)


class SessionReview(BaseModel):
    prompt_set: SessionReviewPromptSet = Field(default_factory=SessionReviewPromptSet)
    one_thing: str = ""


class FinalizedSessionReview(BaseModel):
    review: SessionReview
    finalized_at: Optional[datetime] = None


class Entry(BaseModel):
    """Journal entry, reduced to the fields the curriculum engine reads."""

    entry_id: str
    athlete_id: Optional[str] = None
    created_at: datetime
    tags: List[str] = Field(default_factory=list)
    action_pack_draft: Optional[ActionPack] = None
    action_pack_final: Optional[FinalizedActionPack] = None
    session_review_draft: Optional[SessionReview] = None
    session_review_final: Optional[FinalizedSessionReview] = None

    def action_pack(self) -> Optional[ActionPack]:
        if self.action_pack_final is not None:
            return self.action_pack_final.action_pack
        return self.action_pack_draft

    def session_review(self) -> Optional[SessionReview]:
        if self.session_review_final is not None:
            return self.session_review_final.review
        return self.session_review_draft


class OutcomeTrendPoint(BaseModel):
    date: Optional[str] = None
    escapes_success_rate: Optional[float] = None
    guard_retention_failure_rate: Optional[float] = None
    escapes_successes: int = 0
    escape_attempts: int = 0
    guard_retention_failures: int = 0
    guard_retention_observations: int = 0


class OutcomeTrends(BaseModel):
    points: List[OutcomeTrendPoint] = Field(default_factory=list)


class PositionHeatmapCell(BaseModel):
    position: str
    trained_count: int = 0
    low_confidence_count: int = 0
    neglected: bool = False
    last_seen_at: Optional[datetime] = None


class PositionHeatmap(BaseModel):
    cells: List[PositionHeatmapCell] = Field(default_factory=list)
    max_trained_count: int = 0
    neglected_threshold: int = 0


class ProgressViewsReport(BaseModel):
    """Externally computed trend and heatmap report used for trend boosts."""

    athlete_id: Optional[str] = None
    generated_at: Optional[datetime] = None
    outcome_trends: OutcomeTrends = Field(default_factory=OutcomeTrends)
    position_heatmap: PositionHeatmap = Field(default_factory=PositionHeatmap)


class SkillProgress(BaseModel):
    """Derived per-skill progress; only the manual override fields are hand-authored."""

    athlete_id: str
    skill_id: str
    state: SkillProgressState
    evidence_count: int = Field(default=0, ge=0)
    confidence: ConfidenceLevel = "low"
    rationale: List[str] = Field(default_factory=list)
    source_entry_ids: List[str] = Field(default_factory=list)
    source_evidence_ids: List[str] = Field(default_factory=list)
    suggested_next_skill_ids: List[str] = Field(default_factory=list)
    last_evaluated_at: datetime
    manual_override_state: Optional[SkillProgressState] = None
    manual_override_reason: Optional[str] = None
    coach_reviewed_by: Optional[str] = None
    coach_reviewed_at: Optional[datetime] = None


class SourceEvidence(BaseModel):
    entry_id: str
    excerpt: str
    signal_type: SignalType
    created_at: Optional[datetime] = None
    evidence_id: Optional[str] = None


class CurriculumRecommendation(BaseModel):
    """Scored, explainable next action for one skill."""

    athlete_id: str
    recommendation_id: str
    skill_id: str
    source_skill_id: str
    action_type: ActionType
    action_title: str
    action_detail: str = ""
    status: RecommendationStatus = "draft"
    relevance_score: int = Field(default=5, ge=0, le=100)
    impact_score: int = Field(default=5, ge=0, le=100)
    effort_score: int = Field(default=5, ge=0, le=100)
    score: int = Field(default=1, ge=0, le=100)
    rationale: str = ""
    why_now: str = ""
    expected_impact: str = ""
    source_evidence: List[SourceEvidence] = Field(default_factory=list)
    supporting_next_skill_ids: List[str] = Field(default_factory=list)
    missing_prerequisite_skill_ids: List[str] = Field(default_factory=list)
    generated_at: datetime
    updated_at: datetime
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    coach_note: Optional[str] = None
    created_by_role: CreatedByRole = "system"


class CurriculumSnapshot(BaseModel):
    """Everything persisted for one athlete's curriculum."""

    stages: List[CurriculumStage] = Field(default_factory=list)
    skills: List[Skill] = Field(default_factory=list)
    relationships: List[SkillRelationship] = Field(default_factory=list)
    progressions: List[SkillProgress] = Field(default_factory=list)
    recommendations: List[CurriculumRecommendation] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.stages or self.skills or self.relationships)

    def skill_ids(self) -> set[str]:
        return {skill.skill_id for skill in self.skills}


class ProgressSignals(BaseModel):
    checkoffs: List[Checkoff] = Field(default_factory=list)
    evidence: List[CheckoffEvidence] = Field(default_factory=list)
    entries: List[Entry] = Field(default_factory=list)


class CurriculumComputation(BaseModel):
    """Result of one recompute run."""

    athlete_id: str
    generated_at: datetime
    progressions: List[SkillProgress] = Field(default_factory=list)
    recommendations: List[CurriculumRecommendation] = Field(default_factory=list)


__all__ = [
    "ActionPack",
    "ActionType",
    "Checkoff",
    "CheckoffEvidence",
    "CheckoffStatus",
    "ConfidenceLevel",
    "CreatedByRole",
    "CurriculumComputation",
    "CurriculumRecommendation",
    "CurriculumSnapshot",
    "CurriculumStage",
    "Entry",
    "EvidenceMappingStatus",
    "FinalizedActionPack",
    "FinalizedSessionReview",
    "OutcomeTrendPoint",
    "OutcomeTrends",
    "PositionHeatmap",
    "PositionHeatmapCell",
    "ProgressSignals",
    "ProgressViewsReport",
    "RecommendationStatus",
    "RelationType",
    "SKILL_CATEGORIES",
    "SessionReview",
    "SessionReviewPromptSet",
    "SignalType",
    "Skill",
    "SkillCategory",
    "SkillProgress",
    "SkillProgressState",
    "SkillRelationship",
    "SourceEvidence",
]
