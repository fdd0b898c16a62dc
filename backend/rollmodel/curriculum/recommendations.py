"""Recommendation selection, scoring and merge against persisted recommendations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .graph import build_prerequisite_adjacency
from .models import (
    ActionType,
    CheckoffEvidence,
    CurriculumRecommendation,
    Entry,
    ProgressViewsReport,
    Skill,
    SkillProgress,
    SkillProgressState,
    SkillRelationship,
    SourceEvidence,
)
from .normalization import normalize_id, normalize_text_token, slugify
from .progress import usable_evidence_by_skill
from .signals import FailureSignal, SkillMatcher, extract_failure_signals
from .trends import score_trend_boost
from .weights import DEFAULT_WEIGHTS, CurriculumWeights, clamp, round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedAction:
    action_type: ActionType
    action_title: str
    action_detail: str


@dataclass(frozen=True)
class ScoreBreakdown:
    relevance: int
    impact: int
    effort: int
    score: int


def recommendation_key(skill_id: str, action_type: str, action_title: str) -> str:
    """Deterministic identity of a (skill, action) pair.

    Titles without ASCII letters or digits (non-Latin drill names, say) map to
    the ``step`` slug.
    """
    return f"{normalize_id(skill_id, 'skill_id')}:{action_type}:{slugify(action_title) or 'step'}"


def select_smallest_action(skill: Skill, matched_failure_text: Sequence[str]) -> SelectedAction:
    """Prefer the cheapest, most specific intervention available for the skill."""
    joined = " ".join(matched_failure_text).lower()
    matching_drill: Optional[str] = None
    for candidate in skill.drills:
        token = normalize_text_token(candidate)
        if token and token in joined:
            matching_drill = candidate
            break
    drill = matching_drill or (skill.drills[0] if skill.drills else None)
    if drill:
        return SelectedAction(
            action_type="drill",
            action_title=drill,
            action_detail=f"Run short reps on {drill} to directly target this recurring failure.",
        )

    if skill.key_concepts:
        concept = skill.key_concepts[0]
        return SelectedAction(
            action_type="concept",
            action_title=concept,
            action_detail=f"Reinforce {concept} before adding complexity.",
        )

    return SelectedAction(
        action_type="skill",
        action_title=skill.name,
        action_detail=f"Keep training {skill.name} with constrained rounds until failure frequency drops.",
    )


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def days_since(value: Optional[datetime], now: datetime, default: int = 120) -> int:
    if value is None:
        return default
    delta = _as_utc(now) - _as_utc(value)
    return max(0, int(delta.total_seconds() // 86400))


def score_recommendation(
    *,
    failure_count: int,
    evidence_count: int,
    recency_days: int,
    state: SkillProgressState,
    action_type: ActionType,
    missing_prerequisite_count: int,
    trend_boost: int,
    weights: CurriculumWeights = DEFAULT_WEIGHTS,
) -> ScoreBreakdown:
    if recency_days <= weights.recent_failure_days:
        recency_bonus = weights.recent_failure_bonus
    elif recency_days <= weights.fresh_failure_days:
        recency_bonus = weights.fresh_failure_bonus
    else:
        recency_bonus = weights.stale_failure_bonus

    if state == "ready_for_review":
        state_bonus = weights.ready_for_review_bonus
    elif state == "evidence_present":
        state_bonus = weights.evidence_present_bonus
    else:
        state_bonus = weights.default_state_bonus

    base_effort = {
        "drill": weights.drill_effort,
        "concept": weights.concept_effort,
        "skill": weights.skill_effort,
    }[action_type]

    floor, ceiling = weights.component_floor, weights.component_ceiling
    relevance = clamp(
        round_half_up(
            failure_count * weights.failure_relevance_weight
            + evidence_count * weights.evidence_relevance_weight
            + recency_bonus
            + trend_boost
        ),
        floor,
        ceiling,
    )
    impact = clamp(
        round_half_up(failure_count * weights.failure_impact_weight + state_bonus + trend_boost),
        floor,
        ceiling,
    )
    effort = clamp(base_effort + missing_prerequisite_count * weights.missing_prerequisite_effort, floor, ceiling)
    score = clamp(
        round_half_up(
            relevance * weights.relevance_share + impact * weights.impact_share - effort * weights.effort_penalty
        ),
        weights.score_floor,
        weights.score_ceiling,
    )
    return ScoreBreakdown(relevance=relevance, impact=impact, effort=effort, score=score)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def _expected_impact(action_type: ActionType) -> str:
    if action_type == "drill":
        return "Low-effort reps should reduce repeat failures in the next sessions."
    if action_type == "concept":
        return "Reinforcing this concept should improve consistency before escalating complexity."
    return "Advancing this skill should unlock adjacent curriculum nodes."


def _sort_key(recommendation: CurriculumRecommendation) -> tuple[int, int, str]:
    return (0 if recommendation.status == "active" else 1, -recommendation.score, recommendation.recommendation_id)


def build_curriculum_recommendations(
    *,
    athlete_id: str,
    now: datetime,
    skills: Sequence[Skill],
    relationships: Sequence[SkillRelationship],
    progressions: Sequence[SkillProgress],
    evidence: Sequence[CheckoffEvidence],
    entries: Sequence[Entry],
    progress_views: Optional[ProgressViewsReport] = None,
    existing_recommendations: Optional[Sequence[CurriculumRecommendation]] = None,
    weights: CurriculumWeights = DEFAULT_WEIGHTS,
) -> List[CurriculumRecommendation]:
    progress_by_skill = {item.skill_id: item for item in progressions}
    adjacency = build_prerequisite_adjacency(skills, relationships)
    existing_by_id: Dict[str, CurriculumRecommendation] = {
        item.recommendation_id: item for item in existing_recommendations or []
    }
    evidence_by_skill = usable_evidence_by_skill(evidence)
    failure_signals = extract_failure_signals(entries)

    latest_entry = max(entries, key=lambda entry: entry.created_at, default=None)
    dependency_entry_id = latest_entry.entry_id if latest_entry else "curriculum"
    trend_entry_id = latest_entry.entry_id if latest_entry else "trend"

    recommendations: List[CurriculumRecommendation] = []

    for skill in skills:
        progress = progress_by_skill.get(skill.skill_id)
        if progress is None or progress.state == "complete":
            continue

        matched: List[FailureSignal] = SkillMatcher(skill).matching_signals(failure_signals)
        relevant_evidence = evidence_by_skill.get(skill.skill_id, [])[: weights.max_relevant_evidence]
        missing_prerequisites = [
            prereq_id
            for prereq_id in adjacency.get(skill.skill_id, [])
            if progress_by_skill.get(prereq_id) is None or progress_by_skill[prereq_id].state != "complete"
        ]
        supporting_next = list(
            dict.fromkeys(relation.to_skill_id for relation in relationships if relation.from_skill_id == skill.skill_id)
        )
        trend = score_trend_boost(skill, progress_views, weights)

        failure_count = len(matched)
        evidence_count = len(relevant_evidence)
        if failure_count == 0 and evidence_count == 0 and not missing_prerequisites and trend.boost == 0:
            continue

        recency_days = (
            min(days_since(signal.created_at, now, weights.default_recency_days) for signal in matched)
            if matched
            else weights.default_recency_days
        )
        action = select_smallest_action(skill, [signal.excerpt for signal in matched])
        breakdown = score_recommendation(
            failure_count=failure_count,
            evidence_count=evidence_count,
            recency_days=recency_days,
            state=progress.state,
            action_type=action.action_type,
            missing_prerequisite_count=len(missing_prerequisites),
            trend_boost=trend.boost,
            weights=weights,
        )

        recommendation_id = recommendation_key(skill.skill_id, action.action_type, action.action_title)
        existing = existing_by_id.get(recommendation_id)
        coach_owned = existing is not None and existing.status == "active" and existing.created_by_role == "coach"
        if coach_owned and existing is not None:
            action = SelectedAction(
                action_type=existing.action_type,
                action_title=existing.action_title,
                action_detail=existing.action_detail,
            )

        source_evidence: List[SourceEvidence] = [
            SourceEvidence(
                entry_id=signal.entry_id,
                created_at=signal.created_at,
                excerpt=signal.excerpt,
                signal_type="failure-pattern",
            )
            for signal in matched[: weights.max_failure_evidence]
        ]
        source_evidence.extend(
            SourceEvidence(
                entry_id=item.entry_id,
                created_at=item.created_at,
                evidence_id=item.evidence_id,
                excerpt=item.statement,
                signal_type="checkoff-evidence",
            )
            for item in relevant_evidence
        )
        if missing_prerequisites:
            source_evidence.append(
                SourceEvidence(
                    entry_id=dependency_entry_id,
                    excerpt=f"Missing prerequisites: {', '.join(missing_prerequisites)}",
                    signal_type="curriculum-dependency",
                )
            )
        source_evidence.extend(
            SourceEvidence(entry_id=trend_entry_id, excerpt=note, signal_type="progress-trend")
            for note in trend.notes
        )

        rationale_parts = []
        if failure_count:
            rationale_parts.append(f"{_plural(failure_count, 'recurring failure signal')} on {skill.name}")
        if evidence_count:
            rationale_parts.append(f"{_plural(evidence_count, 'supporting evidence item')}")
        if missing_prerequisites:
            rationale_parts.append(f"blocked by {_plural(len(missing_prerequisites), 'prerequisite skill')}")
        if trend.notes:
            rationale_parts.append(trend.notes[0])

        if failure_count:
            why_now = (
                f"Recent entries show this failure {_plural(failure_count, 'time')} in the current training window."
            )
        else:
            why_now = "Curriculum dependency and progress state indicate this is a high-leverage next step."

        recommendations.append(
            CurriculumRecommendation(
                athlete_id=athlete_id,
                recommendation_id=recommendation_id,
                skill_id=skill.skill_id,
                source_skill_id=skill.skill_id,
                action_type=action.action_type,
                action_title=action.action_title,
                action_detail=action.action_detail,
                status=existing.status if existing else "draft",
                relevance_score=breakdown.relevance,
                impact_score=breakdown.impact,
                effort_score=breakdown.effort,
                score=breakdown.score,
                rationale="; ".join(rationale_parts),
                why_now=why_now,
                expected_impact=_expected_impact(action.action_type),
                source_evidence=source_evidence[: weights.max_source_evidence],
                supporting_next_skill_ids=supporting_next,
                missing_prerequisite_skill_ids=missing_prerequisites,
                generated_at=existing.generated_at if existing else now,
                updated_at=now,
                approved_by=existing.approved_by if existing else None,
                approved_at=existing.approved_at if existing else None,
                coach_note=existing.coach_note if existing else None,
                created_by_role=existing.created_by_role if existing else "system",
            )
        )

    produced_ids = {item.recommendation_id for item in recommendations}
    for existing in existing_recommendations or []:
        if existing.status == "active" and existing.recommendation_id not in produced_ids:
            logger.debug("Carrying forward active recommendation %s", existing.recommendation_id)
            recommendations.append(existing.model_copy(update={"updated_at": now}))
            produced_ids.add(existing.recommendation_id)

    recommendations.sort(key=_sort_key)
    return recommendations[: weights.max_recommendations]


__all__ = [
    "ScoreBreakdown",
    "SelectedAction",
    "build_curriculum_recommendations",
    "days_since",
    "recommendation_key",
    "score_recommendation",
    "select_smallest_action",
]
