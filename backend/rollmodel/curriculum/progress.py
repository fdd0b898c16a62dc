"""Per-skill progress derivation from checkoffs, evidence, prerequisites and overrides."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .graph import PrerequisiteAdjacency, build_prerequisite_adjacency
from .models import (
    Checkoff,
    CheckoffEvidence,
    ConfidenceLevel,
    Entry,
    Skill,
    SkillProgress,
    SkillProgressState,
    SkillRelationship,
)
from .normalization import normalize_string_list
from .signals import entry_mentions_by_skill
from .weights import DEFAULT_WEIGHTS, CurriculumWeights

logger = logging.getLogger(__name__)

EARNED_STATUSES = frozenset({"earned", "revalidated"})


def recent_first(evidence: Iterable[CheckoffEvidence]) -> List[CheckoffEvidence]:
    return sorted(
        evidence,
        key=lambda item: item.created_at.timestamp() if item.created_at else float("-inf"),
        reverse=True,
    )


def usable_evidence_by_skill(evidence: Iterable[CheckoffEvidence]) -> Dict[str, List[CheckoffEvidence]]:
    """Group evidence by skill, most recent first, leaving out rejected mappings."""
    grouped: Dict[str, List[CheckoffEvidence]] = defaultdict(list)
    for item in evidence:
        if item.mapping_status == "rejected":
            continue
        grouped[item.skill_id].append(item)
    return {skill_id: recent_first(items) for skill_id, items in grouped.items()}


def confidence_from_evidence_count(count: int, weights: CurriculumWeights = DEFAULT_WEIGHTS) -> ConfidenceLevel:
    if count >= weights.high_confidence_evidence:
        return "high"
    if count >= weights.medium_confidence_evidence:
        return "medium"
    return "low"


def state_from_signals(
    evidence_count: int,
    pending_count: int,
    earned_count: int,
    blocked_by_prereq: bool,
    weights: CurriculumWeights = DEFAULT_WEIGHTS,
) -> SkillProgressState:
    """First matching rule wins: blocked, complete, review, evidence, working, not started."""
    if blocked_by_prereq:
        return "blocked"
    if earned_count > 0:
        return "complete"
    if evidence_count >= weights.evidence_ready_threshold:
        return "ready_for_review" if pending_count > 0 else "evidence_present"
    if evidence_count > 0 or pending_count > 0:
        return "working"
    return "not_started"


def _has_earned(checkoffs: Sequence[Checkoff]) -> bool:
    return any(item.status in EARNED_STATUSES for item in checkoffs)


def blocking_prerequisites(
    skill_id: str,
    adjacency: PrerequisiteAdjacency,
    checkoffs_by_skill: Dict[str, List[Checkoff]],
) -> List[str]:
    return [
        prereq_id
        for prereq_id in adjacency.get(skill_id, [])
        if not _has_earned(checkoffs_by_skill.get(prereq_id, []))
    ]


def derive_skill_progress(
    *,
    athlete_id: str,
    skills: Sequence[Skill],
    relationships: Sequence[SkillRelationship],
    checkoffs: Sequence[Checkoff],
    evidence: Sequence[CheckoffEvidence],
    entries: Sequence[Entry],
    now: datetime,
    existing_progress: Optional[Sequence[SkillProgress]] = None,
    weights: CurriculumWeights = DEFAULT_WEIGHTS,
) -> List[SkillProgress]:
    known_skill_ids = {skill.skill_id for skill in skills}
    existing_by_skill = {item.skill_id: item for item in existing_progress or []}
    evidence_by_skill = usable_evidence_by_skill(evidence)

    checkoffs_by_skill: Dict[str, List[Checkoff]] = defaultdict(list)
    for checkoff in checkoffs:
        checkoffs_by_skill[checkoff.skill_id].append(checkoff)

    mentions_by_skill = entry_mentions_by_skill(
        entries,
        skills,
        window=weights.entry_mention_window,
        limit=weights.rationale_entry_mentions,
    )
    adjacency = build_prerequisite_adjacency(skills, relationships)

    progressions: List[SkillProgress] = []
    for skill in skills:
        evidence_items = evidence_by_skill.get(skill.skill_id, [])
        checkoff_items = checkoffs_by_skill.get(skill.skill_id, [])
        pending_count = sum(1 for item in checkoff_items if item.status == "pending")
        earned_count = sum(1 for item in checkoff_items if item.status in EARNED_STATUSES)

        blockers = blocking_prerequisites(skill.skill_id, adjacency, checkoffs_by_skill)
        derived_state = state_from_signals(
            len(evidence_items),
            pending_count,
            earned_count,
            bool(blockers),
            weights,
        )

        reasons: List[str] = []
        if blockers:
            reasons.append(f"Blocked by prerequisites: {', '.join(blockers)}")
        if evidence_items:
            reasons.append(f"Evidence items: {len(evidence_items)}")
            reasons.extend(item.statement for item in evidence_items[: weights.rationale_evidence_statements])
        if pending_count > 0:
            reasons.append(f"Pending checkoffs: {pending_count}")
        reasons.extend(mentions_by_skill.get(skill.skill_id, []))

        existing = existing_by_skill.get(skill.skill_id)
        override_state = existing.manual_override_state if existing else None
        override_reason = existing.manual_override_reason if existing else None

        if override_state is not None:
            state: SkillProgressState = override_state
            rationale = [f"Manual override applied: {override_state} (derived state: {derived_state})"]
            rationale.extend(f"Derived before override: {reason}" for reason in reasons)
            logger.debug("Manual override %s kept for skill %s", override_state, skill.skill_id)
        else:
            state = derived_state
            rationale = reasons
        if override_reason:
            rationale.append(f"Manual override: {override_reason}")

        suggested = [
            relation.to_skill_id
            for relation in relationships
            if relation.from_skill_id == skill.skill_id and relation.to_skill_id in known_skill_ids
        ]

        progressions.append(
            SkillProgress(
                athlete_id=athlete_id,
                skill_id=skill.skill_id,
                state=state,
                evidence_count=len(evidence_items),
                confidence=confidence_from_evidence_count(len(evidence_items), weights),
                rationale=normalize_string_list(rationale),
                source_entry_ids=normalize_string_list(item.entry_id for item in evidence_items),
                source_evidence_ids=normalize_string_list(item.evidence_id for item in evidence_items),
                suggested_next_skill_ids=normalize_string_list(suggested),
                last_evaluated_at=now,
                manual_override_state=override_state,
                manual_override_reason=override_reason,
                coach_reviewed_by=existing.coach_reviewed_by if existing else None,
                coach_reviewed_at=existing.coach_reviewed_at if existing else None,
            )
        )

    return progressions


__all__ = [
    "EARNED_STATUSES",
    "blocking_prerequisites",
    "confidence_from_evidence_count",
    "derive_skill_progress",
    "recent_first",
    "state_from_signals",
    "usable_evidence_by_skill",
]
