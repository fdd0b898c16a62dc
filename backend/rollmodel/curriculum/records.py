"""Schema validation for persisted curriculum rows.

Rows arrive as plain mappings from the curriculum store. Each one is checked
against an explicit row schema and comes back as either ``RecordParsed`` or
``RecordRejected``; rejected rows are skipped so a single corrupt item never
blocks progress computation for the whole athlete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Type, Union

from pydantic import BaseModel, ValidationError

from .models import (
    Checkoff,
    CheckoffEvidence,
    CurriculumRecommendation,
    CurriculumSnapshot,
    CurriculumStage,
    Entry,
    ProgressSignals,
    Skill,
    SkillProgress,
    SkillRelationship,
    SourceEvidence,
)

logger = logging.getLogger(__name__)

STAGE_ENTITY = "CURRICULUM_STAGE"
SKILL_ENTITY = "CURRICULUM_SKILL"
RELATIONSHIP_ENTITY = "CURRICULUM_RELATIONSHIP"
PROGRESS_ENTITY = "CURRICULUM_PROGRESS"
RECOMMENDATION_ENTITY = "CURRICULUM_RECOMMENDATION"
CHECKOFF_ENTITY = "CHECKOFF"
EVIDENCE_ENTITY = "CHECKOFF_EVIDENCE"
ENTRY_ENTITY = "ENTRY"


class _StageRow(CurriculumStage):
    milestone_skills: List[str]
    updated_at: datetime


class _SkillRow(Skill):
    prerequisites: List[str]
    key_concepts: List[str]
    common_failures: List[str]
    drills: List[str]
    created_at: datetime
    updated_at: datetime


class _RelationshipRow(SkillRelationship):
    created_at: datetime
    updated_at: datetime


class _ProgressRow(SkillProgress):
    evidence_count: int
    rationale: List[str]
    source_entry_ids: List[str]
    source_evidence_ids: List[str]
    suggested_next_skill_ids: List[str]


class _RecommendationRow(CurriculumRecommendation):
    score: int
    rationale: str
    source_evidence: List[SourceEvidence]


_SCHEMAS: Dict[str, Tuple[Type[BaseModel], Type[BaseModel]]] = {
    STAGE_ENTITY: (_StageRow, CurriculumStage),
    SKILL_ENTITY: (_SkillRow, Skill),
    RELATIONSHIP_ENTITY: (_RelationshipRow, SkillRelationship),
    PROGRESS_ENTITY: (_ProgressRow, SkillProgress),
    RECOMMENDATION_ENTITY: (_RecommendationRow, CurriculumRecommendation),
    CHECKOFF_ENTITY: (Checkoff, Checkoff),
    EVIDENCE_ENTITY: (CheckoffEvidence, CheckoffEvidence),
    ENTRY_ENTITY: (Entry, Entry),
}


@dataclass(frozen=True)
class RecordParsed:
    entity_type: str
    value: BaseModel


@dataclass(frozen=True)
class RecordRejected:
    entity_type: str
    reason: str


ParseResult = Union[RecordParsed, RecordRejected]


def parse_record(row: Any) -> ParseResult:
    if not isinstance(row, Mapping):
        return RecordRejected(entity_type="UNKNOWN", reason="row is not a mapping")
    entity_type = row.get("entity_type")
    if not isinstance(entity_type, str) or entity_type not in _SCHEMAS:
        return RecordRejected(entity_type=str(entity_type), reason="unsupported entity_type")

    row_schema, model = _SCHEMAS[entity_type]
    try:
        parsed = row_schema.model_validate(dict(row))
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
        return RecordRejected(entity_type=entity_type, reason=f"invalid fields: {', '.join(fields)}")

    if row_schema is model:
        return RecordParsed(entity_type=entity_type, value=parsed)
    return RecordParsed(entity_type=entity_type, value=model.model_validate(parsed.model_dump()))


def _parse_rows(rows: Iterable[Any], wanted: Iterable[str]) -> Dict[str, List[Any]]:
    buckets: Dict[str, List[Any]] = {entity_type: [] for entity_type in wanted}
    skipped = 0
    for row in rows:
        entity_type = row.get("entity_type") if isinstance(row, Mapping) else None
        if entity_type not in buckets:
            continue
        result = parse_record(row)
        if isinstance(result, RecordRejected):
            skipped += 1
            logger.debug("Skipping malformed %s row: %s", result.entity_type, result.reason)
            continue
        buckets[result.entity_type].append(result.value)
    if skipped:
        logger.info("Skipped %d malformed curriculum row(s)", skipped)
    return buckets


def parse_curriculum_snapshot(rows: Iterable[Any]) -> CurriculumSnapshot:
    buckets = _parse_rows(
        rows,
        (STAGE_ENTITY, SKILL_ENTITY, RELATIONSHIP_ENTITY, PROGRESS_ENTITY, RECOMMENDATION_ENTITY),
    )
    stages: List[CurriculumStage] = sorted(buckets[STAGE_ENTITY], key=lambda stage: (stage.order, stage.name))
    skills: List[Skill] = sorted(buckets[SKILL_ENTITY], key=lambda skill: skill.name)
    recommendations: List[CurriculumRecommendation] = sorted(
        buckets[RECOMMENDATION_ENTITY],
        key=lambda item: (-item.score, item.action_title),
    )
    return CurriculumSnapshot(
        stages=stages,
        skills=skills,
        relationships=buckets[RELATIONSHIP_ENTITY],
        progressions=buckets[PROGRESS_ENTITY],
        recommendations=recommendations,
    )


def parse_progress_signals(rows: Iterable[Any], *, entry_limit: int = 50) -> ProgressSignals:
    buckets = _parse_rows(rows, (CHECKOFF_ENTITY, EVIDENCE_ENTITY, ENTRY_ENTITY))
    entries: List[Entry] = sorted(buckets[ENTRY_ENTITY], key=lambda entry: entry.created_at, reverse=True)
    return ProgressSignals(
        checkoffs=buckets[CHECKOFF_ENTITY],
        evidence=buckets[EVIDENCE_ENTITY],
        entries=entries[:entry_limit],
    )


__all__ = [
    "ParseResult",
    "RecordParsed",
    "RecordRejected",
    "parse_curriculum_snapshot",
    "parse_progress_signals",
    "parse_record",
]
