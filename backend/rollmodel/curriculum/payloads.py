"""Typed request payloads for coach-submitted curriculum edits (stages, skills, relationships)."""

from __future__ import annotations

from typing import Annotated, Any, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, Field, StrictInt, StringConstraints, ValidationError, ValidationInfo, field_validator

from ..errors import CurriculumValidationError
from .models import CurriculumStage, RelationType, Skill, SkillCategory, SkillRelationship
from .normalization import normalize_id

MIN_STAGE_ORDER = 1
MAX_STAGE_ORDER = 99

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_VALUE_ERROR_PREFIX = "Value error, "


def _location(loc: Sequence[Union[str, int]]) -> str:
    parts = list(loc)
    if parts and parts[0] == "body":
        parts = parts[1:]
    text = ""
    for part in parts:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else str(part)
    return text


def describe_validation_errors(errors: Iterable[Mapping[str, Any]]) -> str:
    """Flatten pydantic error records into one INVALID_REQUEST message."""
    messages: List[str] = []
    for error in errors:
        message = str(error.get("msg", "is invalid"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            messages.append(message[len(_VALUE_ERROR_PREFIX):])
            continue
        location = _location(error.get("loc", ())) or "Request body"
        messages.append(f"{location}: {message}.")
    return " ".join(dict.fromkeys(messages))


def validate_payload(model: Type[PayloadT], raw: Any) -> PayloadT:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise CurriculumValidationError(describe_validation_errors(exc.errors())) from exc


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class StagePayload(BaseModel):
    stage_id: NonEmptyStr
    name: NonEmptyStr
    order: StrictInt = Field(..., ge=MIN_STAGE_ORDER, le=MAX_STAGE_ORDER)
    milestone_skills: List[NonEmptyStr] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("stage_id")
    @classmethod
    def _slug_stage_id(cls, value: str) -> str:
        return normalize_id(value, "stage_id")

    @field_validator("milestone_skills")
    @classmethod
    def _slug_milestones(cls, values: List[str]) -> List[str]:
        return [normalize_id(value, "milestone_skills[]") for value in values]

    @field_validator("notes")
    @classmethod
    def _strip_notes(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)

    def to_stage(self) -> CurriculumStage:
        return CurriculumStage(**self.model_dump())


class StagesPayload(BaseModel):
    stages: List[StagePayload]


class SkillPayload(BaseModel):
    """Skill body for create and update; the update route takes ``skill_id`` from the path."""

    category: SkillCategory
    skill_id: Optional[NonEmptyStr] = None
    name: NonEmptyStr
    stage_id: NonEmptyStr
    prerequisites: List[NonEmptyStr] = Field(default_factory=list)
    key_concepts: List[NonEmptyStr] = Field(default_factory=list)
    common_failures: List[NonEmptyStr] = Field(default_factory=list)
    drills: List[NonEmptyStr] = Field(default_factory=list)

    @field_validator("skill_id", "stage_id")
    @classmethod
    def _slug_ids(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is None:
            return None
        return normalize_id(value, info.field_name)

    @field_validator("prerequisites")
    @classmethod
    def _slug_prerequisites(cls, values: List[str]) -> List[str]:
        return [normalize_id(value, "prerequisites[]") for value in values]

    def to_skill(self, skill_id_from_path: Optional[str] = None) -> Skill:
        if skill_id_from_path is not None:
            skill_id = normalize_id(skill_id_from_path, "path skill_id")
        elif self.skill_id is None:
            raise CurriculumValidationError("skill_id is required.")
        else:
            skill_id = self.skill_id
        return Skill(skill_id=skill_id, **self.model_dump(exclude={"skill_id"}))


class RelationshipPayload(BaseModel):
    relation: RelationType
    from_skill_id: NonEmptyStr
    to_skill_id: NonEmptyStr
    rationale: Optional[str] = None

    @field_validator("from_skill_id", "to_skill_id")
    @classmethod
    def _slug_ids(cls, value: str, info: ValidationInfo) -> str:
        return normalize_id(value, info.field_name)

    @field_validator("rationale")
    @classmethod
    def _strip_rationale(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)

    def to_relationship(self) -> SkillRelationship:
        return SkillRelationship(**self.model_dump())


def parse_stages_payload(raw: Any) -> List[CurriculumStage]:
    return [stage.to_stage() for stage in validate_payload(StagesPayload, raw).stages]


def parse_upsert_skill_payload(raw: Any, skill_id_from_path: Optional[str] = None) -> Skill:
    return validate_payload(SkillPayload, raw).to_skill(skill_id_from_path)


def parse_upsert_relationship_payload(raw: Any) -> SkillRelationship:
    return validate_payload(RelationshipPayload, raw).to_relationship()


__all__ = [
    "MAX_STAGE_ORDER",
    "MIN_STAGE_ORDER",
    "NonEmptyStr",
    "RelationshipPayload",
    "SkillPayload",
    "StagePayload",
    "StagesPayload",
    "describe_validation_errors",
    "parse_stages_payload",
    "parse_upsert_relationship_payload",
    "parse_upsert_skill_payload",
    "validate_payload",
]
