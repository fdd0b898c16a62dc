"""Identifier and text canonicalization shared by the curriculum components."""

from __future__ import annotations

import re
from typing import Iterable, List

from ..errors import CurriculumValidationError
from .models import SKILL_CATEGORIES, Skill

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_TOKEN_STRIP = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")


def slugify(value: str) -> str:
    return _NON_ALNUM_RUN.sub("-", value.strip().lower()).strip("-")


def normalize_id(value: str, field_name: str) -> str:
    """Slugify ``value``; raises when nothing alphanumeric survives."""
    normalized = slugify(value)
    if not normalized:
        raise CurriculumValidationError(f"{field_name} must include letters or numbers.")
    return normalized


def normalize_text_token(value: str) -> str:
    lowered = _TOKEN_STRIP.sub(" ", value.strip().lower())
    return _WHITESPACE_RUN.sub(" ", lowered).strip()


def normalize_string_list(values: Iterable[str]) -> List[str]:
    """Trim, drop blanks and dedupe case-insensitively, keeping first occurrences."""
    seen: set[str] = set()
    normalized: List[str] = []
    for value in values:
        trimmed = value.strip()
        if not trimmed:
            continue
        key = trimmed.lower()
        if key in seen:
            continue
        seen.add(key)
        normalized.append(trimmed)
    return normalized


def normalize_skill(skill: Skill) -> Skill:
    if skill.category not in SKILL_CATEGORIES:
        raise CurriculumValidationError("skill category is invalid.")

    name = skill.name.strip()
    if not name:
        raise CurriculumValidationError("name must be a non-empty string.")

    prerequisites = normalize_string_list(
        normalize_id(item, "prerequisites[]") for item in normalize_string_list(skill.prerequisites)
    )
    return skill.model_copy(
        update={
            "skill_id": normalize_id(skill.skill_id, "skill_id"),
            "name": name,
            "stage_id": normalize_id(skill.stage_id, "stage_id"),
            "prerequisites": prerequisites,
            "key_concepts": normalize_string_list(skill.key_concepts),
            "common_failures": normalize_string_list(skill.common_failures),
            "drills": normalize_string_list(skill.drills),
        }
    )


__all__ = [
    "normalize_id",
    "normalize_skill",
    "normalize_string_list",
    "normalize_text_token",
    "slugify",
]
