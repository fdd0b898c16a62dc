"""Baseline belt-progression curriculum used to seed a new athlete."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Tuple

from .models import CurriculumSnapshot, CurriculumStage, Skill, SkillRelationship


@dataclass(frozen=True)
class _SkillTemplate:
    skill_id: str
    name: str
    category: str
    stage_id: str
    prerequisites: Tuple[str, ...]
    key_concepts: Tuple[str, ...]
    common_failures: Tuple[str, ...]
    drills: Tuple[str, ...]


_STAGES: Tuple[Tuple[str, str, int, Tuple[str, ...]], ...] = (
    ("white-belt", "White Belt", 1, ("bridge-hip-escape", "closed-guard-retention")),
    ("blue-belt", "Blue Belt", 2, ("scissor-sweep", "knee-cut-pass")),
    ("purple-belt", "Purple Belt", 3, ("x-guard-sweep", "back-control-finish")),
    ("brown-belt", "Brown Belt", 4, ("leg-drag-pass", "front-headlock-systems")),
    ("black-belt", "Black Belt", 5, ("adaptive-game-planning", "counter-chain-mastery")),
)

_SKILLS: Tuple[_SkillTemplate, ...] = (
    _SkillTemplate(
        skill_id="bridge-hip-escape",
        name="Bridge + Hip Escape",
        category="escape",
        stage_id="white-belt",
        prerequisites=(),
        key_concepts=("frames", "angle change"),
        common_failures=("bridging straight up", "late frames"),
        drills=("bridge-shrimp ladder", "wall shrimping"),
    ),
    _SkillTemplate(
        skill_id="closed-guard-retention",
        name="Closed Guard Retention",
        category="guard-retention",
        stage_id="white-belt",
        prerequisites=("bridge-hip-escape",),
        key_concepts=("knee-elbow connection", "hip mobility"),
        common_failures=("hips pinned flat", "crossed ankles too high"),
        drills=("retention rounds from standing break", "hip-heist reset reps"),
    ),
    _SkillTemplate(
        skill_id="scissor-sweep",
        name="Scissor Sweep",
        category="sweep",
        stage_id="blue-belt",
        prerequisites=("closed-guard-retention",),
        key_concepts=("kuzushi", "cross grip control"),
        common_failures=("not loading partner weight", "bottom leg too low"),
        drills=("kuzushi to scissor sweep flow", "1-minute timing rounds"),
    ),
    _SkillTemplate(
        skill_id="knee-cut-pass",
        name="Knee Cut Pass",
        category="pass",
        stage_id="blue-belt",
        prerequisites=("bridge-hip-escape",),
        key_concepts=("head position", "underhook control"),
        common_failures=("hips too far away", "chest disconnect"),
        drills=("knee-cut entries with resistance", "underhook pummel rounds"),
    ),
    _SkillTemplate(
        skill_id="x-guard-sweep",
        name="X-Guard Technical Stand-up Sweep",
        category="sweep",
        stage_id="purple-belt",
        prerequisites=("scissor-sweep",),
        key_concepts=("off-balance timing", "ankle-line control"),
        common_failures=("standing before off-balance", "missing far sleeve control"),
        drills=("x-guard elevation reps", "reaction sweep rounds"),
    ),
)

_RELATIONSHIPS: Tuple[Dict[str, str], ...] = (
    {
        "from_skill_id": "closed-guard-retention",
        "to_skill_id": "scissor-sweep",
        "relation": "prerequisite",
        "rationale": "Reliable closed guard retention is required before timing scissor sweep entries.",
    },
    {
        "from_skill_id": "scissor-sweep",
        "to_skill_id": "x-guard-sweep",
        "relation": "supports",
        "rationale": "Shared off-balance mechanics transfer into x-guard sweep entries.",
    },
    {
        "from_skill_id": "knee-cut-pass",
        "to_skill_id": "x-guard-sweep",
        "relation": "counter",
        "rationale": "Understanding knee cut passing sharpens sweep setup against pressure passers.",
    },
)


def baseline_curriculum(now: datetime) -> CurriculumSnapshot:
    stages = [
        CurriculumStage(stage_id=stage_id, name=name, order=order, milestone_skills=list(milestones), updated_at=now)
        for stage_id, name, order, milestones in _STAGES
    ]
    skills = [
        Skill(
            skill_id=template.skill_id,
            name=template.name,
            category=template.category,  # type: ignore[arg-type]
            stage_id=template.stage_id,
            prerequisites=list(template.prerequisites),
            key_concepts=list(template.key_concepts),
            common_failures=list(template.common_failures),
            drills=list(template.drills),
            created_at=now,
            updated_at=now,
        )
        for template in _SKILLS
    ]
    relationships = [
        SkillRelationship(**relationship, created_at=now, updated_at=now)  # type: ignore[arg-type]
        for relationship in _RELATIONSHIPS
    ]
    return CurriculumSnapshot(stages=stages, skills=skills, relationships=relationships)


__all__ = ["baseline_curriculum"]
