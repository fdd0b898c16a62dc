"""Prerequisite adjacency and cycle detection for the curriculum graph."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import CurriculumValidationError
from ..telemetry import CURRICULUM_CYCLE_REJECTED, emit_event
from .models import Skill, SkillRelationship

logger = logging.getLogger(__name__)

PrerequisiteAdjacency = Dict[str, List[str]]


def build_prerequisite_adjacency(
    skills: Sequence[Skill],
    relationships: Sequence[SkillRelationship],
) -> PrerequisiteAdjacency:
    """Map each skill to its direct prerequisites.

    A skill's own ``prerequisites`` come first, followed by the source of any
    ``prerequisite`` relationship that points at it, so ``A -> B`` reads as
    "A is required before B". Other relation types never appear here.
    """
    adjacency: PrerequisiteAdjacency = {}
    for skill in skills:
        adjacency[skill.skill_id] = list(dict.fromkeys(skill.prerequisites))

    for relation in relationships:
        if relation.relation != "prerequisite":
            continue
        required = adjacency.setdefault(relation.to_skill_id, [])
        if relation.from_skill_id not in required:
            required.append(relation.from_skill_id)

    return adjacency


def find_prerequisite_cycle(
    skills: Sequence[Skill],
    relationships: Sequence[SkillRelationship],
) -> Optional[List[str]]:
    """Return the first prerequisite cycle found as a closed path, or ``None``."""
    adjacency = build_prerequisite_adjacency(skills, relationships)
    on_stack: set[str] = set()
    explored: set[str] = set()

    for root in (skill.skill_id for skill in skills):
        if root in explored:
            continue
        path: List[str] = [root]
        on_stack.add(root)
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(adjacency.get(root, [])))]

        while stack:
            node, children = stack[-1]
            descended = False
            for child in children:
                if child in explored:
                    continue
                if child in on_stack:
                    return path[path.index(child):] + [child]
                on_stack.add(child)
                path.append(child)
                stack.append((child, iter(adjacency.get(child, []))))
                descended = True
                break
            if descended:
                continue
            stack.pop()
            path.pop()
            on_stack.discard(node)
            explored.add(node)

    return None


def assert_no_invalid_cycles(
    skills: Sequence[Skill],
    relationships: Sequence[SkillRelationship],
) -> None:
    cycle = find_prerequisite_cycle(skills, relationships)
    if cycle is None:
        return
    chain = " -> ".join(cycle)
    logger.warning("Rejected curriculum graph with prerequisite cycle: %s", chain)
    emit_event(CURRICULUM_CYCLE_REJECTED, cycle=cycle)
    raise CurriculumValidationError(
        f"Invalid curriculum dependency cycle detected in prerequisite relationships: {chain}."
    )


__all__ = [
    "PrerequisiteAdjacency",
    "assert_no_invalid_cycles",
    "build_prerequisite_adjacency",
    "find_prerequisite_cycle",
]
