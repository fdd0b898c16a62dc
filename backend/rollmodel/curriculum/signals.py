"""Failure and decision signals mined from journal entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence

from .models import Entry, Skill
from .normalization import normalize_string_list, normalize_text_token

MIN_TERM_LENGTH = 3


@dataclass(frozen=True)
class FailureSignal:
    entry_id: str
    created_at: datetime
    excerpt: str
    normalized: str


def _signal(entry: Entry, text: str) -> FailureSignal:
    return FailureSignal(
        entry_id=entry.entry_id,
        created_at=entry.created_at,
        excerpt=text,
        normalized=normalize_text_token(text),
    )


def extract_failure_signals(entries: Iterable[Entry]) -> List[FailureSignal]:
    """Collect leaks, the focus line and failed outcomes, verbatim, per entry."""
    signals: List[FailureSignal] = []
    for entry in entries:
        action_pack = entry.action_pack()
        if action_pack is not None:
            for leak in action_pack.leaks:
                text = leak.strip()
                if text:
                    signals.append(_signal(entry, text))
            focus = action_pack.one_focus.strip()
            if focus:
                signals.append(_signal(entry, focus))

        review = entry.session_review()
        if review is not None:
            for failed in review.prompt_set.what_failed:
                text = failed.strip()
                if text:
                    signals.append(_signal(entry, text))
    return signals


class SkillMatcher:
    """Permissive substring matcher between a skill's vocabulary and free text.

    Weak matches still produce recommendations; they arrive as drafts for a coach
    to accept or dismiss.
    """

    def __init__(self, skill: Skill) -> None:
        vocabulary = normalize_string_list([skill.name, *skill.common_failures, *skill.key_concepts])
        self.terms: tuple[str, ...] = tuple(
            term for term in (normalize_text_token(value) for value in vocabulary) if len(term) >= MIN_TERM_LENGTH
        )

    def matches(self, text: str) -> bool:
        normalized = normalize_text_token(text)
        return any(term in normalized for term in self.terms)

    def matching_signals(self, signals: Sequence[FailureSignal]) -> List[FailureSignal]:
        return [signal for signal in signals if any(term in signal.normalized for term in self.terms)]


def entry_mentions_by_skill(
    entries: Sequence[Entry],
    skills: Sequence[Skill],
    *,
    window: int = 4,
    limit: int = 2,
) -> Dict[str, List[str]]:
    """Journal lines naming each skill, most recent entries first."""
    ordered = sorted(entries, key=lambda entry: entry.created_at, reverse=True)
    mentions: Dict[str, List[str]] = {}
    for entry in ordered:
        action_pack = entry.action_pack()
        if action_pack is None:
            continue
        lines = [
            value.strip()
            for value in [*action_pack.leaks, *action_pack.wins, action_pack.one_focus]
            if value.strip()
        ][:window]
        for skill in skills:
            key = skill.name.strip().lower()
            if not key:
                continue
            found = mentions.setdefault(skill.skill_id, [])
            for line in lines:
                if len(found) >= limit:
                    break
                if key in line.lower() and line not in found:
                    found.append(line)
    return {skill_id: lines for skill_id, lines in mentions.items() if lines}


__all__ = [
    "FailureSignal",
    "MIN_TERM_LENGTH",
    "SkillMatcher",
    "entry_mentions_by_skill",
    "extract_failure_signals",
]
