"""In-process telemetry for curriculum recomputes and coach review actions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("rollmodel.telemetry")

CURRICULUM_RECOMPUTED = "curriculum_recomputed"
CURRICULUM_CYCLE_REJECTED = "curriculum_cycle_rejected"
CURRICULUM_PROGRESS_OVERRIDDEN = "curriculum_progress_overridden"
CURRICULUM_RECOMMENDATION_REVIEWED = "curriculum_recommendation_reviewed"
CURRICULUM_SKILL_REMOVED = "curriculum_skill_removed"
CURRICULUM_SEEDED = "curriculum_seeded"


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[TelemetryEvent], None]

_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> None:
    """Register an in-process listener (used in tests)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> TelemetryEvent:
    """Emit a structured telemetry event, fan it out to listeners and log it."""
    event = TelemetryEvent(name=name, payload=_sanitize(fields))

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    structured = {"event": name, **event.payload}
    logger.info("TELEMETRY %s", json.dumps(structured, default=_json_default, sort_keys=True))
    return event


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            sanitized[key] = value.isoformat()
        elif isinstance(value, Enum):
            sanitized[key] = value.value
        elif isinstance(value, (set, frozenset)):
            sanitized[key] = sorted(value)
        else:
            sanitized[key] = value
    return sanitized


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


__all__ = [
    "CURRICULUM_CYCLE_REJECTED",
    "CURRICULUM_PROGRESS_OVERRIDDEN",
    "CURRICULUM_RECOMMENDATION_REVIEWED",
    "CURRICULUM_RECOMPUTED",
    "CURRICULUM_SEEDED",
    "CURRICULUM_SKILL_REMOVED",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
