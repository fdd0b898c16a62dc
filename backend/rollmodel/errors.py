"""Error types raised by the curriculum engine and its mutation helpers."""

from __future__ import annotations

from typing import Any, Dict


class CurriculumError(Exception):
    """Base error carrying an API code and the HTTP status it maps to."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class CurriculumValidationError(CurriculumError, ValueError):
    """Rejected mutation or input: invalid id, category, stage order, or cycle."""

    code = "INVALID_REQUEST"
    status_code = 400


class CurriculumForbiddenError(CurriculumError):
    code = "FORBIDDEN"
    status_code = 403


class CurriculumNotFoundError(CurriculumError, LookupError):
    code = "NOT_FOUND"
    status_code = 404


class CurriculumConflictError(CurriculumError):
    code = "CONFLICT"
    status_code = 409


__all__ = [
    "CurriculumConflictError",
    "CurriculumError",
    "CurriculumForbiddenError",
    "CurriculumNotFoundError",
    "CurriculumValidationError",
]
