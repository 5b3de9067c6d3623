"""Typed errors raised by the assessment report workflow.

Every error carries a ``kind`` that is returned to API callers verbatim and an
HTTP status used by the exception handler in :mod:`practicehub.main`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ReportError(Exception):
    """Base class for failures scoped to a single assignment."""

    kind = "ReportError"
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, assignment_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.assignment_id = assignment_id

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.kind, "message": self.message}
        if self.assignment_id is not None:
            payload["assignmentId"] = self.assignment_id
        if self.retryable:
            payload["retryable"] = True
        return payload


class NotFound(ReportError):
    kind = "NotFound"
    status_code = 404


class InvalidState(ReportError):
    """A transition was attempted from a state that does not allow it."""

    kind = "InvalidState"
    status_code = 409


class PreconditionFailed(ReportError):
    kind = "PreconditionFailed"
    status_code = 422


class UpstreamFailure(ReportError):
    """The AI collaborator failed or timed out; the caller may retry manually."""

    kind = "UpstreamFailure"
    status_code = 502
    retryable = True


__all__ = [
    "ReportError",
    "NotFound",
    "InvalidState",
    "PreconditionFailed",
    "UpstreamFailure",
]
