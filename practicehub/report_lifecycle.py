"""Assessment report lifecycle states and the transitions between them.

A report is in exactly one of three states.  ``transition`` is the only place
that decides whether an action is legal; the store and the HTTP layer both
consult it instead of checking ``is_finalized`` ad hoc.

    NO_REPORT --generate--> DRAFT --finalize--> FINALIZED
                            DRAFT --regenerate/save_draft--> DRAFT
                            FINALIZED --reopen--> DRAFT
"""

from __future__ import annotations

import enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from practicehub.errors import InvalidState


class ReportState(str, enum.Enum):
    NO_REPORT = "no_report"
    DRAFT = "draft"
    FINALIZED = "finalized"


class ReportAction(str, enum.Enum):
    GENERATE = "generate"
    REGENERATE = "regenerate"
    SAVE_DRAFT = "save_draft"
    FINALIZE = "finalize"
    REOPEN = "reopen"
    EXPORT = "export"


_TRANSITIONS: Dict[Tuple[ReportState, ReportAction], ReportState] = {
    (ReportState.NO_REPORT, ReportAction.GENERATE): ReportState.DRAFT,
    (ReportState.DRAFT, ReportAction.REGENERATE): ReportState.DRAFT,
    (ReportState.DRAFT, ReportAction.SAVE_DRAFT): ReportState.DRAFT,
    (ReportState.DRAFT, ReportAction.FINALIZE): ReportState.FINALIZED,
    (ReportState.DRAFT, ReportAction.EXPORT): ReportState.DRAFT,
    (ReportState.FINALIZED, ReportAction.REOPEN): ReportState.DRAFT,
    (ReportState.FINALIZED, ReportAction.EXPORT): ReportState.FINALIZED,
}

_REJECTION_MESSAGES: Dict[Tuple[ReportState, ReportAction], str] = {
    (ReportState.FINALIZED, ReportAction.GENERATE): "Report is finalized; reopen it before regenerating",
    (ReportState.FINALIZED, ReportAction.REGENERATE): "Report is finalized; reopen it before regenerating",
    (ReportState.FINALIZED, ReportAction.SAVE_DRAFT): "Report is finalized and locked for editing",
    (ReportState.FINALIZED, ReportAction.FINALIZE): "Report is already finalized",
    (ReportState.DRAFT, ReportAction.REOPEN): "Report is not finalized",
    (ReportState.DRAFT, ReportAction.GENERATE): "Report already exists; regenerate it instead",
    (ReportState.NO_REPORT, ReportAction.REOPEN): "No report has been generated",
}


def state_of(report: Optional[Any]) -> ReportState:
    """Derive the lifecycle state of a stored report row (``None`` = no report)."""

    if report is None:
        return ReportState.NO_REPORT
    if getattr(report, "is_finalized", False):
        return ReportState.FINALIZED
    return ReportState.DRAFT


def transition(
    state: ReportState, action: ReportAction, *, assignment_id: Optional[int] = None
) -> ReportState:
    """Return the state reached by applying ``action`` or raise ``InvalidState``."""

    target = _TRANSITIONS.get((state, action))
    if target is None:
        message = _REJECTION_MESSAGES.get(
            (state, action), f"Cannot {action.value} a report in state {state.value}"
        )
        raise InvalidState(message, assignment_id=assignment_id)
    return target


def allowed_actions(state: ReportState) -> FrozenSet[ReportAction]:
    return frozenset(action for (source, action) in _TRANSITIONS if source is state)


def available_actions(report: Optional[Any]) -> List[str]:
    """Actions a client may offer for ``report``, in a stable display order."""

    allowed = allowed_actions(state_of(report))
    return [action.value for action in ReportAction if action in allowed]


def is_editable(report: Optional[Any]) -> bool:
    return state_of(report) is ReportState.DRAFT


def _non_empty(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def resolve_active_content(report: Optional[Any]) -> str:
    """Return the authoritative report text.

    Finalized reports always read ``final_content``.  Otherwise the draft wins
    over the generated text, and a stale ``final_content`` left behind by a
    reopen is ignored.
    """

    if report is None:
        return ""
    if getattr(report, "is_finalized", False):
        return getattr(report, "final_content", None) or ""
    return (
        _non_empty(getattr(report, "draft_content", None))
        or _non_empty(getattr(report, "generated_content", None))
        or ""
    )


def finalizable_content(report: Optional[Any]) -> Optional[str]:
    """Content that ``finalize`` would snapshot, or ``None`` when empty."""

    if report is None:
        return None
    return _non_empty(getattr(report, "draft_content", None)) or _non_empty(
        getattr(report, "generated_content", None)
    )


__all__ = [
    "ReportState",
    "ReportAction",
    "state_of",
    "transition",
    "allowed_actions",
    "available_actions",
    "is_editable",
    "resolve_active_content",
    "finalizable_content",
]
