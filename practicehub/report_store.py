"""Durable storage for assessment reports.

Each mutating operation is one conditional ``INSERT``/``UPDATE`` guarded by the
lifecycle state it expects to find.  When a concurrent writer got there first
the statement matches no rows and the operation fails with ``InvalidState``
instead of overwriting finalized content.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practicehub.db.models import AssessmentReport
from practicehub.errors import InvalidState, NotFound, PreconditionFailed
from practicehub.report_lifecycle import (
    ReportAction,
    finalizable_content,
    state_of,
    transition,
)
from practicehub.time_utils import utc_now

logger = structlog.get_logger(__name__)


class ReportStore:
    """Read/write contract for the one report belonging to an assignment."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, assignment_id: int) -> Optional[AssessmentReport]:
        stmt = (
            select(AssessmentReport)
            .where(AssessmentReport.assignment_id == assignment_id)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def require(self, assignment_id: int) -> AssessmentReport:
        report = self.get(assignment_id)
        if report is None:
            raise NotFound("Report not found", assignment_id=assignment_id)
        return report

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_or_regenerate(
        self, assignment_id: int, generated_content: str, *, reset_draft: bool = False
    ) -> AssessmentReport:
        """Store freshly generated content, creating the report on first use.

        The working draft is left alone unless ``reset_draft`` is set, in which
        case it is replaced by the generated text in the same write.
        """

        now = utc_now()
        existing = self.get(assignment_id)
        if existing is None:
            transition(state_of(None), ReportAction.GENERATE, assignment_id=assignment_id)
            report = AssessmentReport(
                assignment_id=assignment_id,
                generated_content=generated_content,
                draft_content=generated_content if reset_draft else None,
                generated_at=now,
                is_finalized=False,
            )
            self.session.add(report)
            try:
                self.session.commit()
            except IntegrityError:
                # Another request created the row first; treat this call as a regeneration.
                self.session.rollback()
                logger.info("report_create_race", assignment_id=assignment_id)
            else:
                logger.info("report_created", assignment_id=assignment_id)
                return self.require(assignment_id)
            existing = self.require(assignment_id)

        transition(state_of(existing), ReportAction.REGENERATE, assignment_id=assignment_id)
        values = {"generated_content": generated_content, "generated_at": now, "updated_at": now}
        if reset_draft:
            values["draft_content"] = generated_content
        stmt = (
            update(AssessmentReport)
            .where(
                AssessmentReport.assignment_id == assignment_id,
                AssessmentReport.is_finalized.is_(False),
            )
            .values(**values)
        )
        self._execute_guarded(stmt, assignment_id, ReportAction.REGENERATE)
        logger.info("report_regenerated", assignment_id=assignment_id, reset_draft=reset_draft)
        return self.require(assignment_id)

    def save_draft(self, assignment_id: int, content: str) -> AssessmentReport:
        report = self.require(assignment_id)
        transition(state_of(report), ReportAction.SAVE_DRAFT, assignment_id=assignment_id)
        stmt = (
            update(AssessmentReport)
            .where(
                AssessmentReport.assignment_id == assignment_id,
                AssessmentReport.is_finalized.is_(False),
            )
            .values(draft_content=content, updated_at=utc_now())
        )
        self._execute_guarded(stmt, assignment_id, ReportAction.SAVE_DRAFT)
        logger.info("report_draft_saved", assignment_id=assignment_id, length=len(content))
        return self.require(assignment_id)

    def finalize(self, assignment_id: int, actor_id: Optional[int]) -> AssessmentReport:
        """Snapshot the active content into ``final_content`` and lock the report."""

        report = self.require(assignment_id)
        transition(state_of(report), ReportAction.FINALIZE, assignment_id=assignment_id)
        content = finalizable_content(report)
        if content is None:
            raise PreconditionFailed(
                "Report has no content to finalize", assignment_id=assignment_id
            )

        now = utc_now()
        # Matching on the contents read above keeps a concurrent draft save
        # from being finalized under a snapshot it never saw.
        stmt = (
            update(AssessmentReport)
            .where(
                AssessmentReport.assignment_id == assignment_id,
                AssessmentReport.is_finalized.is_(False),
                AssessmentReport.draft_content.is_not_distinct_from(report.draft_content),
                AssessmentReport.generated_content.is_not_distinct_from(report.generated_content),
            )
            .values(
                final_content=content,
                is_finalized=True,
                finalized_at=now,
                finalized_by_id=actor_id,
                updated_at=now,
            )
        )
        self._execute_guarded(stmt, assignment_id, ReportAction.FINALIZE)
        logger.info("report_finalized", assignment_id=assignment_id, actor_id=actor_id)
        return self.require(assignment_id)

    def reopen(self, assignment_id: int) -> AssessmentReport:
        """Unlock a finalized report; ``final_content`` is retained for audit."""

        report = self.require(assignment_id)
        transition(state_of(report), ReportAction.REOPEN, assignment_id=assignment_id)
        stmt = (
            update(AssessmentReport)
            .where(
                AssessmentReport.assignment_id == assignment_id,
                AssessmentReport.is_finalized.is_(True),
            )
            .values(is_finalized=False, updated_at=utc_now())
        )
        self._execute_guarded(stmt, assignment_id, ReportAction.REOPEN)
        logger.info("report_reopened", assignment_id=assignment_id)
        return self.require(assignment_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _execute_guarded(self, stmt, assignment_id: int, action: ReportAction) -> None:
        try:
            result = self.session.execute(stmt.execution_options(synchronize_session=False))
            if result.rowcount == 1:
                self.session.commit()
                return
            self.session.rollback()
        except Exception:
            self.session.rollback()
            raise

        current = self.get(assignment_id)
        logger.warning(
            "report_write_conflict",
            assignment_id=assignment_id,
            action=action.value,
            state=state_of(current).value,
        )
        if current is None:
            raise NotFound("Report not found", assignment_id=assignment_id)
        # Re-running the state check yields the precise rejection message.
        transition(state_of(current), action, assignment_id=assignment_id)
        raise InvalidState(
            "Report changed while the request was in progress; reload and try again",
            assignment_id=assignment_id,
        )


__all__ = ["ReportStore"]
