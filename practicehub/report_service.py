"""Orchestration of the assessment report workflow.

:class:`ReportService` is what the HTTP layer talks to.  It loads the
assignment and its answers, asks the AI collaborator for a draft and routes
every mutation through :class:`~practicehub.report_store.ReportStore`, which
enforces the lifecycle with conditional writes.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from practicehub.assessment_responses import (
    SectionGrouping,
    display_value,
    group_by_section,
    resolve_options,
    serialize_grouping,
    summarize_for_prompt,
)
from practicehub.config import AppSettings, get_settings
from practicehub.db.models import (
    AssessmentAssignment,
    AssessmentReport,
    AssessmentResponse,
    AssessmentSection,
    Clinician,
)
from practicehub.errors import NotFound, PreconditionFailed, ReportError, UpstreamFailure
from practicehub.metrics import (
    ORPHANED_RESPONSES,
    REPORT_EXPORTS,
    REPORT_GENERATION_FAILURES,
    REPORT_REJECTIONS,
    REPORT_TRANSITIONS,
)
from practicehub.openai_client import call_openai
from practicehub.prompts import build_assessment_report_prompt
from practicehub.report_export import (
    EXPORT_FORMATS,
    build_export_document,
    export_filename,
    render,
)
from practicehub.report_lifecycle import (
    ReportAction,
    available_actions,
    is_editable,
    resolve_active_content,
    state_of,
    transition,
)
from practicehub.report_store import ReportStore
from practicehub.sanitizer import sanitize_report_html, sanitize_text
from practicehub.time_utils import format_practice_date, isoformat_utc

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExportResult:
    content: bytes
    media_type: str
    filename: str


@contextmanager
def _observe(action: ReportAction, assignment_id: int) -> Iterator[None]:
    try:
        yield
    except ReportError as exc:
        REPORT_REJECTIONS.labels(action=action.value, kind=exc.kind).inc()
        logger.info(
            "report_action_rejected",
            assignment_id=assignment_id,
            action=action.value,
            kind=exc.kind,
            reason=exc.message,
        )
        raise
    REPORT_TRANSITIONS.labels(action=action.value).inc()


class ReportService:
    """Report lifecycle operations for one database session."""

    def __init__(self, session: Session, settings: Optional[AppSettings] = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.store = ReportStore(session)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_assignment(self, assignment_id: int) -> AssessmentAssignment:
        stmt = (
            select(AssessmentAssignment)
            .where(AssessmentAssignment.id == assignment_id)
            .options(
                selectinload(AssessmentAssignment.client),
                selectinload(AssessmentAssignment.template),
                selectinload(AssessmentAssignment.assigned_by),
            )
        )
        assignment = self.session.execute(stmt).scalar_one_or_none()
        if assignment is None:
            raise NotFound("Assignment not found", assignment_id=assignment_id)
        return assignment

    def load_sections(self, template_id: int) -> List[AssessmentSection]:
        stmt = (
            select(AssessmentSection)
            .where(AssessmentSection.template_id == template_id)
            .options(selectinload(AssessmentSection.questions))
            .order_by(AssessmentSection.sort_order, AssessmentSection.id)
        )
        return list(self.session.execute(stmt).scalars())

    def load_responses(self, assignment_id: int) -> List[AssessmentResponse]:
        stmt = (
            select(AssessmentResponse)
            .where(AssessmentResponse.assignment_id == assignment_id)
            .order_by(AssessmentResponse.id)
        )
        return list(self.session.execute(stmt).scalars())

    def group_responses(
        self, assignment: AssessmentAssignment
    ) -> Tuple[SectionGrouping, List[AssessmentSection]]:
        sections = self.load_sections(assignment.template_id)
        grouping = group_by_section(self.load_responses(assignment.id), sections)
        if grouping.orphaned_count:
            ORPHANED_RESPONSES.inc(grouping.orphaned_count)
            logger.warning(
                "assessment_orphaned_responses",
                assignment_id=assignment.id,
                count=grouping.orphaned_count,
                question_ids=[response.question_id for response in grouping.orphaned],
            )
        return grouping, sections

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def generate(self, assignment_id: int, *, reset_draft: bool = True) -> AssessmentReport:
        """Draft report content from the completed assignment's answers.

        The lifecycle is checked before the AI call so a finalized report never
        costs a generation.  Failures of the AI collaborator surface as
        :class:`UpstreamFailure` and leave the stored report untouched.
        """

        existing = self.store.get(assignment_id)
        action = ReportAction.GENERATE if existing is None else ReportAction.REGENERATE
        with _observe(action, assignment_id):
            assignment = self.load_assignment(assignment_id)
            if assignment.completed_at is None:
                raise PreconditionFailed(
                    "Assessment must be completed before a report can be generated",
                    assignment_id=assignment_id,
                )
            transition(state_of(existing), action, assignment_id=assignment_id)

            grouping, sections = self.group_responses(assignment)
            messages = build_assessment_report_prompt(
                summarize_for_prompt(grouping, sections),
                client_name=getattr(assignment.client, "full_name", None),
                template_name=getattr(assignment.template, "name", None),
                completed_on=format_practice_date(
                    assignment.completed_at, self.settings.practice_timezone
                ),
                clinician_name=getattr(assignment.assigned_by, "full_name", None),
            )
            try:
                content = call_openai(
                    messages,
                    model=self.settings.ai_model,
                    temperature=self.settings.ai_temperature,
                )
            except RuntimeError as exc:
                REPORT_GENERATION_FAILURES.inc()
                logger.error(
                    "report_generation_failed", assignment_id=assignment_id, error=str(exc)
                )
                raise UpstreamFailure(
                    "Report generation failed; please try again", assignment_id=assignment_id
                ) from exc

            return self.store.create_or_regenerate(
                assignment_id, sanitize_report_html(content), reset_draft=reset_draft
            )

    def save_draft(self, assignment_id: int, content: str) -> AssessmentReport:
        with _observe(ReportAction.SAVE_DRAFT, assignment_id):
            return self.store.save_draft(assignment_id, sanitize_report_html(content))

    def finalize(self, assignment_id: int, actor_id: Optional[int]) -> AssessmentReport:
        with _observe(ReportAction.FINALIZE, assignment_id):
            return self.store.finalize(assignment_id, actor_id)

    def reopen(self, assignment_id: int) -> AssessmentReport:
        with _observe(ReportAction.REOPEN, assignment_id):
            return self.store.reopen(assignment_id)

    def export(self, assignment_id: int, fmt: str) -> ExportResult:
        if fmt not in EXPORT_FORMATS:
            raise PreconditionFailed(f"Unsupported export format: {fmt}", assignment_id=assignment_id)
        with _observe(ReportAction.EXPORT, assignment_id):
            assignment = self.load_assignment(assignment_id)
            report = self.store.require(assignment_id)
            state = transition(state_of(report), ReportAction.EXPORT, assignment_id=assignment_id)
            document = build_export_document(
                assignment,
                report,
                self.settings.practice,
                signer=self._signer(assignment, report),
                tz_name=self.settings.practice_timezone,
            )
            content = render(document, fmt)
        REPORT_EXPORTS.labels(format=fmt, state=state.value).inc()
        logger.info(
            "report_exported", assignment_id=assignment_id, format=fmt, state=state.value
        )
        return ExportResult(
            content=content,
            media_type=EXPORT_FORMATS[fmt][0],
            filename=export_filename(document, fmt),
        )

    def _signer(self, assignment: AssessmentAssignment, report: AssessmentReport) -> Optional[Clinician]:
        if report.finalized_by_id is not None:
            finalizer = self.session.get(Clinician, report.finalized_by_id)
            if finalizer is not None:
                return finalizer
        return assignment.assigned_by

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def report_view(self, assignment_id: int) -> Dict[str, Any]:
        self.load_assignment(assignment_id)
        return report_payload(self.store.require(assignment_id))

    def assignment_view(self, assignment_id: int) -> Dict[str, Any]:
        assignment = self.load_assignment(assignment_id)
        report = self.store.get(assignment_id)
        return assignment_payload(assignment, report)

    def responses_view(self, assignment_id: int) -> List[Dict[str, Any]]:
        assignment = self.load_assignment(assignment_id)
        questions = {
            question.id: question
            for section in self.load_sections(assignment.template_id)
            for question in section.questions
        }
        payload = []
        for response in self.load_responses(assignment_id):
            question = questions.get(response.question_id)
            payload.append(
                {
                    "id": response.id,
                    "questionId": response.question_id,
                    "responseText": response.response_text,
                    "ratingValue": response.rating_value,
                    "selectedOptions": response.selected_options,
                    "displayValue": display_value(response, question) if question is not None else None,
                    "orphaned": question is None,
                }
            )
        return payload

    def summary_view(self, assignment_id: int) -> Dict[str, Any]:
        assignment = self.load_assignment(assignment_id)
        grouping, sections = self.group_responses(assignment)
        return {
            "assignmentId": assignment_id,
            "sections": serialize_grouping(grouping, sections),
            "orphanedCount": grouping.orphaned_count,
        }

    def sections_view(self, template_id: int) -> List[Dict[str, Any]]:
        sections = self.load_sections(template_id)
        if not sections:
            raise NotFound("Assessment template not found or has no sections")
        return [section_payload(section) for section in sections]


def _question_type_value(question: Any) -> str:
    value = question.question_type
    return getattr(value, "value", value)


def section_payload(section: AssessmentSection) -> Dict[str, Any]:
    return {
        "id": section.id,
        "templateId": section.template_id,
        "title": section.title,
        "description": section.description,
        "sortOrder": section.sort_order,
        "questions": [
            {
                "id": question.id,
                "questionText": question.question_text,
                "questionType": _question_type_value(question),
                "options": question.options,
                "resolvedOptions": resolve_options(question),
                "ratingMin": question.rating_min,
                "ratingMax": question.rating_max,
                "ratingLabels": question.rating_labels,
                "isRequired": question.is_required,
                "sortOrder": question.sort_order,
            }
            for question in section.questions
        ],
    }


def report_payload(report: AssessmentReport) -> Dict[str, Any]:
    """Serialise ``report`` together with its derived lifecycle view."""

    return {
        "id": report.id,
        "assignmentId": report.assignment_id,
        "generatedContent": report.generated_content,
        "draftContent": report.draft_content,
        "finalContent": report.final_content,
        "generatedAt": isoformat_utc(report.generated_at),
        "isFinalized": bool(report.is_finalized),
        "finalizedAt": isoformat_utc(report.finalized_at),
        "finalizedById": report.finalized_by_id,
        "updatedAt": isoformat_utc(report.updated_at),
        "activeContent": resolve_active_content(report),
        "state": state_of(report).value,
        "actions": available_actions(report),
        "editable": is_editable(report),
    }


def _person(clinician: Optional[Clinician]) -> Optional[Dict[str, Any]]:
    if clinician is None:
        return None
    return {
        "id": clinician.id,
        "fullName": clinician.full_name,
        "title": clinician.title,
        "licenseType": clinician.license_type,
        "licenseNumber": clinician.license_number,
    }


def assignment_payload(
    assignment: AssessmentAssignment, report: Optional[AssessmentReport] = None
) -> Dict[str, Any]:
    client = assignment.client
    template = assignment.template
    return {
        "id": assignment.id,
        "status": assignment.status,
        "createdAt": isoformat_utc(assignment.created_at),
        "completedAt": isoformat_utc(assignment.completed_at),
        "client": None
        if client is None
        else {
            "id": client.id,
            "clientId": client.client_id,
            "fullName": sanitize_text(client.full_name or ""),
            "dateOfBirth": client.date_of_birth.isoformat() if client.date_of_birth else None,
            "gender": client.gender,
        },
        "template": None
        if template is None
        else {"id": template.id, "name": template.name, "category": template.category},
        "assignedBy": _person(assignment.assigned_by),
        "reportState": state_of(report).value,
        "reportActions": available_actions(report),
    }


__all__ = [
    "ExportResult",
    "ReportService",
    "report_payload",
    "assignment_payload",
    "section_payload",
]
