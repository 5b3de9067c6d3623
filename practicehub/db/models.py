"""SQLAlchemy models backing clients, assessments and assessment reports."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class QuestionType(str, enum.Enum):
    """Question kinds supported by assessment templates."""

    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    MULTIPLE_CHOICE = "multiple_choice"
    RATING_SCALE = "rating_scale"
    CHECKBOX = "checkbox"


class Client(Base):
    __tablename__ = "clients"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    client_id = sa.Column(String, nullable=True, unique=True)
    full_name = sa.Column(String, nullable=False)
    date_of_birth = sa.Column(Date, nullable=True)
    gender = sa.Column(String, nullable=True)
    phone_number = sa.Column(String, nullable=True)
    email_address = sa.Column(String, nullable=True)
    address = sa.Column(Text, nullable=True)
    city = sa.Column(String, nullable=True)
    province = sa.Column(String, nullable=True)
    postal_code = sa.Column(String, nullable=True)
    created_at = sa.Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Clinician(Base):
    """Practice staff member who assigns assessments and signs reports."""

    __tablename__ = "clinicians"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    username = sa.Column(String, nullable=False, unique=True)
    full_name = sa.Column(String, nullable=False)
    title = sa.Column(String, nullable=True)
    license_type = sa.Column(String, nullable=True)
    license_number = sa.Column(String, nullable=True)
    signature_image = sa.Column(Text, nullable=True)
    role = sa.Column(String, nullable=False, server_default=sa.text("'clinician'"))


class AssessmentTemplate(Base):
    __tablename__ = "assessment_templates"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    name = sa.Column(String, nullable=False)
    category = sa.Column(String, nullable=True)
    description = sa.Column(Text, nullable=True)

    sections = relationship(
        "AssessmentSection",
        back_populates="template",
        order_by="AssessmentSection.sort_order",
    )


class AssessmentSection(Base):
    __tablename__ = "assessment_sections"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    template_id = sa.Column(Integer, ForeignKey("assessment_templates.id"), nullable=False)
    title = sa.Column(String, nullable=False)
    description = sa.Column(Text, nullable=True)
    sort_order = sa.Column(Integer, nullable=False, default=0)

    template = relationship("AssessmentTemplate", back_populates="sections")
    questions = relationship(
        "AssessmentQuestion",
        back_populates="section",
        order_by="AssessmentQuestion.sort_order",
    )


class AssessmentQuestion(Base):
    __tablename__ = "assessment_questions"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    section_id = sa.Column(Integer, ForeignKey("assessment_sections.id"), nullable=False)
    question_text = sa.Column(Text, nullable=False)
    question_type = sa.Column(String, nullable=False)
    # Legacy rows were imported without options; see practicehub.fallback_options.
    options = sa.Column(sa.JSON, nullable=True)
    rating_min = sa.Column(Integer, nullable=True)
    rating_max = sa.Column(Integer, nullable=True)
    rating_labels = sa.Column(sa.JSON, nullable=True)
    is_required = sa.Column(Boolean, nullable=False, default=False)
    sort_order = sa.Column(Integer, nullable=False, default=0)

    section = relationship("AssessmentSection", back_populates="questions")


class AssessmentAssignment(Base):
    __tablename__ = "assessment_assignments"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    client_id = sa.Column(Integer, ForeignKey("clients.id"), nullable=False)
    template_id = sa.Column(Integer, ForeignKey("assessment_templates.id"), nullable=False)
    assigned_by_id = sa.Column(Integer, ForeignKey("clinicians.id"), nullable=False)
    status = sa.Column(String, nullable=False, server_default=sa.text("'pending'"))
    created_at = sa.Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = sa.Column(DateTime(timezone=True), nullable=True)

    client = relationship("Client")
    template = relationship("AssessmentTemplate")
    assigned_by = relationship("Clinician")


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"
    __table_args__ = (
        sa.UniqueConstraint("assignment_id", "question_id", name="uq_assessment_responses_question"),
    )

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    assignment_id = sa.Column(Integer, ForeignKey("assessment_assignments.id"), nullable=False, index=True)
    question_id = sa.Column(Integer, nullable=False)
    response_text = sa.Column(Text, nullable=True)
    rating_value = sa.Column(Integer, nullable=True)
    selected_options = sa.Column(sa.JSON, nullable=True)
    created_at = sa.Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class AssessmentReport(Base):
    """Per-assignment report holding generated, draft and finalized content."""

    __tablename__ = "assessment_reports"

    id = sa.Column(Integer, primary_key=True, autoincrement=True)
    assignment_id = sa.Column(
        Integer, ForeignKey("assessment_assignments.id"), nullable=False, unique=True
    )
    generated_content = sa.Column(Text, nullable=True)
    draft_content = sa.Column(Text, nullable=True)
    final_content = sa.Column(Text, nullable=True)
    generated_at = sa.Column(DateTime(timezone=True), nullable=True)
    is_finalized = sa.Column(Boolean, nullable=False, default=False, server_default=sa.false())
    finalized_at = sa.Column(DateTime(timezone=True), nullable=True)
    finalized_by_id = sa.Column(Integer, ForeignKey("clinicians.id"), nullable=True)
    created_at = sa.Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = sa.Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


__all__ = [
    "Base",
    "QuestionType",
    "Client",
    "Clinician",
    "AssessmentTemplate",
    "AssessmentSection",
    "AssessmentQuestion",
    "AssessmentAssignment",
    "AssessmentResponse",
    "AssessmentReport",
]
