#!/usr/bin/env python3
"""Bootstrap a PracticeHub database with a demo BDI-II assessment."""

from __future__ import annotations

import argparse
import os
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy import select
from sqlalchemy.orm import Session

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from practicehub.auth import create_access_token  # noqa: E402
from practicehub.db.config import DatabaseSettings, get_database_settings  # noqa: E402
from practicehub.db.models import (  # noqa: E402
    AssessmentAssignment,
    AssessmentQuestion,
    AssessmentResponse,
    AssessmentSection,
    AssessmentTemplate,
    Client,
    Clinician,
    QuestionType,
)
from practicehub.db.session import configure_engine, initialise_schema, session_scope  # noqa: E402
from practicehub.time_utils import utc_now  # noqa: E402

DEMO_TEMPLATE_NAME = "Beck Depression Inventory (BDI-II)"

DEFAULT_CLINICIAN = {
    "username": "clinician@examplepractice.com",
    "full_name": "Dr. Jordan Avery",
    "title": "Clinical Psychologist",
    "license_type": "CPsych",
    "license_number": "12345",
}

DEFAULT_CLIENT = {
    "client_id": "CL-2024-0001",
    "full_name": "Sam Taylor",
    "date_of_birth": date(1990, 4, 12),
    "gender": "Non-binary",
    "phone_number": "(555) 010-2000",
    "email_address": "sam.taylor@example.com",
    "address": "12 Harbour Street",
    "city": "Halifax",
    "province": "NS",
    "postal_code": "B3H 1A1",
}

# (section title, [(question text, type, options, rating bounds/labels)])
DEMO_SECTIONS = [
    (
        "Session Details",
        [
            ("Preferred session format", QuestionType.MULTIPLE_CHOICE, None, None),
            ("What brings you to counselling at this time?", QuestionType.LONG_TEXT, None, None),
        ],
    ),
    (
        "BDI-II Items",
        [
            ("1. Sadness", QuestionType.MULTIPLE_CHOICE, None, None),
            ("2. Pessimism", QuestionType.MULTIPLE_CHOICE, None, None),
            ("4. Loss of Pleasure", QuestionType.MULTIPLE_CHOICE, None, None),
            ("9. Suicidal Thoughts or Wishes", QuestionType.MULTIPLE_CHOICE, None, None),
            ("20. Tiredness or Fatigue", QuestionType.MULTIPLE_CHOICE, None, None),
        ],
    ),
    (
        "Current Concerns",
        [
            ("Physical concerns you have noticed", QuestionType.CHECKBOX, None, None),
            ("Emotional concerns", QuestionType.CHECKBOX, None, None),
            (
                "How often do you feel overwhelmed?",
                QuestionType.RATING_SCALE,
                None,
                (1, 5, ["Never", "Rarely", "Sometimes", "Often", "Always"]),
            ),
        ],
    ),
]

# question text -> (response_text, rating_value, selected_options)
DEMO_ANSWERS = {
    "Preferred session format": (None, None, [1]),
    "What brings you to counselling at this time?": (
        "Low mood for several months and trouble keeping up at work.",
        None,
        None,
    ),
    "1. Sadness": (None, None, [1]),
    "2. Pessimism": (None, None, [1]),
    "4. Loss of Pleasure": (None, None, [2]),
    "9. Suicidal Thoughts or Wishes": (None, None, [0]),
    "20. Tiredness or Fatigue": (None, None, [2]),
    "Physical concerns you have noticed": (None, None, [0, 2]),
    "Emotional concerns": (None, None, [1, 5]),
    "How often do you feel overwhelmed?": (None, 3, None),
}


def _get_or_create_clinician(session: Session, username: str) -> Clinician:
    clinician = session.execute(
        select(Clinician).where(Clinician.username == username)
    ).scalar_one_or_none()
    if clinician is None:
        clinician = Clinician(**{**DEFAULT_CLINICIAN, "username": username})
        session.add(clinician)
        session.flush()
    return clinician


def _get_or_create_client(session: Session) -> Client:
    client = session.execute(
        select(Client).where(Client.client_id == DEFAULT_CLIENT["client_id"])
    ).scalar_one_or_none()
    if client is None:
        client = Client(**DEFAULT_CLIENT)
        session.add(client)
        session.flush()
    return client


def _get_or_create_template(session: Session) -> AssessmentTemplate:
    template = session.execute(
        select(AssessmentTemplate).where(AssessmentTemplate.name == DEMO_TEMPLATE_NAME)
    ).scalar_one_or_none()
    if template is not None:
        return template

    template = AssessmentTemplate(
        name=DEMO_TEMPLATE_NAME,
        category="Depression",
        description="Demo intake combining session details with BDI-II items.",
    )
    for section_order, (title, questions) in enumerate(DEMO_SECTIONS):
        section = AssessmentSection(title=title, sort_order=section_order)
        for question_order, (text, question_type, options, rating) in enumerate(questions):
            question = AssessmentQuestion(
                question_text=text,
                question_type=question_type.value,
                options=options,
                is_required=question_type is not QuestionType.LONG_TEXT,
                sort_order=question_order,
            )
            if rating is not None:
                question.rating_min, question.rating_max, question.rating_labels = rating
            section.questions.append(question)
        template.sections.append(section)
    session.add(template)
    session.flush()
    return template


def seed_demo_data(session: Session, *, clinician_username: Optional[str] = None) -> Dict[str, int]:
    """Create (or reuse) the demo clinician, client, template and a completed assignment."""

    clinician = _get_or_create_clinician(
        session, clinician_username or DEFAULT_CLINICIAN["username"]
    )
    client = _get_or_create_client(session)
    template = _get_or_create_template(session)

    completed_at = utc_now() - timedelta(days=1)
    assignment = AssessmentAssignment(
        client_id=client.id,
        template_id=template.id,
        assigned_by_id=clinician.id,
        status="completed",
        completed_at=completed_at,
    )
    session.add(assignment)
    session.flush()

    responses: List[AssessmentResponse] = []
    for section in template.sections:
        for question in section.questions:
            answer = DEMO_ANSWERS.get(question.question_text)
            if answer is None:
                continue
            response_text, rating_value, selected = answer
            responses.append(
                AssessmentResponse(
                    assignment_id=assignment.id,
                    question_id=question.id,
                    response_text=response_text,
                    rating_value=rating_value,
                    selected_options=selected,
                )
            )
    session.add_all(responses)
    session.flush()
    return {
        "clinician_id": clinician.id,
        "client_id": client.id,
        "template_id": template.id,
        "assignment_id": assignment.id,
        "responses": len(responses),
    }


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create the PracticeHub schema and seed a demo completed assessment.",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to a SQLite database file (default: PRACTICEHUB_DATABASE_URL or the user data dir)",
    )
    parser.add_argument(
        "--clinician-username",
        default=os.getenv("PRACTICEHUB_CLINICIAN_USERNAME"),
        help="Username for the seeded clinician account",
    )
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Create tables without inserting demo data.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    if args.database:
        db_path = Path(args.database).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        settings = DatabaseSettings(url=f"sqlite:///{db_path}")
    else:
        settings = get_database_settings()

    engine = sa.create_engine(settings.url, **settings.engine_options())
    configure_engine(engine)
    initialise_schema(engine)
    print(f"Schema ensured at {settings.url}")

    if args.schema_only:
        print("Demo data seeding skipped.")
        return 0

    with session_scope() as session:
        seeded = seed_demo_data(session, clinician_username=args.clinician_username)
        username = session.get(Clinician, seeded["clinician_id"]).username

    print(
        "Seeded completed assignment {assignment_id} ({responses} responses) "
        "for template {template_id}.".format(**seeded)
    )
    token = create_access_token(username, "clinician", user_id=seeded["clinician_id"])
    print("Development bearer token (do not use in production):")
    print(f"  {token}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
