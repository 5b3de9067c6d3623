import os
import sys
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterator

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Ensure the repository root is on sys.path so tests can import the practicehub package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('USE_OFFLINE_MODEL', '1')
os.environ.setdefault('PRACTICEHUB_DATABASE_URL', 'sqlite://')
os.environ.setdefault('PRACTICE_NAME', 'Harbourview Counselling')
os.environ.setdefault('PRACTICE_PHONE', '(555) 010-0000')

from practicehub.db import models  # noqa: E402
from practicehub.db.session import SessionLocal, configure_engine  # noqa: E402


COMPLETED_AT = datetime(2024, 3, 5, 15, 30, tzinfo=timezone.utc)


@dataclass
class SeededAssessment:
    clinician_id: int
    clinician_username: str
    client_id: int
    template_id: int
    assignment_id: int
    incomplete_assignment_id: int
    section_ids: list
    question_ids: dict


@pytest.fixture(scope='function')
def engine() -> Iterator[sa.Engine]:
    """Provide an isolated in-memory SQLite database for each test."""

    engine = sa.create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
        future=True,
    )
    models.Base.metadata.create_all(engine)
    configure_engine(engine)
    try:
        yield engine
    finally:
        models.Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(scope='function')
def db_session(engine) -> Iterator[Session]:
    """Yield a SQLAlchemy session tied to the in-memory database."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def offline_ai(monkeypatch):
    """Never reach the network for report drafting."""

    monkeypatch.setenv('USE_OFFLINE_MODEL', '1')


def _question(text, question_type, sort_order, **kwargs):
    return models.AssessmentQuestion(
        question_text=text,
        question_type=question_type.value,
        sort_order=sort_order,
        **kwargs,
    )


@pytest.fixture(scope='function')
def seeded(db_session) -> SeededAssessment:
    """Create a clinician, client and a completed two-section assessment."""

    clinician = models.Clinician(
        username='dr.avery',
        full_name='Dr. Jordan Avery',
        title='Clinical Psychologist',
        license_type='CPsych',
        license_number='12345',
    )
    client = models.Client(
        client_id='CL-0001',
        full_name='Sam Taylor',
        date_of_birth=date(1990, 4, 12),
        gender='Non-binary',
        email_address='sam@example.com',
        address='12 Harbour Street',
        city='Halifax',
        province='NS',
    )
    template = models.AssessmentTemplate(name='Intake Questionnaire', category='Intake')
    background = models.AssessmentSection(title='Background', sort_order=0)
    concerns = models.AssessmentSection(title='Current Concerns', sort_order=1)
    background.questions = [
        _question('What brings you in today?', models.QuestionType.LONG_TEXT, 0),
        _question('Preferred session format', models.QuestionType.MULTIPLE_CHOICE, 1),
    ]
    concerns.questions = [
        _question(
            'How often do you feel anxious?',
            models.QuestionType.RATING_SCALE,
            0,
            rating_min=1,
            rating_max=5,
            rating_labels=['Never', 'Rarely', 'Sometimes', 'Often', 'Always'],
        ),
        _question('Physical concerns', models.QuestionType.CHECKBOX, 1),
    ]
    template.sections = [background, concerns]
    db_session.add_all([clinician, client, template])
    db_session.flush()

    assignment = models.AssessmentAssignment(
        client_id=client.id,
        template_id=template.id,
        assigned_by_id=clinician.id,
        status='completed',
        completed_at=COMPLETED_AT,
    )
    incomplete = models.AssessmentAssignment(
        client_id=client.id,
        template_id=template.id,
        assigned_by_id=clinician.id,
    )
    db_session.add_all([assignment, incomplete])
    db_session.flush()

    questions = {q.question_text: q.id for s in template.sections for q in s.questions}
    db_session.add_all(
        [
            models.AssessmentResponse(
                assignment_id=assignment.id,
                question_id=questions['What brings you in today?'],
                response_text='  Trouble sleeping and low mood.  ',
            ),
            models.AssessmentResponse(
                assignment_id=assignment.id,
                question_id=questions['Preferred session format'],
                selected_options=[1],
            ),
            models.AssessmentResponse(
                assignment_id=assignment.id,
                question_id=questions['How often do you feel anxious?'],
                rating_value=3,
            ),
            models.AssessmentResponse(
                assignment_id=assignment.id,
                question_id=questions['Physical concerns'],
                selected_options=[0, 2],
            ),
        ]
    )
    db_session.commit()

    return SeededAssessment(
        clinician_id=clinician.id,
        clinician_username=clinician.username,
        client_id=client.id,
        template_id=template.id,
        assignment_id=assignment.id,
        incomplete_assignment_id=incomplete.id,
        section_ids=[background.id, concerns.id],
        question_ids=questions,
    )


@pytest.fixture(scope='function')
def api_client(engine) -> Iterator[TestClient]:
    """Yield a FastAPI test client bound to the in-memory database."""

    from practicehub import main

    with TestClient(main.app) as client:
        yield client


@pytest.fixture(scope='function')
def auth_headers(seeded) -> dict:
    from practicehub.auth import create_access_token

    token = create_access_token(seeded.clinician_username, 'clinician', user_id=seeded.clinician_id)
    return {'Authorization': f'Bearer {token}'}
