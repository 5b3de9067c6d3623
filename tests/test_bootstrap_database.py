import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa

from practicehub.report_service import ReportService

SCRIPT = Path(__file__).resolve().parents[1] / 'scripts' / 'bootstrap_database.py'


@pytest.fixture(scope='module')
def bootstrap():
    spec = importlib.util.spec_from_file_location('bootstrap_database', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_seed_demo_data_is_reportable(bootstrap, db_session):
    seeded = bootstrap.seed_demo_data(db_session, clinician_username='demo@example.com')
    db_session.commit()
    assert seeded['responses'] == len(bootstrap.DEMO_ANSWERS)

    service = ReportService(db_session)
    summary = service.summary_view(seeded['assignment_id'])
    assert [section['title'] for section in summary['sections']] == [
        'Session Details',
        'BDI-II Items',
        'Current Concerns',
    ]
    assert summary['orphanedCount'] == 0

    report = service.generate(seeded['assignment_id'])
    assert 'Offline draft' in report.generated_content


def test_seed_reuses_template_and_people(bootstrap, db_session):
    first = bootstrap.seed_demo_data(db_session)
    second = bootstrap.seed_demo_data(db_session)
    assert first['template_id'] == second['template_id']
    assert first['clinician_id'] == second['clinician_id']
    assert first['assignment_id'] != second['assignment_id']


def test_main_schema_only(bootstrap, tmp_path, capsys):
    db_path = tmp_path / 'demo.db'
    assert bootstrap.main(['--database', str(db_path), '--schema-only']) == 0
    assert 'Demo data seeding skipped.' in capsys.readouterr().out

    engine = sa.create_engine(f'sqlite:///{db_path}')
    try:
        assert 'assessment_reports' in sa.inspect(engine).get_table_names()
    finally:
        engine.dispose()
