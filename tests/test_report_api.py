"""End-to-end tests for the assessment report endpoints."""

import io

from docx import Document

from practicehub.auth import create_access_token
from practicehub.db import models

BASE = '/api/assessments/assignments'


def test_requires_bearer_token(api_client, seeded):
    resp = api_client.post(f'{BASE}/{seeded.assignment_id}/generate-report')
    assert resp.status_code in (401, 403)

    resp = api_client.get(
        f'{BASE}/{seeded.assignment_id}/report', headers={'Authorization': 'Bearer badtoken'}
    )
    assert resp.status_code == 401
    body = resp.json()
    assert body['success'] is False
    assert body['error']['message'] == 'Invalid or expired token'


def test_report_missing_returns_not_found_envelope(api_client, seeded, auth_headers):
    resp = api_client.get(f'{BASE}/{seeded.assignment_id}/report', headers=auth_headers)
    assert resp.status_code == 404
    error = resp.json()['error']
    assert error['code'] == 'NotFound'
    assert error['assignmentId'] == seeded.assignment_id


def test_full_lifecycle(api_client, seeded, auth_headers):
    url = f'{BASE}/{seeded.assignment_id}'

    resp = api_client.post(f'{url}/generate-report', headers=auth_headers)
    assert resp.status_code == 200
    report = resp.json()['data']
    assert report['state'] == 'draft'
    assert report['editable'] is True
    assert report['draftContent'] == report['generatedContent']
    assert 'Offline draft' in report['activeContent']

    resp = api_client.put(
        f'{url}/report', json={'draftContent': '<h2>Impressions</h2><p>Edited.</p>'}, headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()['data']['activeContent'] == '<h2>Impressions</h2><p>Edited.</p>'

    resp = api_client.post(f'{url}/report/finalize', headers=auth_headers)
    assert resp.status_code == 200
    finalized = resp.json()['data']
    assert finalized['state'] == 'finalized'
    assert finalized['finalContent'] == '<h2>Impressions</h2><p>Edited.</p>'
    assert finalized['finalizedById'] == seeded.clinician_id
    assert finalized['finalizedAt'].endswith('Z')
    assert finalized['actions'] == ['reopen', 'export']

    resp = api_client.post(f'{url}/report/finalize', headers=auth_headers)
    assert resp.status_code == 409
    assert resp.json()['error']['code'] == 'InvalidState'
    again = api_client.get(f'{url}/report', headers=auth_headers).json()['data']
    assert again['finalizedAt'] == finalized['finalizedAt']

    resp = api_client.put(f'{url}/report', json={'draftContent': 'late edit'}, headers=auth_headers)
    assert resp.status_code == 409

    resp = api_client.post(f'{url}/report/unfinalize', headers=auth_headers)
    assert resp.status_code == 200
    reopened = resp.json()['data']
    assert reopened['state'] == 'draft'
    assert reopened['finalContent'] == finalized['finalContent']


def test_generate_with_reset_flag(api_client, seeded, auth_headers):
    url = f'{BASE}/{seeded.assignment_id}'
    api_client.post(f'{url}/generate-report', headers=auth_headers)
    api_client.put(f'{url}/report', json={'draftContent': '<p>Keep me</p>'}, headers=auth_headers)

    resp = api_client.post(f'{url}/generate-report', json={'resetDraft': False}, headers=auth_headers)
    assert resp.json()['data']['draftContent'] == '<p>Keep me</p>'

    resp = api_client.post(f'{url}/generate-report', json={'resetDraft': True}, headers=auth_headers)
    assert resp.json()['data']['draftContent'] != '<p>Keep me</p>'


def test_generate_incomplete_assignment(api_client, seeded, auth_headers):
    resp = api_client.post(
        f'{BASE}/{seeded.incomplete_assignment_id}/generate-report', headers=auth_headers
    )
    assert resp.status_code == 422
    assert resp.json()['error']['code'] == 'PreconditionFailed'


def test_upstream_failure_is_retryable(api_client, seeded, auth_headers, monkeypatch):
    from practicehub import report_service

    def failing_call(messages, **kwargs):
        raise RuntimeError('upstream timeout')

    monkeypatch.setattr(report_service, 'call_openai', failing_call)
    resp = api_client.post(f'{BASE}/{seeded.assignment_id}/generate-report', headers=auth_headers)
    assert resp.status_code == 502
    error = resp.json()['error']
    assert error['code'] == 'UpstreamFailure'
    assert error['retryable'] is True
    assert 'upstream timeout' not in error['message']


def test_finalize_empty_report_is_precondition_failure(api_client, seeded, auth_headers, monkeypatch):
    from practicehub import report_service

    monkeypatch.setattr(report_service, 'call_openai', lambda messages, **kwargs: '   ')
    url = f'{BASE}/{seeded.assignment_id}'
    api_client.post(f'{url}/generate-report', headers=auth_headers)
    api_client.put(f'{url}/report', json={'draftContent': ''}, headers=auth_headers)

    resp = api_client.post(f'{url}/report/finalize', headers=auth_headers)
    assert resp.status_code == 422
    report = api_client.get(f'{url}/report', headers=auth_headers).json()['data']
    assert report['isFinalized'] is False
    assert report['finalizedAt'] is None


def test_unknown_clinician_token_finalizes_without_actor_id(api_client, seeded, auth_headers):
    url = f'{BASE}/{seeded.assignment_id}'
    api_client.post(f'{url}/generate-report', headers=auth_headers)
    token = create_access_token('temp.staff', 'clinician')
    resp = api_client.post(f'{url}/report/finalize', headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 200
    assert resp.json()['data']['finalizedById'] is None


def test_insufficient_role_is_forbidden(api_client, seeded):
    token = create_access_token('reception', 'front_desk')
    resp = api_client.post(
        f'{BASE}/{seeded.assignment_id}/generate-report',
        headers={'Authorization': f'Bearer {token}'},
    )
    assert resp.status_code == 403
    assert resp.json()['error']['message'] == 'Insufficient privileges'


def test_read_endpoints(api_client, seeded, auth_headers):
    resp = api_client.get(f'{BASE}/{seeded.assignment_id}', headers=auth_headers)
    assignment = resp.json()['data']
    assert assignment['client']['fullName'] == 'Sam Taylor'
    assert assignment['reportState'] == 'no_report'
    assert assignment['reportActions'] == ['generate']

    resp = api_client.get(f'{BASE}/{seeded.assignment_id}/responses', headers=auth_headers)
    values = {item['questionId']: item['displayValue'] for item in resp.json()['data']}
    assert values[seeded.question_ids['How often do you feel anxious?']] == 'Sometimes (3/5)'
    assert values[seeded.question_ids['Physical concerns']] == 'Headaches, Fatigue'
    assert values[seeded.question_ids['What brings you in today?']] == 'Trouble sleeping and low mood.'

    resp = api_client.get(f'{BASE}/{seeded.assignment_id}/summary', headers=auth_headers)
    summary = resp.json()['data']
    assert [section['sectionId'] for section in summary['sections']] == seeded.section_ids
    assert summary['orphanedCount'] == 0

    resp = api_client.get(f'/api/assessments/templates/{seeded.template_id}/sections', headers=auth_headers)
    sections = resp.json()['data']
    assert sections[0]['questions'][1]['resolvedOptions'] == ['In-Person', 'Online', 'Phone']


def test_unknown_assignment_is_not_found(api_client, seeded, auth_headers):
    resp = api_client.get(f'{BASE}/9999', headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()['success'] is False


def test_downloads(api_client, seeded, auth_headers):
    url = f'{BASE}/{seeded.assignment_id}'
    resp = api_client.get(f'{url}/download/pdf', headers=auth_headers)
    assert resp.status_code == 404

    api_client.post(f'{url}/generate-report', headers=auth_headers)

    resp = api_client.get(f'{url}/download/pdf', headers=auth_headers)
    assert resp.status_code == 200
    assert resp.headers['content-type'] == 'application/pdf'
    assert resp.content.startswith(b'%PDF')
    assert 'attachment; filename="assessment-report-Sam-Taylor-' in resp.headers['content-disposition']

    resp = api_client.get(f'{url}/download/docx', headers=auth_headers)
    assert resp.status_code == 200
    assert resp.content[:2] == b'PK'

    resp = api_client.get(f'{url}/download/html', headers=auth_headers)
    assert resp.status_code == 200
    assert 'Digitally signed' not in resp.text

    api_client.post(f'{url}/report/finalize', headers=auth_headers)
    resp = api_client.get(f'{url}/download/html', headers=auth_headers)
    assert 'Digitally signed' in resp.text
    assert 'Harbourview Counselling' in resp.text

    resp = api_client.get(f'{url}/download/odt', headers=auth_headers)
    assert resp.status_code == 422


def test_plain_text_draft_survives_every_export(api_client, seeded, auth_headers):
    url = f'{BASE}/{seeded.assignment_id}'
    text = 'Anxiety & low mood (score < 10)'
    api_client.post(f'{url}/generate-report', headers=auth_headers)

    resp = api_client.put(f'{url}/report', json={'draftContent': text}, headers=auth_headers)
    assert resp.json()['data']['activeContent'] == text

    page = api_client.get(f'{url}/download/html', headers=auth_headers).text
    assert '<p>Anxiety &amp; low mood (score &lt; 10)</p>' in page
    assert '&amp;amp;' not in page

    pdf = api_client.get(f'{url}/download/pdf', headers=auth_headers).content
    assert b'(Anxiety & low mood \\(score < 10\\)) Tj' in pdf
    assert b'&amp;' not in pdf

    payload = api_client.get(f'{url}/download/docx', headers=auth_headers).content
    texts = [paragraph.text for paragraph in Document(io.BytesIO(payload)).paragraphs]
    assert text in texts


def test_client_name_is_returned_as_typed(api_client, seeded, auth_headers, db_session):
    client = db_session.get(models.Client, seeded.client_id)
    client.full_name = 'Sam & <b>Co</b> Taylor'
    db_session.commit()

    resp = api_client.get(f'{BASE}/{seeded.assignment_id}', headers=auth_headers)
    assert resp.json()['data']['client']['fullName'] == 'Sam & Co Taylor'


def test_validation_errors_use_envelope(api_client, seeded, auth_headers):
    api_client.post(f'{BASE}/{seeded.assignment_id}/generate-report', headers=auth_headers)
    resp = api_client.put(f'{BASE}/{seeded.assignment_id}/report', json={}, headers=auth_headers)
    assert resp.status_code == 422
    assert resp.json()['error']['code'] == 'ValidationError'


def test_health_and_metrics(api_client, seeded, auth_headers):
    resp = api_client.get('/health')
    assert resp.status_code == 200
    assert resp.json()['db'] is True

    api_client.post(f'{BASE}/{seeded.assignment_id}/generate-report', headers=auth_headers)
    resp = api_client.get('/metrics')
    assert resp.status_code == 200
    assert 'practicehub_report_transitions_total' in resp.text
    assert 'practicehub_requests_total' in resp.text
