import json
from typing import Iterator

import pytest

from practicehub import prompts


@pytest.fixture(autouse=True)
def reset_templates() -> Iterator[None]:
    """Clear template cache between tests."""
    prompts._load_custom_templates.cache_clear()
    yield
    prompts._load_custom_templates.cache_clear()


def test_report_prompt_includes_context():
    messages = prompts.build_assessment_report_prompt(
        "## Mood\nQ: How often?\nA: Often (4/5)",
        client_name="Sam Taylor",
        template_name="Intake",
        completed_on="March 05, 2024",
        clinician_name="Dr. Jordan Avery",
    )
    assert messages[0]["role"] == "system"
    for heading in ["Reason for Assessment", "Clinical Impressions", "Recommendations"]:
        assert heading in messages[0]["content"]
    user = messages[1]["content"]
    assert "Client: Sam Taylor" in user
    assert "Completed: March 05, 2024" in user
    assert "Assessing clinician: Dr. Jordan Avery" in user
    assert user.endswith("A: Often (4/5)")


def test_report_prompt_without_answers():
    messages = prompts.build_assessment_report_prompt("   ")
    assert "Client: Client" in messages[1]["content"]
    assert "No responses were recorded." in messages[1]["content"]
    assert "Completed:" not in messages[1]["content"]


def test_custom_instructions_by_language(monkeypatch, tmp_path):
    path = tmp_path / "prompt_templates.json"
    path.write_text(json.dumps({"assessment_report": {"en": "Custom EN", "fr": "Rapport FR"}}))
    monkeypatch.setattr(prompts, "TEMPLATES_PATH", str(path))
    assert prompts.report_instructions("fr") == "Rapport FR"
    assert prompts.report_instructions("de") == "Custom EN"
