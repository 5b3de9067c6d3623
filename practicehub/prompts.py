"""
Prompt templates for drafting clinical assessment reports.

The functions construct chat messages for ``call_openai``.  A practice may
override the report instructions by dropping a ``prompt_templates.json`` file
next to this module with an ``assessment_report`` entry (either a string or a
mapping of language code to string).
"""

from typing import Any, Dict, List, Optional
import json
import os
from functools import lru_cache


DEFAULT_REPORT_INSTRUCTIONS = (
    "You are a licensed clinical psychologist writing a professional assessment "
    "report for a client's file. Use only the questionnaire answers provided. "
    "Write in the third person, avoid diagnosing beyond what the answers support, "
    "and flag any risk indicators (for example suicidal thoughts) explicitly. "
    "Return HTML using <h2> section headings and <p> paragraphs with these sections: "
    "Reason for Assessment, Presenting Concerns, Assessment Findings, "
    "Clinical Impressions, Recommendations."
)


TEMPLATES_PATH = os.path.join(os.path.dirname(__file__), "prompt_templates.json")


@lru_cache()
def _load_custom_templates() -> Dict[str, Any]:
    """Load custom prompt templates from ``prompt_templates.json`` if present."""
    if os.path.exists(TEMPLATES_PATH):
        with open(TEMPLATES_PATH, "r", encoding="utf-8") as f:
            return json.load(f)
    return {}


def _resolve_lang(entry: Any, lang: str) -> Optional[str]:
    """Return a language-specific string from ``entry``.

    ``entry`` may either be a plain string or a mapping of language codes to
    strings.  English is used when ``lang`` is missing.
    """

    if isinstance(entry, dict):
        return entry.get(lang) or entry.get("en")
    if isinstance(entry, str):
        return entry
    return None


def report_instructions(lang: str = "en") -> str:
    custom = _resolve_lang(_load_custom_templates().get("assessment_report"), lang)
    return custom or DEFAULT_REPORT_INSTRUCTIONS


def build_assessment_report_prompt(
    responses_summary: str,
    *,
    client_name: Optional[str] = None,
    template_name: Optional[str] = None,
    completed_on: Optional[str] = None,
    clinician_name: Optional[str] = None,
    lang: str = "en",
) -> List[Dict[str, str]]:
    """Return chat messages asking the model to draft an assessment report."""

    header_lines = [
        f"Client: {client_name or 'Client'}",
        f"Assessment: {template_name or 'Assessment'}",
    ]
    if completed_on:
        header_lines.append(f"Completed: {completed_on}")
    if clinician_name:
        header_lines.append(f"Assessing clinician: {clinician_name}")
    user_content = "\n".join(header_lines) + "\n\nQuestionnaire responses:\n\n" + (
        responses_summary.strip() or "No responses were recorded."
    )
    return [
        {"role": "system", "content": report_instructions(lang)},
        {"role": "user", "content": user_content},
    ]
