"""Normalise completed assessment answers into a per-section display model.

The helpers accept ORM rows or any objects exposing the same attribute names
(``question_id``, ``response_text``, ``rating_value`` and ``selected_options``
on responses; ``id``, ``question_text``, ``question_type``, ``options`` and the
``rating_*`` fields on questions) so they stay usable from scripts and tests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence

from practicehub.fallback_options import fallback_options

NO_RESPONSE = "No response provided"
INVALID_SELECTION = "Invalid selection"
NO_OPTIONS_SELECTED = "No options selected"
INVALID_SELECTIONS = "Invalid selections"
NO_RATING = "No rating provided"
UNKNOWN_TYPE = "Unknown response type"

TEXT_TYPES = {"short_text", "long_text"}
OPTION_TYPES = {"multiple_choice", "checkbox"}

DEFAULT_RATING_MIN = 1
DEFAULT_RATING_MAX = 5


class ResponsePair(NamedTuple):
    response: Any
    question: Any


@dataclass
class SectionGrouping:
    """Responses grouped by section id, in template section order.

    ``orphaned`` keeps responses whose question could not be found in any
    section (typically a question deleted after the answer was captured).
    They are excluded from ``sections``.
    """

    sections: Dict[int, List[ResponsePair]] = field(default_factory=dict)
    orphaned: List[Any] = field(default_factory=list)

    @property
    def orphaned_count(self) -> int:
        return len(self.orphaned)

    def __len__(self) -> int:
        return len(self.sections)


def _question_type(question: Any) -> str:
    value = getattr(question, "question_type", None)
    if isinstance(value, enum.Enum):
        value = value.value
    return str(value or "")


def _as_index(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


def resolve_options(question: Any) -> List[str]:
    """Return persisted options, or the canonical fallback list when absent."""

    options = getattr(question, "options", None)
    if options:
        return [str(option) for option in options]
    return fallback_options(getattr(question, "question_text", ""), _question_type(question))


def _option_at(options: Sequence[str], raw_index: Any) -> Optional[str]:
    index = _as_index(raw_index)
    if index is None or index < 0 or index >= len(options):
        return None
    return options[index] or None


def missing_option_indices(response: Any, question: Any) -> List[Any]:
    """Return selected indices that do not resolve to an option."""

    selected = getattr(response, "selected_options", None) or []
    options = resolve_options(question)
    return [raw for raw in selected if _option_at(options, raw) is None]


def group_by_section(responses: Iterable[Any], sections: Sequence[Any]) -> SectionGrouping:
    """Group ``responses`` under the section owning their question."""

    owner: Dict[Any, tuple] = {}
    for section in sections:
        for question in getattr(section, "questions", None) or []:
            owner.setdefault(question.id, (section.id, question))

    buckets: Dict[Any, List[ResponsePair]] = {}
    grouping = SectionGrouping()
    for response in responses:
        match = owner.get(response.question_id)
        if match is None:
            grouping.orphaned.append(response)
            continue
        section_id, question = match
        buckets.setdefault(section_id, []).append(ResponsePair(response, question))

    for section in sections:
        if section.id in buckets:
            grouping.sections[section.id] = buckets[section.id]
    return grouping


def display_value(response: Any, question: Any) -> str:
    """Return the human readable answer for ``response``."""

    qtype = _question_type(question)

    if qtype in TEXT_TYPES:
        text = (getattr(response, "response_text", None) or "").strip()
        return text or NO_RESPONSE

    if qtype == "multiple_choice":
        selected = getattr(response, "selected_options", None) or []
        if not selected:
            return NO_RESPONSE
        option = _option_at(resolve_options(question), selected[0])
        return option if option is not None else INVALID_SELECTION

    if qtype == "checkbox":
        selected = getattr(response, "selected_options", None) or []
        if not selected:
            return NO_OPTIONS_SELECTED
        options = resolve_options(question)
        texts = [text for text in (_option_at(options, raw) for raw in selected) if text]
        if not texts:
            return INVALID_SELECTIONS
        return ", ".join(texts)

    if qtype == "rating_scale":
        value = getattr(response, "rating_value", None)
        if value is None:
            return NO_RATING
        rating_min = getattr(question, "rating_min", None)
        rating_max = getattr(question, "rating_max", None)
        rating_min = DEFAULT_RATING_MIN if rating_min is None else rating_min
        rating_max = DEFAULT_RATING_MAX if rating_max is None else rating_max
        labels = getattr(question, "rating_labels", None) or []
        label_index = value - rating_min
        if 0 <= label_index < len(labels) and labels[label_index]:
            return f"{labels[label_index]} ({value}/{rating_max})"
        return f"{value}/{rating_max}"

    return UNKNOWN_TYPE


def serialize_grouping(grouping: SectionGrouping, sections: Sequence[Any]) -> List[Dict[str, Any]]:
    titles = {section.id: getattr(section, "title", None) for section in sections}
    payload: List[Dict[str, Any]] = []
    for section_id, pairs in grouping.sections.items():
        payload.append(
            {
                "sectionId": section_id,
                "title": titles.get(section_id),
                "responses": [
                    {
                        "questionId": pair.question.id,
                        "questionText": pair.question.question_text,
                        "questionType": _question_type(pair.question),
                        "displayValue": display_value(pair.response, pair.question),
                        "missingOptionIndices": missing_option_indices(pair.response, pair.question),
                    }
                    for pair in pairs
                ],
            }
        )
    return payload


def summarize_for_prompt(grouping: SectionGrouping, sections: Sequence[Any]) -> str:
    """Render grouped answers as plain text for the report drafting prompt."""

    titles = {section.id: getattr(section, "title", None) for section in sections}
    blocks: List[str] = []
    for section_id, pairs in grouping.sections.items():
        lines = [f"## {titles.get(section_id) or f'Section {section_id}'}"]
        for pair in pairs:
            lines.append(f"Q: {(pair.question.question_text or '').strip()}")
            lines.append(f"A: {display_value(pair.response, pair.question)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


__all__ = [
    "NO_RESPONSE",
    "INVALID_SELECTION",
    "NO_OPTIONS_SELECTED",
    "INVALID_SELECTIONS",
    "NO_RATING",
    "UNKNOWN_TYPE",
    "ResponsePair",
    "SectionGrouping",
    "resolve_options",
    "missing_option_indices",
    "group_by_section",
    "display_value",
    "serialize_grouping",
    "summarize_for_prompt",
]
