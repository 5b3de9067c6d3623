import html
import re

import bleach

# Formatting the report editor toolbar can produce.
REPORT_TAGS = [
    "p",
    "br",
    "h1",
    "h2",
    "h3",
    "strong",
    "b",
    "em",
    "i",
    "u",
    "ul",
    "ol",
    "li",
    "pre",
    "blockquote",
]

# An opening, closing or comment tag; a bare "<" in prose is not markup.
_TAG_RE = re.compile(r"<(?:[a-zA-Z][^>]*|/[a-zA-Z][^>]*|!--.*?--)>", re.DOTALL)


def has_markup(value: str) -> bool:
    """Return ``True`` when *value* contains at least one HTML tag."""
    return bool(_TAG_RE.search(value or ""))


def sanitize_text(value: str) -> str:
    """Return *value* as plain text with any HTML tags stripped.

    The result is meant for JSON payloads, so entities bleach introduces for
    ``&``/``<``/``>`` are decoded back to the characters the user typed.
    """
    return html.unescape(bleach.clean(value or "", tags=[], attributes={}, strip=True))


def sanitize_report_html(value: str) -> str:
    """Return *value* restricted to the rich-text subset used in reports.

    Disallowed tags are stripped (their text is kept) and every attribute is
    dropped, so pasted markup cannot carry scripts or styles into exports.
    Plain or markdown text without tags is returned unchanged; it is escaped
    when it is converted to HTML for export.
    """
    if not has_markup(value):
        return value or ""
    return bleach.clean(value, tags=REPORT_TAGS, attributes={}, strip=True)
