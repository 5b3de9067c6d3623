"""
Simple wrapper for the OpenAI Chat Completions API with an offline fallback.

Behaviour hierarchy:
1. If USE_OFFLINE_MODEL is set, return a deterministic placeholder without any
   external calls.
2. Otherwise call the real OpenAI API using OPENAI_API_KEY.

Any exception during the OpenAI call is converted into a RuntimeError so
callers have a consistent error path.
"""

from typing import Dict, List, Optional
import hashlib
import html
import os

# ``openai`` is imported lazily only when needed so offline development and
# the test suite never construct a network client.

_DEFAULT_TIMEOUT = 60.0


def _use_offline() -> bool:
    return os.getenv("USE_OFFLINE_MODEL", "").lower() in {"1", "true", "yes"}


def _deterministic_placeholder(messages: List[Dict[str, str]]) -> str:
    """Return a deterministic draft built from the user message content."""
    joined = "\n".join(f"{m.get('role')}:{m.get('content','')}" for m in messages)
    h = hashlib.sha1(joined.encode("utf-8")).hexdigest()[:12]
    user_content = next(
        (m.get("content", "") for m in reversed(messages) if m.get("role") == "user"),
        "",
    )
    return (
        f"<h2>Assessment Summary</h2>\n<p>Offline draft ({h}).</p>\n"
        f"<h2>Responses Reviewed</h2>\n<pre>{html.escape(user_content.strip())}</pre>"
    )


def _request_timeout() -> float:
    raw = os.getenv("OPENAI_TIMEOUT_SECONDS")
    try:
        return float(raw) if raw else _DEFAULT_TIMEOUT
    except ValueError:
        return _DEFAULT_TIMEOUT


def call_openai(
    messages: List[Dict[str, str]],
    model: str = "gpt-4o",
    temperature: float = 0,
    max_tokens: Optional[int] = None,
) -> str:
    """Chat completion with an offline fallback.

    Args:
        messages: OpenAI-style message dicts.
        model: Remote model name (ignored in offline mode).
        temperature: Sampling temperature.
        max_tokens: Optional completion length cap.
    Returns:
        Assistant response content string.
    Raises:
        RuntimeError on failure (missing key, network or SDK issues, empty output).
    """
    if _use_offline():
        return _deterministic_placeholder(messages)

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OpenAI key not configured.")
    try:
        from openai import OpenAI

        client = OpenAI(api_key=api_key, timeout=_request_timeout(), max_retries=0)
        kwargs = {"model": model, "messages": messages, "temperature": temperature}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        response = client.chat.completions.create(**kwargs)
        content = response.choices[0].message.content
    except Exception as exc:  # pragma: no cover - network errors / SDK issues
        raise RuntimeError(f"Error calling OpenAI: {exc}") from exc
    if not content or not content.strip():
        raise RuntimeError("OpenAI returned an empty response")
    return content
