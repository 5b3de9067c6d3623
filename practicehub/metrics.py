"""Prometheus metrics shared by the report workflow and the HTTP layer."""

from __future__ import annotations

from prometheus_client import REGISTRY, Counter, Histogram


def _get_or_create_metric(metric_cls, name: str, documentation: str, labelnames):
    # Modules are re-imported by tests and reloaders; reuse the registered collector.
    existing = REGISTRY._names_to_collectors.get(name)
    if existing is not None:
        return existing
    return metric_cls(name, documentation, labelnames=labelnames)


REQUEST_COUNTER = _get_or_create_metric(
    Counter,
    "practicehub_requests_total",
    "Total HTTP requests processed by the backend",
    ("method", "endpoint", "status"),
)
REQUEST_LATENCY = _get_or_create_metric(
    Histogram,
    "practicehub_request_latency_seconds",
    "Latency of HTTP requests",
    ("method", "endpoint"),
)
REPORT_TRANSITIONS = _get_or_create_metric(
    Counter,
    "practicehub_report_transitions_total",
    "Assessment report lifecycle transitions that completed",
    ("action",),
)
REPORT_REJECTIONS = _get_or_create_metric(
    Counter,
    "practicehub_report_rejections_total",
    "Assessment report operations rejected with a typed error",
    ("action", "kind"),
)
REPORT_GENERATION_FAILURES = _get_or_create_metric(
    Counter,
    "practicehub_report_generation_failures_total",
    "AI report drafting calls that failed",
    (),
)
REPORT_EXPORTS = _get_or_create_metric(
    Counter,
    "practicehub_report_exports_total",
    "Assessment reports rendered for download",
    ("format", "state"),
)
ORPHANED_RESPONSES = _get_or_create_metric(
    Counter,
    "practicehub_orphaned_responses_total",
    "Responses whose question no longer exists in the assessment template",
    (),
)


__all__ = [
    "REQUEST_COUNTER",
    "REQUEST_LATENCY",
    "REPORT_TRANSITIONS",
    "REPORT_REJECTIONS",
    "REPORT_GENERATION_FAILURES",
    "REPORT_EXPORTS",
    "ORPHANED_RESPONSES",
]
