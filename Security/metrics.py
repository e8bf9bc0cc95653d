"""
SECURITY METRICS
================
Prometheus-backed counters for security events.
"""

from __future__ import annotations

import os

from prometheus_client import Counter

_EVENTS = None
_AUDIT_WRITE_FAILURES = None
_BRUTE_FORCE_FLAGS = None


def _enabled() -> bool:
    return os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true"


def _init_metrics() -> None:
    global _EVENTS, _AUDIT_WRITE_FAILURES, _BRUTE_FORCE_FLAGS
    if _EVENTS is not None or not _enabled():
        return
    _EVENTS = Counter(
        "security_events_total",
        "Security events durably written to the audit log",
        ["event_type"],
    )
    _AUDIT_WRITE_FAILURES = Counter(
        "security_audit_write_failures_total",
        "Security events that could not be persisted",
    )
    _BRUTE_FORCE_FLAGS = Counter(
        "security_bruteforce_flags_total",
        "Login attempts rejected because the source IP looked suspicious",
    )


def increment_security_event(event_type: str) -> None:
    _init_metrics()
    if _EVENTS is None:
        return
    _EVENTS.labels(event_type=event_type).inc()


def increment_audit_write_failure() -> None:
    _init_metrics()
    if _AUDIT_WRITE_FAILURES is None:
        return
    _AUDIT_WRITE_FAILURES.inc()


def increment_brute_force_flag() -> None:
    _init_metrics()
    if _BRUTE_FORCE_FLAGS is None:
        return
    _BRUTE_FORCE_FLAGS.inc()

