"""
AUDIT TRAIL
===========
Operational logging channel for security events.
"""

# FLOW:
# - Middleware binds request context once per request.
# - audit() emits a structured line for each security event.
# - get_audit_logger() is the channel used to report audit-store failures.
# WHY:
# - Keeps a readable trail even when the audit table is unavailable.
# HOW:
# - Emits structured log lines to logs/audit.log.

from __future__ import annotations

import contextvars
import logging
import os
from logging.handlers import RotatingFileHandler

from Security.security_config import SECURITY_SETTINGS, feature_enabled


_audit_ctx: contextvars.ContextVar[dict[str, str] | None] = contextvars.ContextVar("audit_ctx", default=None)


def get_audit_logger() -> logging.Logger:
    logger = logging.getLogger("security.audit")
    if logger.handlers:
        return logger

    log_dir = SECURITY_SETTINGS["LOG_DIR"]
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(os.path.join(log_dir, "audit.log"), maxBytes=2_000_000, backupCount=3)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


def set_audit_request_context(request, ip: str):
    payload = {
        "ip": ip,
        "request_id": str(request.headers.get("x-request-id", "") or "").strip(),
        "path": str(request.url.path or "").strip(),
        "method": str(request.method or "").strip(),
    }
    return _audit_ctx.set(payload)


def clear_audit_request_context(token) -> None:
    _audit_ctx.reset(token)


def audit(event: str, user_id: int | None = None, success: bool = True, details: str | None = None) -> None:
    if not feature_enabled("audit-trail", True):
        return
    ctx = _audit_ctx.get() or {}
    get_audit_logger().info(
        "event=%s user_id=%s success=%s ip=%s request_id=%s method=%s path=%s details=%s",
        event,
        user_id,
        success,
        ctx.get("ip", "-"),
        ctx.get("request_id", ""),
        ctx.get("method", ""),
        ctx.get("path", ""),
        details or "",
    )
