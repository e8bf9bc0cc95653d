"""
ACTIVITY TRACKING
=================
Structured request logging for monitoring.

FLOW:
- Middleware logs each request with user/session context.
- Binds the audit context (client ip, request id) for the request's duration.
- Added to the FastAPI middleware stack in app/main.py.

WHY:
- Provides traceability for security audits and incident response.

HOW:
- Writes structured request logs to logs/security.log.
"""

from __future__ import annotations

import logging
import os
import time
from logging.handlers import RotatingFileHandler

from starlette.middleware.base import BaseHTTPMiddleware

from Security.audit_trail import clear_audit_request_context, set_audit_request_context
from Security.secrets_redaction import redact
from Security.security_config import SECURITY_SETTINGS
from Security.security_logger import get_client_ip


def _get_logger() -> logging.Logger:
    logger = logging.getLogger("security.activity")
    if logger.handlers:
        return logger

    log_dir = SECURITY_SETTINGS["LOG_DIR"]
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(os.path.join(log_dir, "security.log"), maxBytes=2_000_000, backupCount=3)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handler.setFormatter(formatter)

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


class ActivityLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app):
        super().__init__(app)
        self.logger = _get_logger()

    async def dispatch(self, request, call_next):
        ip = get_client_ip(request)
        token = set_audit_request_context(request, ip)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_audit_request_context(token)
        duration = (time.perf_counter() - start) * 1000
        session = request.scope.get("session", {})
        query = request.url.query
        if query:
            query = redact(query)
        self.logger.info(
            "method=%s path=%s query=%s status=%s user_id=%s ip=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            query or "",
            response.status_code,
            session.get("user_id"),
            ip,
            duration,
        )
        return response
