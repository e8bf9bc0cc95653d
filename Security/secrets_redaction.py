"""
SECRETS REDACTION
=================
Masks credential-like query parameters before request lines are logged.
"""

# FLOW:
# - ActivityLoggingMiddleware passes the raw query string through redact().
# WHY:
# - Request logs must never carry passwords or reset codes.
# HOW:
# - One case-insensitive pattern replaces the value of sensitive keys with ***.

from __future__ import annotations

import re

from Security.security_config import feature_enabled


_SENSITIVE_PARAM = re.compile(
    r"\b((?:new_|current_|confirm_)?password|token|code|secret)=([^&\s]+)",
    re.IGNORECASE,
)


def redact(value: str) -> str:
    if not feature_enabled("secrets-redaction", True):
        return value
    return _SENSITIVE_PARAM.sub(r"\1=***", value)
