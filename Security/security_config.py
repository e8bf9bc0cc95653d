"""
SECURITY CONFIG
===============
Centralized security settings loaded from environment.
"""

# FLOW:
# - Read env vars once and expose SECURITY_SETTINGS.
# WHY:
# - Centralizes security tuning per environment.
# HOW:
# - Loads .env with python-dotenv, reads typed env vars into a dict.

from __future__ import annotations

import logging
import os
import secrets

import dotenv


def get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_path() -> str:
    root = os.path.dirname(os.path.dirname(__file__))
    return os.path.join(root, os.getenv("APP_ENV_FILE", ".env"))


dotenv.load_dotenv(_env_path())

if os.getenv("APP_ENV_LOG", "false").lower() == "true":
    logging.getLogger("security.env").info("Active env file: %s", _env_path())

SECURITY_SETTINGS = {
    "DATABASE_URL": os.getenv("DATABASE_URL", "sqlite:///./finance_tracker.db"),
    "LOG_DIR": os.getenv("LOG_DIR", "logs"),
    "LOGIN_MAX_ATTEMPTS": get_int("LOGIN_MAX_ATTEMPTS", 5),
    "LOGIN_LOCK_MINUTES": get_int("LOGIN_LOCK_MINUTES", 15),
    "BRUTE_FORCE_THRESHOLD": get_int("BRUTE_FORCE_THRESHOLD", 10),
    "BRUTE_FORCE_WINDOW_MINUTES": get_int("BRUTE_FORCE_WINDOW_MINUTES", 15),
    "BRUTE_FORCE_FAIL_CLOSED": get_bool("BRUTE_FORCE_FAIL_CLOSED", True),
    "SESSION_IDLE_WARNING": get_int("SESSION_IDLE_WARNING", 28 * 60),
    "SESSION_IDLE_TIMEOUT": get_int("SESSION_IDLE_TIMEOUT", 30 * 60),
    "ACTIVITY_THROTTLE_SECONDS": get_int("ACTIVITY_THROTTLE_SECONDS", 1),
    "PUBLIC_PATHS": get_list(
        "PUBLIC_PATHS",
        ["/login", "/register", "/forgot-password", "/reset-password"],
    ),
    "RATE_LIMIT_ENABLED": get_bool("RATE_LIMIT_ENABLED", True),
    "RATE_LIMIT_WINDOW_MINUTES": get_int("RATE_LIMIT_WINDOW_MINUTES", 15),
    "API_RATE_LIMIT": get_int("API_RATE_LIMIT", 100),
    "AUTH_RATE_LIMIT": get_int("AUTH_RATE_LIMIT", 50),
    "RESET_CODE_MINUTES": get_int("RESET_CODE_MINUTES", 10),
    "SECURITY_LOGS_DEFAULT_LIMIT": get_int("SECURITY_LOGS_DEFAULT_LIMIT", 50),
    "SECURITY_LOGS_MAX_LIMIT": get_int("SECURITY_LOGS_MAX_LIMIT", 100),
    "HTTPS_ONLY_COOKIES": get_bool("HTTPS_ONLY_COOKIES", False),
    "PORT": get_int("PORT", 8000),
}


def feature_enabled(name: str, default: bool = True) -> bool:
    """Feature toggles read as FEATURE_<NAME>, e.g. FEATURE_AUDIT_TRAIL=false."""
    key = "FEATURE_" + name.upper().replace("-", "_")
    return get_bool(key, default)


def ensure_session_secret(env_name: str = "SESSION_SECRET_KEY") -> str:
    """Return the configured session secret, generating one for this process if missing."""
    primary = os.getenv(env_name) or os.getenv("SECRET_KEY")
    placeholders = {"", "change-this-secret", "REPLACE_WITH_SECURE_RANDOM_SECRET"}
    if primary and primary not in placeholders:
        os.environ[env_name] = primary
        return primary

    secret = secrets.token_urlsafe(64)
    os.environ[env_name] = secret
    logging.getLogger("security.env").warning(
        "%s not configured; generated an ephemeral secret (sessions will not survive restarts)",
        env_name,
    )
    return secret
