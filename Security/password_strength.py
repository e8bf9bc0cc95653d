"""
PASSWORD STRENGTH VALIDATION
============================
One password policy, scored once, presented on several scales.

Hard requirements (each failure adds an error and makes the password invalid):
- minimum 8 characters
- at least one uppercase letter
- at least one lowercase letter
- at least one number
- at least one special character
- no common, easily guessed pattern

Soft checks (suggestions only):
- prefer 12+ characters
- avoid repeating a character 3 or more times in a row
"""

# FLOW:
# - validate_password() scores on the 0-5 scale and collects errors/suggestions.
# - ensure_valid_password() is the authoritative gate for password set/change.
# WHY:
# - Live feedback and server enforcement must agree on the same rules.
# HOW:
# - Additive half-point scoring, pattern penalties, clamped to [0, 5];
#   normalized/advisory/label views are derived from the same score.

from __future__ import annotations

import re
from dataclasses import dataclass, field

MIN_LENGTH = 8
LONG_LENGTH = 12
VERY_LONG_LENGTH = 16
MAX_SCORE = 5.0

SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"

STRENGTH_LABELS = ("Very Weak", "Weak", "Fair", "Strong", "Very Strong")

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")
_REPEAT = re.compile(r"(.)\1{2,}")

COMMON_PATTERNS = (
    re.compile(r"^123456"),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"qwerty", re.IGNORECASE),
    re.compile(r"abc123", re.IGNORECASE),
    re.compile(r"111111"),
    re.compile(r"123123"),
    re.compile(r"admin", re.IGNORECASE),
    re.compile(r"letmein", re.IGNORECASE),
    re.compile(r"welcome", re.IGNORECASE),
    re.compile(r"monkey", re.IGNORECASE),
    re.compile(r"dragon", re.IGNORECASE),
    re.compile(r"master", re.IGNORECASE),
)

ERROR_LENGTH = f"Password must be at least {MIN_LENGTH} characters long"
ERROR_UPPERCASE = "Password must contain at least one uppercase letter"
ERROR_LOWERCASE = "Password must contain at least one lowercase letter"
ERROR_DIGIT = "Password must contain at least one number"
ERROR_SPECIAL = "Password must contain at least one special character (!@#$%^&*...)"
ERROR_COMMON_PATTERN = "Password contains a common pattern that is easy to guess"

SUGGESTION_LONGER = f"Consider using a longer password ({LONG_LENGTH}+ characters)"
SUGGESTION_REPEAT = 'Avoid repeating characters (e.g., "aaa")'


def strength_band(score: float) -> int:
    """Map a 0-5 score onto the five strength bands (0 = very weak, 4 = very strong)."""
    if score <= 1:
        return 0
    if score <= 2:
        return 1
    if score <= 3:
        return 2
    if score <= 4:
        return 3
    return 4


def strength_label(score: float) -> str:
    return STRENGTH_LABELS[strength_band(score)]


@dataclass(frozen=True)
class PasswordValidationResult:
    score: float
    errors: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def normalized(self) -> float:
        """Score as a fraction of the maximum, in [0, 1]."""
        return self.score / MAX_SCORE

    @property
    def advisory_score(self) -> int:
        """Integer 0-4 scale used for live strength meters."""
        return strength_band(self.score)

    @property
    def label(self) -> str:
        return strength_label(self.score)

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "score": self.score,
            "strength": self.label,
            "normalizedScore": round(self.normalized, 2),
            "advisoryScore": self.advisory_score,
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
        }


class PasswordValidationError(ValueError):
    """Raised when a password fails one or more hard requirements."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Password validation failed: {', '.join(self.errors)}")


def validate_password(password: str) -> PasswordValidationResult:
    errors: list[str] = []
    suggestions: list[str] = []
    score = 0.0

    if len(password) < MIN_LENGTH:
        errors.append(ERROR_LENGTH)
    else:
        score += 1
        if len(password) >= LONG_LENGTH:
            score += 1
            if len(password) >= VERY_LONG_LENGTH:
                score += 0.5
        else:
            suggestions.append(SUGGESTION_LONGER)

    if not _UPPER.search(password):
        errors.append(ERROR_UPPERCASE)
    else:
        score += 0.5

    if not _LOWER.search(password):
        errors.append(ERROR_LOWERCASE)
    else:
        score += 0.5

    if not _DIGIT.search(password):
        errors.append(ERROR_DIGIT)
    else:
        score += 0.5

    if not _SPECIAL.search(password):
        errors.append(ERROR_SPECIAL)
    else:
        score += 1

    if any(pattern.search(password) for pattern in COMMON_PATTERNS):
        errors.append(ERROR_COMMON_PATTERN)
        score -= 1

    if _REPEAT.search(password):
        suggestions.append(SUGGESTION_REPEAT)
        score -= 0.5

    score = max(0.0, min(MAX_SCORE, score))
    return PasswordValidationResult(
        score=round(score, 1),
        errors=errors,
        suggestions=suggestions,
    )


def ensure_valid_password(password: str) -> PasswordValidationResult:
    result = validate_password(password)
    if not result.is_valid:
        raise PasswordValidationError(result.errors)
    return result
