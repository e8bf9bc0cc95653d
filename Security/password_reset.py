"""
PASSWORD RESET CODES
====================
Time-limited one-time codes for the forgot-password flow.
"""

# FLOW:
# - issue() stores a hashed 6-digit code and its expiry on the user row.
# - verify() checks presence, then the code, then the expiry.
# - clear() drops the code once the password has been replaced.
# WHY:
# - A mailed code proves control of the address without exposing the password.
# HOW:
# - The code is hashed with the same passlib context as passwords; only the hash is stored.

from __future__ import annotations

import datetime
import secrets
from typing import Callable

from Security.authentication import hash_password, verify_password
from Security.security_logger import utcnow

ERROR_NO_CODE = "Invalid or expired reset code"
ERROR_WRONG_CODE = "Invalid reset code"
ERROR_EXPIRED_CODE = "Reset code has expired"


class ResetCodeError(ValueError):
    pass


class PasswordResetCodes:
    def __init__(self, ttl_minutes: int = 10, clock: Callable[[], datetime.datetime] = utcnow):
        self.ttl_minutes = ttl_minutes
        self.clock = clock

    def issue(self, user) -> str:
        code = str(100000 + secrets.randbelow(900000))
        user.reset_code_hash = hash_password(code)
        user.reset_code_expires_at = self.clock() + datetime.timedelta(minutes=self.ttl_minutes)
        return code

    def verify(self, user, code: str) -> None:
        if user is None or not user.reset_code_hash or not user.reset_code_expires_at:
            raise ResetCodeError(ERROR_NO_CODE)
        if not verify_password(code, user.reset_code_hash):
            raise ResetCodeError(ERROR_WRONG_CODE)
        if self.clock() > user.reset_code_expires_at:
            raise ResetCodeError(ERROR_EXPIRED_CODE)

    def clear(self, user) -> None:
        user.reset_code_hash = None
        user.reset_code_expires_at = None
