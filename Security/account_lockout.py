"""
ACCOUNT LOCKOUT
===============
Per-account lockout after repeated failed logins.
"""

# FLOW:
# - Login checks is_locked() before verifying the password.
# - register_failure() counts failures and locks at the threshold.
# - reset() clears the counters after a successful login or password reset.
# WHY:
# - Stops password guessing against a single account.
# HOW:
# - Failure counter and lock expiry live on the users row.

from __future__ import annotations

import datetime
import math
from typing import Callable

from Security.security_logger import utcnow


class AccountLockoutPolicy:
    def __init__(
        self,
        max_attempts: int = 5,
        lock_minutes: int = 15,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self.max_attempts = max_attempts
        self.lock_minutes = lock_minutes
        self.clock = clock

    def is_locked(self, user) -> bool:
        return user.locked_until is not None and user.locked_until > self.clock()

    def minutes_remaining(self, user) -> int:
        if not self.is_locked(user):
            return 0
        seconds = (user.locked_until - self.clock()).total_seconds()
        return max(1, math.ceil(seconds / 60))

    def register_failure(self, user) -> bool:
        """Count a failed attempt; returns True when this attempt locked the account."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= self.max_attempts:
            user.locked_until = self.clock() + datetime.timedelta(minutes=self.lock_minutes)
            return True
        return False

    def reset(self, user) -> None:
        user.failed_login_attempts = 0
        user.locked_until = None
