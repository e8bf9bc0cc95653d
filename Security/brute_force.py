"""
BRUTE-FORCE ATTACK DETECTION
============================
Flags source IPs with a high density of recent failed logins.
"""

# FLOW:
# - Login route awaits should_block(ip) before checking credentials.
# - is_suspicious() counts LOGIN_FAILED entries for the IP in the window.
# WHY:
# - Slows credential stuffing that spreads attempts across many accounts.
# HOW:
# - Fixed-window count from the audit log; no state kept here.
#   A burst straddling the window boundary can stay under the threshold.

from __future__ import annotations

from Security.audit_trail import get_audit_logger
from Security.metrics import increment_brute_force_flag
from Security.security_logger import SecurityEventRecorder


class BruteForceDetector:
    def __init__(
        self,
        recorder: SecurityEventRecorder,
        threshold: int = 10,
        window_minutes: int = 15,
        fail_closed: bool = True,
    ):
        self.recorder = recorder
        self.threshold = threshold
        self.window_minutes = window_minutes
        self.fail_closed = fail_closed

    async def is_suspicious(self, ip_address: str, threshold: int | None = None) -> bool:
        """True when the IP has at least `threshold` failed logins in the window.

        Storage errors propagate; callers pick the fail-open/fail-closed policy.
        """
        limit = self.threshold if threshold is None else threshold
        failed = await self.recorder.count_recent_failed_logins(ip_address, within_minutes=self.window_minutes)
        return failed >= limit

    async def should_block(self, ip_address: str) -> bool:
        try:
            suspicious = await self.is_suspicious(ip_address)
        except Exception as exc:
            get_audit_logger().warning(
                "Failed-login count unavailable for ip=%s (%s); fail_closed=%s",
                ip_address,
                exc,
                self.fail_closed,
            )
            suspicious = self.fail_closed
        if suspicious:
            increment_brute_force_flag()
        return suspicious
