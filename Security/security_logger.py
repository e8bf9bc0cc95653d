"""
SECURITY EVENT LOGGER
=====================
Append-only audit log of security-relevant events.

FLOW:
- Auth routes call record_from_request() on login, logout, password and
  account lifecycle events.
- The brute-force detector reads failed-login counts back out.

WHY:
- Gives users a history of their account activity and gives the login
  flow the data it needs to spot credential attacks.

HOW:
- Entries are written through a storage collaborator (SQLAlchemy by default).
- A failed write is logged to the security.audit channel and swallowed:
  audit logging must never change the outcome of the action it documents.
"""

from __future__ import annotations

import asyncio
import datetime
import enum
from dataclasses import dataclass, replace
from typing import Callable, Optional, Protocol

from sqlalchemy import func
from starlette.concurrency import run_in_threadpool

from Security.audit_trail import audit, get_audit_logger
from Security.metrics import increment_audit_write_failure, increment_security_event


class SecurityEventType(str, enum.Enum):
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_DELETED = "ACCOUNT_DELETED"
    ACCOUNT_REACTIVATED = "ACCOUNT_REACTIVATED"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET_REQUEST = "PASSWORD_RESET_REQUEST"
    PASSWORD_RESET_SUCCESS = "PASSWORD_RESET_SUCCESS"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"


def utcnow() -> datetime.datetime:
    # Naive UTC, matching the DateTime columns.
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class SecurityLogEntry:
    event_type: SecurityEventType
    user_id: Optional[int] = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    details: Optional[str] = None
    success: bool = True
    created_at: Optional[datetime.datetime] = None

    def to_dict(self) -> dict:
        return {
            "eventType": self.event_type.value,
            "userId": self.user_id,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "details": self.details,
            "success": self.success,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class SecurityLogFilter:
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    event_type: Optional[SecurityEventType] = None
    since: Optional[datetime.datetime] = None


class SecurityLogStore(Protocol):
    async def create(self, entry: SecurityLogEntry) -> None: ...

    async def count(self, where: SecurityLogFilter) -> int: ...

    async def find_many(self, where: SecurityLogFilter, limit: int) -> list[SecurityLogEntry]: ...


class SqlAlchemySecurityLogStore:
    """Audit storage on the security_logs table; blocking ORM calls run in the threadpool."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @staticmethod
    def _apply(query, where: SecurityLogFilter):
        from app.models import SecurityLog

        if where.user_id is not None:
            query = query.filter(SecurityLog.user_id == where.user_id)
        if where.ip_address is not None:
            query = query.filter(SecurityLog.ip_address == where.ip_address)
        if where.event_type is not None:
            query = query.filter(SecurityLog.event_type == where.event_type.value)
        if where.since is not None:
            query = query.filter(SecurityLog.created_at >= where.since)
        return query

    def _create(self, entry: SecurityLogEntry) -> None:
        from app.models import SecurityLog

        db = self.session_factory()
        try:
            db.add(
                SecurityLog(
                    user_id=entry.user_id,
                    event_type=entry.event_type.value,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    details=entry.details,
                    success=entry.success,
                    created_at=entry.created_at,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _count(self, where: SecurityLogFilter) -> int:
        from app.models import SecurityLog

        db = self.session_factory()
        try:
            return self._apply(db.query(func.count(SecurityLog.id)), where).scalar() or 0
        finally:
            db.close()

    def _find_many(self, where: SecurityLogFilter, limit: int) -> list[SecurityLogEntry]:
        from app.models import SecurityLog

        db = self.session_factory()
        try:
            rows = (
                self._apply(db.query(SecurityLog), where)
                .order_by(SecurityLog.created_at.desc(), SecurityLog.id.desc())
                .limit(limit)
                .all()
            )
            return [
                SecurityLogEntry(
                    event_type=SecurityEventType(r.event_type),
                    user_id=r.user_id,
                    ip_address=r.ip_address or "unknown",
                    user_agent=r.user_agent or "unknown",
                    details=r.details,
                    success=bool(r.success),
                    created_at=r.created_at,
                )
                for r in rows
            ]
        finally:
            db.close()

    async def create(self, entry: SecurityLogEntry) -> None:
        await run_in_threadpool(self._create, entry)

    async def count(self, where: SecurityLogFilter) -> int:
        return await run_in_threadpool(self._count, where)

    async def find_many(self, where: SecurityLogFilter, limit: int) -> list[SecurityLogEntry]:
        return await run_in_threadpool(self._find_many, where, limit)


def get_client_ip(request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request) -> str:
    return request.headers.get("user-agent") or "unknown"


def entry_from_request(
    request,
    event_type: SecurityEventType,
    user_id: Optional[int] = None,
    details: Optional[str] = None,
    success: bool = True,
) -> SecurityLogEntry:
    return SecurityLogEntry(
        event_type=event_type,
        user_id=user_id,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        details=details,
        success=success,
    )


class SecurityEventRecorder:
    def __init__(self, store: SecurityLogStore, clock: Callable[[], datetime.datetime] = utcnow):
        self.store = store
        self.clock = clock
        self._pending: set[asyncio.Task] = set()
        self.logger = get_audit_logger()

    async def record(self, entry: SecurityLogEntry) -> None:
        """Persist one entry. Never raises: failures are logged and dropped."""
        entry = replace(entry, created_at=self.clock())
        try:
            await self.store.create(entry)
        except Exception as exc:
            increment_audit_write_failure()
            self.logger.error(
                "Failed to log security event: event=%s user_id=%s error=%s",
                entry.event_type.value,
                entry.user_id,
                exc,
            )
            return
        increment_security_event(entry.event_type.value)
        audit(entry.event_type.value, user_id=entry.user_id, success=entry.success, details=entry.details)

    def record_in_background(self, entry: SecurityLogEntry) -> asyncio.Task:
        """Fire-and-forget variant of record(); the caller does not wait for the write."""
        task = asyncio.get_running_loop().create_task(self.record(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background writes still in flight (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def record_from_request(
        self,
        request,
        event_type: SecurityEventType,
        user_id: Optional[int] = None,
        details: Optional[str] = None,
        success: bool = True,
    ) -> None:
        await self.record(entry_from_request(request, event_type, user_id, details, success))

    async def recent_for_user(self, user_id: int, limit: int = 50) -> list[SecurityLogEntry]:
        return await self.store.find_many(SecurityLogFilter(user_id=user_id), limit)

    async def count_recent_failed_logins(self, ip_address: str, within_minutes: int = 15) -> int:
        since = self.clock() - datetime.timedelta(minutes=within_minutes)
        return await self.store.count(
            SecurityLogFilter(
                ip_address=ip_address,
                event_type=SecurityEventType.LOGIN_FAILED,
                since=since,
            )
        )
