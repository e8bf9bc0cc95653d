"""
SESSION INACTIVITY TIMEOUT
==========================
Client-side idle monitor: warn, then log out, after a period without activity.

FLOW:
- start() installs one listener per activity event and arms two timers.
- Activity (throttled to one reset per second) re-arms both timers.
- The warning timer notifies the user once per idle episode.
- The logout timer tears the monitor down and ends the session.

WHY:
- Unattended sessions on shared machines should not stay signed in.

HOW:
- Timers come from a single-threaded scheduler (any asyncio loop works:
  loop.call_later returns a cancellable handle). Only one warning/logout pair
  is ever live; re-arming cancels the old pair first.
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from typing import Any, Callable, Iterable, Optional, Protocol

from Security.security_config import SECURITY_SETTINGS

logger = logging.getLogger("security.session")

ACTIVITY_EVENTS = ("mousedown", "mousemove", "keypress", "scroll", "touchstart", "click")
DEFAULT_PUBLIC_PATHS = ("/login", "/register", "/forgot-password", "/reset-password")


class MonitorState(str, enum.Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    WARNING_SHOWN = "warning_shown"
    LOGGED_OUT = "logged_out"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class ActivityEventSource:
    """Listener registry standing in for the browser window's event target."""

    def __init__(self):
        self._listeners: dict[str, list[Callable[[str], None]]] = defaultdict(list)

    def add_listener(self, event: str, listener: Callable[[str], None]) -> None:
        self._listeners[event].append(listener)

    def remove_listener(self, event: str, listener: Callable[[str], None]) -> None:
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            pass

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, ()))
        return sum(len(items) for items in self._listeners.values())

    def dispatch(self, event: str) -> None:
        for listener in list(self._listeners.get(event, ())):
            listener(event)


def build_session_policy(settings: dict = SECURITY_SETTINGS) -> dict:
    """Thresholds the client monitor is configured with, in seconds."""
    return {
        "warningAfterSeconds": settings["SESSION_IDLE_WARNING"],
        "logoutAfterSeconds": settings["SESSION_IDLE_TIMEOUT"],
        "throttleSeconds": settings["ACTIVITY_THROTTLE_SECONDS"],
        "activityEvents": list(ACTIVITY_EVENTS),
        "publicPaths": list(settings["PUBLIC_PATHS"]),
    }


class InactivitySessionMonitor:
    def __init__(
        self,
        scheduler: TimerScheduler,
        on_warning: Callable[[float], None],
        on_logout: Callable[[], None],
        is_authenticated: Callable[[], bool] = lambda: True,
        current_path: Callable[[], str] = lambda: "/",
        warning_after: float = 28 * 60,
        logout_after: float = 30 * 60,
        throttle: float = 1.0,
        public_paths: Iterable[str] = DEFAULT_PUBLIC_PATHS,
        activity_events: Iterable[str] = ACTIVITY_EVENTS,
    ):
        if not 0 < warning_after < logout_after:
            raise ValueError("warning_after must be positive and shorter than logout_after")
        self.scheduler = scheduler
        self.on_warning = on_warning
        self.on_logout = on_logout
        self.is_authenticated = is_authenticated
        self.current_path = current_path
        self.warning_after = warning_after
        self.logout_after = logout_after
        self.throttle = throttle
        self.public_paths = frozenset(public_paths)
        self.activity_events = tuple(activity_events)

        self._state = MonitorState.INACTIVE
        self._warning_shown = False
        self._source: Optional[ActivityEventSource] = None
        self._warning_handle: Optional[TimerHandle] = None
        self._logout_handle: Optional[TimerHandle] = None
        self._throttle_handle: Optional[TimerHandle] = None

    @classmethod
    def from_policy(cls, policy: dict, scheduler: TimerScheduler, **kwargs) -> "InactivitySessionMonitor":
        return cls(
            scheduler,
            warning_after=policy["warningAfterSeconds"],
            logout_after=policy["logoutAfterSeconds"],
            throttle=policy["throttleSeconds"],
            public_paths=policy["publicPaths"],
            activity_events=policy["activityEvents"],
            **kwargs,
        )

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def warning_shown(self) -> bool:
        return self._warning_shown

    @property
    def running(self) -> bool:
        return self._source is not None

    def start(self, source: ActivityEventSource) -> bool:
        """Begin watching `source`. Returns False when the monitor stays inert."""
        if self._state is MonitorState.LOGGED_OUT:
            raise RuntimeError("monitor already logged out; create a new one for the next session")
        if self._source is not None:
            return True
        if not self.is_authenticated() or self.current_path() in self.public_paths:
            return False

        self._source = source
        for event in self.activity_events:
            source.add_listener(event, self._on_activity)
        self._reset_timers()
        return True

    def stop(self) -> None:
        """Remove listeners and cancel every pending timer. Safe to call repeatedly."""
        if self._source is not None:
            for event in self.activity_events:
                self._source.remove_listener(event, self._on_activity)
            self._source = None
        self._cancel_timers()
        if self._throttle_handle is not None:
            self._throttle_handle.cancel()
            self._throttle_handle = None
        if self._state is not MonitorState.LOGGED_OUT:
            self._state = MonitorState.INACTIVE
        self._warning_shown = False

    def _on_activity(self, event: str) -> None:
        if self._source is None or self._throttle_handle is not None:
            return
        self._reset_timers()
        if self.throttle > 0:
            self._throttle_handle = self.scheduler.call_later(self.throttle, self._open_throttle)

    def _open_throttle(self) -> None:
        self._throttle_handle = None

    def _cancel_timers(self) -> None:
        if self._warning_handle is not None:
            self._warning_handle.cancel()
            self._warning_handle = None
        if self._logout_handle is not None:
            self._logout_handle.cancel()
            self._logout_handle = None

    def _reset_timers(self) -> None:
        self._cancel_timers()
        self._warning_shown = False
        self._state = MonitorState.ACTIVE
        self._warning_handle = self.scheduler.call_later(self.warning_after, self._show_warning)
        self._logout_handle = self.scheduler.call_later(self.logout_after, self._expire)

    def _show_warning(self) -> None:
        self._warning_handle = None
        if self._warning_shown:
            return
        self._warning_shown = True
        self._state = MonitorState.WARNING_SHOWN
        self.on_warning(self.logout_after - self.warning_after)

    def _expire(self) -> None:
        self._logout_handle = None
        self.stop()
        self._state = MonitorState.LOGGED_OUT
        logger.info("Session expired due to inactivity")
        self.on_logout()
