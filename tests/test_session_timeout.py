"""Tests for the inactivity session monitor."""

import asyncio

import pytest

from Security.session_timeout import (
    ACTIVITY_EVENTS,
    ActivityEventSource,
    InactivitySessionMonitor,
    MonitorState,
    build_session_policy,
)

WARNING_AFTER = 28 * 60
LOGOUT_AFTER = 30 * 60


@pytest.fixture
def calls():
    return []


@pytest.fixture
def source():
    return ActivityEventSource()


@pytest.fixture
def monitor(scheduler, calls):
    return InactivitySessionMonitor(
        scheduler,
        on_warning=lambda remaining: calls.append(("warning", scheduler.now, remaining)),
        on_logout=lambda: calls.append(("logout", scheduler.now)),
    )


# =============================================================================
# Start / inert
# =============================================================================


class TestStart:
    def test_start_installs_listeners_and_timers(self, monitor, source, scheduler):
        assert monitor.start(source) is True

        assert monitor.state is MonitorState.ACTIVE
        assert source.listener_count() == len(ACTIVITY_EVENTS)
        assert scheduler.pending() == 2

    def test_inert_without_session(self, scheduler, source, calls):
        monitor = InactivitySessionMonitor(
            scheduler,
            on_warning=lambda remaining: calls.append("warning"),
            on_logout=lambda: calls.append("logout"),
            is_authenticated=lambda: False,
        )

        assert monitor.start(source) is False
        assert source.listener_count() == 0
        assert scheduler.pending() == 0
        assert monitor.state is MonitorState.INACTIVE

    @pytest.mark.parametrize("path", ["/login", "/register", "/forgot-password", "/reset-password"])
    def test_inert_on_public_pages(self, scheduler, source, path):
        monitor = InactivitySessionMonitor(
            scheduler,
            on_warning=lambda remaining: None,
            on_logout=lambda: None,
            current_path=lambda: path,
        )

        assert monitor.start(source) is False
        assert source.listener_count() == 0
        assert scheduler.pending() == 0

    def test_second_start_does_not_add_timers(self, monitor, source, scheduler):
        monitor.start(source)
        monitor.start(source)

        assert scheduler.pending() == 2
        assert source.listener_count() == len(ACTIVITY_EVENTS)

    def test_rejects_warning_after_logout(self, scheduler):
        with pytest.raises(ValueError):
            InactivitySessionMonitor(
                scheduler, on_warning=lambda r: None, on_logout=lambda: None, warning_after=30, logout_after=30
            )


# =============================================================================
# Idle expiry
# =============================================================================


class TestIdleExpiry:
    def test_warning_then_logout_exactly_once(self, monitor, source, scheduler, calls):
        monitor.start(source)

        scheduler.advance(WARNING_AFTER)
        assert monitor.state is MonitorState.WARNING_SHOWN
        assert monitor.warning_shown

        scheduler.advance(LOGOUT_AFTER - WARNING_AFTER)
        scheduler.advance(LOGOUT_AFTER * 3)

        assert calls == [
            ("warning", WARNING_AFTER, LOGOUT_AFTER - WARNING_AFTER),
            ("logout", LOGOUT_AFTER),
        ]
        assert monitor.state is MonitorState.LOGGED_OUT
        assert scheduler.pending() == 0
        assert source.listener_count() == 0

    def test_activity_after_logout_is_ignored(self, monitor, source, scheduler, calls):
        monitor.start(source)
        scheduler.advance(LOGOUT_AFTER)

        source.dispatch("click")
        scheduler.advance(LOGOUT_AFTER * 2)

        assert [c[0] for c in calls] == ["warning", "logout"]

    def test_cannot_restart_after_logout(self, monitor, source, scheduler):
        monitor.start(source)
        scheduler.advance(LOGOUT_AFTER)

        with pytest.raises(RuntimeError):
            monitor.start(source)


# =============================================================================
# Activity
# =============================================================================


class TestActivity:
    def test_activity_before_warning_postpones_both_timers(self, monitor, source, scheduler, calls):
        monitor.start(source)
        scheduler.advance(WARNING_AFTER - 1)

        source.dispatch("keypress")
        event_time = scheduler.now
        scheduler.advance(WARNING_AFTER - 1)
        assert calls == []

        scheduler.advance(LOGOUT_AFTER)

        assert calls == [
            ("warning", event_time + WARNING_AFTER, LOGOUT_AFTER - WARNING_AFTER),
            ("logout", event_time + LOGOUT_AFTER),
        ]

    def test_activity_after_warning_clears_flag(self, monitor, source, scheduler, calls):
        monitor.start(source)
        scheduler.advance(WARNING_AFTER + 5)
        assert monitor.warning_shown

        source.dispatch("mousemove")

        assert monitor.state is MonitorState.ACTIVE
        assert not monitor.warning_shown
        scheduler.advance(WARNING_AFTER)
        assert [c[0] for c in calls] == ["warning", "warning"]

    def test_events_within_throttle_window_collapse(self, monitor, source, scheduler, calls):
        monitor.start(source)
        scheduler.advance(100)

        source.dispatch("mousemove")
        first_reset = scheduler.now
        scheduler.advance(0.5)
        source.dispatch("mousemove")
        source.dispatch("scroll")
        scheduler.advance(WARNING_AFTER - 0.5)

        assert calls == [("warning", first_reset + WARNING_AFTER, LOGOUT_AFTER - WARNING_AFTER)]

    def test_throttle_reopens_after_window(self, monitor, source, scheduler, calls):
        monitor.start(source)

        source.dispatch("click")
        scheduler.advance(1.5)
        source.dispatch("click")
        second_reset = scheduler.now
        scheduler.advance(LOGOUT_AFTER)

        assert calls[0] == ("warning", second_reset + WARNING_AFTER, LOGOUT_AFTER - WARNING_AFTER)

    def test_unrelated_events_do_not_reset(self, monitor, source, scheduler, calls):
        monitor.start(source)
        scheduler.advance(WARNING_AFTER - 1)

        source.dispatch("resize")
        scheduler.advance(1)

        assert calls[0][0] == "warning"

    def test_only_one_timer_pair_is_live(self, monitor, source, scheduler):
        monitor.start(source)
        for _ in range(5):
            source.dispatch("keypress")
            scheduler.advance(2)

        # warning + logout; the throttle window has already closed
        assert scheduler.pending() == 2


# =============================================================================
# Teardown
# =============================================================================


class TestStop:
    def test_stop_cancels_everything(self, monitor, source, scheduler, calls):
        monitor.start(source)
        source.dispatch("click")

        monitor.stop()
        scheduler.advance(LOGOUT_AFTER * 2)

        assert calls == []
        assert scheduler.pending() == 0
        assert source.listener_count() == 0
        assert monitor.state is MonitorState.INACTIVE

    def test_stop_is_idempotent(self, monitor, source, scheduler):
        monitor.start(source)

        monitor.stop()
        monitor.stop()

        assert scheduler.pending() == 0

    def test_stop_before_start_is_safe(self, monitor):
        monitor.stop()

        assert monitor.state is MonitorState.INACTIVE

    def test_restart_after_stop(self, monitor, source, scheduler, calls):
        monitor.start(source)
        monitor.stop()

        assert monitor.start(source) is True
        scheduler.advance(LOGOUT_AFTER)
        assert [c[0] for c in calls] == ["warning", "logout"]


# =============================================================================
# Policy and event loop integration
# =============================================================================


class TestPolicy:
    def test_policy_round_trips_into_monitor(self, scheduler):
        policy = build_session_policy()
        monitor = InactivitySessionMonitor.from_policy(
            policy, scheduler, on_warning=lambda r: None, on_logout=lambda: None
        )

        assert monitor.warning_after == policy["warningAfterSeconds"] == WARNING_AFTER
        assert monitor.logout_after == policy["logoutAfterSeconds"] == LOGOUT_AFTER
        assert "/login" in monitor.public_paths

    async def test_runs_on_asyncio_loop(self, source):
        loop = asyncio.get_running_loop()
        done = loop.create_future()
        events = []
        monitor = InactivitySessionMonitor(
            loop,
            on_warning=lambda remaining: events.append("warning"),
            on_logout=lambda: done.set_result(True),
            warning_after=0.01,
            logout_after=0.03,
            throttle=0.005,
        )

        monitor.start(source)
        await asyncio.wait_for(done, timeout=1)

        assert events == ["warning"]
        assert monitor.state is MonitorState.LOGGED_OUT
