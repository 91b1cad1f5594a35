# tests/test_wake_scheduler.py

from __future__ import annotations

import threading
import time

from chore_companion.errors import StoreTransactionError
from chore_companion.obligations.models import ObligationKind
from chore_companion.scheduling.wake_scheduler import (
    ClassScheduler,
    ObligationChannel,
    SchedulerPhase,
)

from .conftest import HOUR, T0
from .fakes import FakeClock

LEAD = 8 * HOUR


class Counter:
    def __init__(self, result: int = 0) -> None:
        self.calls = 0
        self.result = result
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            self.calls += 1
        return self.result


def _scheduler(next_due, check, **kwargs) -> ClassScheduler:
    return ClassScheduler(
        ObligationChannel(kind=ObligationKind.REMINDER, next_due=next_due, check_pass=check),
        alert_lead_seconds=kwargs.pop("alert_lead_seconds", LEAD),
        **kwargs,
    )


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_plan_idle_without_obligations() -> None:
    sched = _scheduler(lambda: None, Counter(), idle_poll_seconds=60.0)
    plan = sched.plan_wait(now_ts=T0)
    assert plan.phase is SchedulerPhase.IDLE
    assert plan.delay == 60.0


def test_plan_sleeps_until_due_minus_lead() -> None:
    sched = _scheduler(lambda: T0 + 10 * HOUR, Counter(), clock=FakeClock(T0))
    plan = sched.plan_wait()
    assert plan.phase is SchedulerPhase.SLEEPING
    assert plan.delay == 2 * HOUR


def test_plan_checks_immediately_inside_lead_window() -> None:
    sched = _scheduler(lambda: T0 + HOUR, Counter())
    plan = sched.plan_wait(now_ts=T0)
    assert plan.phase is SchedulerPhase.CHECKING
    assert plan.delay == 0.0


def test_check_once_reports_failures_as_none() -> None:
    def store_error() -> int:
        raise StoreTransactionError("database is locked")

    def crash() -> int:
        raise RuntimeError("boom")

    assert _scheduler(lambda: None, store_error).check_once() is None
    assert _scheduler(lambda: None, crash).check_once() is None
    assert _scheduler(lambda: None, Counter(result=3)).check_once() == 3


def test_idle_loop_polls_and_checks() -> None:
    check = Counter()
    sched = _scheduler(lambda: None, check, idle_poll_seconds=0.02)
    sched.start()
    try:
        assert _wait_until(lambda: check.calls >= 3)
    finally:
        sched.stop()
        sched.join(timeout=2)
    assert sched.phase is SchedulerPhase.STOPPED


def test_request_wake_recomputes_sleep() -> None:
    due = {"at": time.time() + 10 * HOUR}
    check = Counter(result=1)

    def next_due():
        return due["at"]

    def check_pass() -> int:
        check()
        due["at"] = time.time() + 10 * HOUR
        return 1

    sched = _scheduler(next_due, check_pass)
    sched.start()
    try:
        assert _wait_until(lambda: sched.phase is SchedulerPhase.SLEEPING)
        assert check.calls == 0

        due["at"] = time.time() + 120
        sched.request_wake()

        assert _wait_until(lambda: check.calls == 1)
        assert _wait_until(lambda: sched.phase is SchedulerPhase.SLEEPING)
    finally:
        sched.stop()
        sched.join(timeout=2)


def test_unfireable_head_does_not_spin() -> None:
    check = Counter(result=0)
    sched = _scheduler(lambda: time.time(), check, idle_poll_seconds=0.2)
    sched.start()
    try:
        time.sleep(0.3)
    finally:
        sched.stop()
        sched.join(timeout=2)
    assert 1 <= check.calls <= 3


def test_failed_pass_waits_retry_delay() -> None:
    calls = Counter()

    def failing() -> int:
        calls()
        raise StoreTransactionError("locked")

    sched = _scheduler(lambda: time.time(), failing, retry_delay_seconds=0.2)
    sched.start()
    try:
        time.sleep(0.3)
    finally:
        sched.stop()
        sched.join(timeout=2)
    assert 1 <= calls.calls <= 3


def test_spawn_one_off_runs_in_parallel() -> None:
    check = Counter(result=1)
    sched = _scheduler(lambda: None, check)
    t = sched.spawn_one_off()
    t.join(timeout=2)
    assert check.calls == 1
    assert t.daemon
    assert sched.is_running is False
