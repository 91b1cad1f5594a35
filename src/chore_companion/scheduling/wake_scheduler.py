# src/chore_companion/scheduling/wake_scheduler.py

from __future__ import annotations

"""
Wake scheduler.

One long-lived loop per obligation class:
- ask when the next obligation of this class is due,
- sleep until (next due - alert lead time),
- run a check pass (fire everything due within the lead window),
- repeat.

Producers that insert a sooner obligation call request_wake() (the loop recomputes its
wake time) and/or spawn_one_off() (a detached check pass in parallel with the loop).
Parallel passes are safe because the store fires each obligation in its own transaction.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from ..errors import StoreTransactionError
from ..obligations.models import ObligationKind

logger = logging.getLogger(__name__)

ALERT_LEAD_SECONDS = 8 * 60 * 60
IDLE_POLL_SECONDS = 60.0
RETRY_DELAY_SECONDS = 60.0


class SchedulerPhase(StrEnum):
    IDLE = "idle"
    SLEEPING = "sleeping"
    CHECKING = "checking"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class ObligationChannel:
    """
    Class-specific accessors the generic loop is parameterised with.

    next_due: earliest due instant of the class (None when there is nothing).
    check_pass: fire everything due within the alert window; returns how many fired.
    """

    kind: ObligationKind
    next_due: Callable[[], float | None]
    check_pass: Callable[[], int]


@dataclass(slots=True, frozen=True)
class WakePlan:
    phase: SchedulerPhase
    delay: float


class ClassScheduler:
    def __init__(
        self,
        channel: ObligationChannel,
        *,
        alert_lead_seconds: float = ALERT_LEAD_SECONDS,
        idle_poll_seconds: float = IDLE_POLL_SECONDS,
        retry_delay_seconds: float = RETRY_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._channel = channel
        self._lead = max(0.0, float(alert_lead_seconds))
        self._idle_poll = max(0.01, float(idle_poll_seconds))
        self._retry_delay = max(0.01, float(retry_delay_seconds))
        self._clock = clock

        self._wake = threading.Event()
        self._stop = threading.Event()
        self._phase = SchedulerPhase.IDLE
        self._phase_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def kind(self) -> ObligationKind:
        return self._channel.kind

    @property
    def phase(self) -> SchedulerPhase:
        with self._phase_lock:
            return self._phase

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _set_phase(self, phase: SchedulerPhase) -> None:
        with self._phase_lock:
            if self._phase is phase:
                return
            logger.debug("%s scheduler: %s -> %s", self.kind, self._phase, phase)
            self._phase = phase

    # ---- planning ----

    def plan_wait(self, now_ts: float | None = None) -> WakePlan:
        """
        Decide what the loop does next.

        - nothing of this class exists   -> IDLE, poll again after the idle interval
        - (next due - lead) already past -> CHECKING right away
        - otherwise                      -> SLEEPING until (next due - lead)
        """
        due = self._channel.next_due()
        if due is None:
            return WakePlan(SchedulerPhase.IDLE, self._idle_poll)

        if now_ts is None:
            now_ts = self._clock()
        delay = (due - self._lead) - now_ts
        if delay <= 0:
            return WakePlan(SchedulerPhase.CHECKING, 0.0)
        return WakePlan(SchedulerPhase.SLEEPING, delay)

    # ---- checking ----

    def check_once(self) -> int | None:
        """
        Run one check pass. Returns the number of fired obligations, or None if the
        pass failed (already logged; the loop retries later).
        """
        try:
            fired = int(self._channel.check_pass())
        except StoreTransactionError:
            logger.warning("%s check pass hit a store error; will retry", self.kind, exc_info=True)
            return None
        except Exception:
            logger.exception("%s check pass failed", self.kind)
            return None

        if fired:
            logger.info("%s check pass fired %d obligation(s)", self.kind, fired)
        return fired

    # ---- signals ----

    def request_wake(self) -> None:
        """Ask the sleeping loop to recompute its wake time now."""
        self._wake.set()

    def spawn_one_off(self) -> threading.Thread:
        """Detached check pass running in parallel with the loop."""
        t = threading.Thread(target=self.check_once, name=f"{self.kind} one-off", daemon=True)
        t.start()
        logger.debug("%s one-off check spawned", self.kind)
        return t

    def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`. True if woken early by request_wake()/stop()."""
        woken = self._wake.wait(timeout=max(0.0, seconds))
        if woken:
            self._wake.clear()
        return woken

    # ---- loop ----

    def run(self) -> None:
        """Blocking loop; returns only after stop()."""
        logger.info("%s scheduler started (lead=%.0fs)", self.kind, self._lead)

        while not self._stop.is_set():
            try:
                plan = self.plan_wait()
            except Exception:
                logger.exception("%s scheduler: next-due lookup failed", self.kind)
                self._set_phase(SchedulerPhase.IDLE)
                self._wait(self._retry_delay)
                continue

            if plan.delay > 0:
                self._set_phase(plan.phase)
                woken = self._wait(plan.delay)
                if self._stop.is_set():
                    break
                if woken:
                    logger.debug("%s scheduler woken early; recomputing", self.kind)
                    continue

            self._set_phase(SchedulerPhase.CHECKING)
            fired = self.check_once()

            if fired is None:
                self._set_phase(SchedulerPhase.SLEEPING)
                self._wait(self._retry_delay)
            elif fired == 0 and self._head_still_due():
                # The head obligation could not be fired (e.g. a task without participants).
                self._set_phase(SchedulerPhase.IDLE)
                self._wait(self._idle_poll)

        self._set_phase(SchedulerPhase.STOPPED)
        logger.info("%s scheduler stopped", self.kind)

    def _head_still_due(self) -> bool:
        try:
            return self.plan_wait().phase is SchedulerPhase.CHECKING
        except Exception:
            logger.debug("%s scheduler: next-due lookup failed", self.kind, exc_info=True)
            return True

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        t = threading.Thread(target=self.run, name=str(self.kind), daemon=True)
        self._thread = t
        t.start()
        return t

    def stop(self) -> None:
        self._stop.set()
        self._wake.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)
