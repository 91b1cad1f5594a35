# src/chore_companion/scheduling/service.py

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from ..core.ports import Notifier, ObligationRepo
from ..errors import NoParticipantsError
from ..obligations.models import FiredObligation, ObligationKind, Reminder, Task, User
from ..obligations.oracle import DueTimeOracle
from .wake_scheduler import (
    ALERT_LEAD_SECONDS,
    IDLE_POLL_SECONDS,
    RETRY_DELAY_SECONDS,
    ClassScheduler,
    ObligationChannel,
    SchedulerPhase,
)

logger = logging.getLogger(__name__)


def render_task_text(task: Task, user: User) -> str:
    return f"Task due: {user.name} for {task.description}"


def render_reminder_text(reminder: Reminder) -> str:
    return f"Reminder: {reminder.description}"


class ObligationService:
    """
    Background service: one wake scheduler per obligation class.

    Check passes:
    - tasks: for each due task (earliest first) pick the next responsible participant,
      notify, advance the due date by one interval
    - reminders: notify, delete

    Delivery is at-most-once: a failing notifier is logged and the obligation is still consumed.
    """

    def __init__(
        self,
        store: ObligationRepo,
        notifier: Notifier,
        *,
        alert_lead_seconds: float = ALERT_LEAD_SECONDS,
        idle_poll_seconds: float = IDLE_POLL_SECONDS,
        retry_delay_seconds: float = RETRY_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.oracle = DueTimeOracle(store)
        self._lead = float(alert_lead_seconds)
        self._clock = clock
        self._running = False
        self._lock = threading.Lock()

        def channel(kind: ObligationKind, check: Callable[[], list[FiredObligation]]) -> ObligationChannel:
            return ObligationChannel(
                kind=kind,
                next_due=lambda: self.oracle.next_due_instant(kind),
                check_pass=lambda: len(check()),
            )

        self._schedulers: dict[ObligationKind, ClassScheduler] = {
            kind: ClassScheduler(
                channel(kind, check),
                alert_lead_seconds=alert_lead_seconds,
                idle_poll_seconds=idle_poll_seconds,
                retry_delay_seconds=retry_delay_seconds,
                clock=clock,
            )
            for kind, check in (
                (ObligationKind.TASK, self.check_tasks),
                (ObligationKind.REMINDER, self.check_reminders),
            )
        }

    @property
    def alert_lead_seconds(self) -> float:
        return self._lead

    @property
    def is_running(self) -> bool:
        return self._running

    def scheduler(self, kind: ObligationKind) -> ClassScheduler:
        return self._schedulers[kind]

    def phase(self, kind: ObligationKind) -> SchedulerPhase:
        return self._schedulers[kind].phase

    # ---- delivery ----

    def _deliver(self, text: str) -> None:
        try:
            self.notifier.notify(text)
        except Exception:
            logger.exception("Notification failed (obligation is consumed anyway): %r", text)

    def _notify_task(self, task: Task, user: User) -> None:
        self._deliver(render_task_text(task, user))

    def _notify_reminder(self, reminder: Reminder) -> None:
        self._deliver(render_reminder_text(reminder))

    # ---- check passes ----

    def check_tasks(self) -> list[FiredObligation]:
        now_ts = self._clock()
        horizon = now_ts + self._lead
        fired: list[FiredObligation] = []

        for task in self.oracle.due_within(ObligationKind.TASK, self._lead, now_ts=now_ts):
            try:
                result = self.store.fire_task(
                    task.id,
                    horizon=horizon,
                    now_ts=now_ts,
                    on_fire=self._notify_task,
                    expected_due_at=task.next_due_at,
                )
            except NoParticipantsError:
                logger.error("Skipping task %s (%r): no participants", task.id, task.description)
                continue

            if result is None:
                logger.debug("Task %s already handled by another pass", task.id)
                continue
            fired.append(result)

        return fired

    def check_reminders(self) -> list[FiredObligation]:
        now_ts = self._clock()
        horizon = now_ts + self._lead
        fired: list[FiredObligation] = []

        for reminder in self.oracle.due_within(ObligationKind.REMINDER, self._lead, now_ts=now_ts):
            result = self.store.fire_reminder(
                reminder.id,
                horizon=horizon,
                on_fire=self._notify_reminder,
                expected_due_at=reminder.due_at,
            )
            if result is None:
                logger.debug("Reminder %s already handled by another pass", reminder.id)
                continue
            fired.append(result)

        return fired

    # ---- lifecycle ----

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            for sched in self._schedulers.values():
                sched.start()
            self._running = True
        logger.info("Obligation service started.")

    def stop(self) -> None:
        with self._lock:
            for sched in self._schedulers.values():
                sched.stop()
            self._running = False

    def join(self, timeout: float | None = None) -> None:
        for sched in self._schedulers.values():
            sched.join(timeout=timeout)

    def trigger_early_check(self, kind: ObligationKind) -> threading.Thread | None:
        """
        A sooner obligation was just inserted: run a one-off check now and let the
        sleeping loop recompute its wake time. No-op while the service is not running.
        """
        if not self._running:
            return None
        sched = self._schedulers[kind]
        sched.request_wake()
        logger.info("Early %s check triggered by intake", kind)
        return sched.spawn_one_off()
