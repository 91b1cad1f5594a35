# src/chore_companion/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler and intake depend on Protocols instead of concrete implementations.
This keeps the notification transport and storage swappable and makes testing easier.
"""

from collections.abc import Callable, Sequence
from typing import Any, Protocol


class Notifier(Protocol):
    """
    Outbound channel for due notifications.

    Fire-and-forget: the core never waits for (or consumes) a delivery acknowledgment.
    Implementations decide which room/chat the text goes to.
    """

    def notify(self, text: str) -> None: ...


class ObligationRepo(Protocol):
    # Users
    def create_user(self, name: str) -> Any: ...
    def find_user(self, name: str) -> Any | None: ...
    def remove_user(self, user_id: int) -> None: ...
    def all_usernames(self) -> list[str]: ...

    # Creation (intake)
    def create_task(
            self,
            description: str,
            due_at: float,
            interval_days: int,
            participant_names: Sequence[str],
            *,
            now_ts: float | None = None,
    ) -> Any: ...
    def create_reminder(self, description: str, due_at: float) -> Any: ...
    def remove_reminder(self, reminder_id: int) -> None: ...

    # Due-time queries
    def next_due_instant(self, kind: Any) -> float | None: ...
    def list_due(self, kind: Any, *, until: float) -> list[Any]: ...

    # Atomic firing (scheduler)
    def fire_task(
            self,
            task_id: int,
            *,
            horizon: float,
            on_fire: Callable[[Any, Any], None],
            now_ts: float | None = None,
            expected_due_at: float | None = None,
    ) -> Any | None: ...
    def fire_reminder(
            self,
            reminder_id: int,
            *,
            horizon: float,
            on_fire: Callable[[Any], None],
            expected_due_at: float | None = None,
    ) -> Any | None: ...
