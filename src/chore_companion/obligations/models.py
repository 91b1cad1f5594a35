# src/chore_companion/obligations/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

SECONDS_PER_DAY = 24 * 60 * 60


class ObligationKind(StrEnum):
    """Obligation class. Each class gets its own wake scheduler."""

    TASK = "task"
    REMINDER = "reminder"


def normalize_name(name: str) -> str:
    """Lookup key for user names: case-folded, letters only ("Anna-Lena " -> "annalena")."""
    return "".join(ch for ch in (name or "").casefold() if ch.isalpha())


@dataclass(slots=True, frozen=True)
class User:
    id: int
    name: str
    normalized_name: str


@dataclass(slots=True, frozen=True)
class Task:
    """
    Recurring chore.

    next_due_at advances by exactly interval_days each time the task fires.
    """

    id: int
    description: str
    next_due_at: float
    interval_days: int

    @property
    def due_at(self) -> float:
        return self.next_due_at


@dataclass(slots=True, frozen=True)
class TaskParticipation:
    id: int
    user_id: int
    task_id: int
    last_participated: float


@dataclass(slots=True, frozen=True)
class Reminder:
    """One-shot reminder; deleted once it fires."""

    id: int
    description: str
    due_at: float


@dataclass(slots=True, frozen=True)
class FiredObligation:
    """What a check pass did with a single obligation."""

    kind: ObligationKind
    obligation_id: int
    description: str
    due_at: float
    responsible: User | None = None
