# src/chore_companion/errors.py

from __future__ import annotations

"""
Error taxonomy.

Fatal (process exits before the scheduler starts):
- ConfigError
- SchemaMismatchError

Recoverable (logged; the caller or the check pass carries on):
- UnknownUserError
- NoParticipantsError
- StoreTransactionError
"""


class ChoreCompanionError(Exception):
    """Base class for all project errors."""


class ConfigError(ChoreCompanionError):
    """Settings are missing or inconsistent."""


class SchemaMismatchError(ChoreCompanionError):
    def __init__(self, found: str | None, expected: str) -> None:
        super().__init__(f"Database schema version {found!r} does not match {expected!r}")
        self.found = found
        self.expected = expected


class UnknownUserError(ChoreCompanionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"No user named {name}")
        self.name = name


class NoParticipantsError(ChoreCompanionError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} has no participants")
        self.task_id = task_id


class StoreTransactionError(ChoreCompanionError):
    """A store transaction failed and was rolled back; safe to retry later."""
