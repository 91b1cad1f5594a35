# src/chore_companion/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires store, notifier, scheduler service and intake into AppState.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import get_settings
from ..connectors.console_notifier import ConsoleNotifier
from ..connectors.matrix_notifier import MatrixNotifier
from ..core.ports import Notifier
from ..core.state import AppState
from ..intake import ObligationIntake
from ..obligations.store import ObligationStore
from ..scheduling.service import ObligationService
from ..scheduling.wake_scheduler import ALERT_LEAD_SECONDS, IDLE_POLL_SECONDS, RETRY_DELAY_SECONDS

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Any) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def build_notifier(settings: Any) -> Notifier:
    if getattr(settings, "matrix_enabled", False):
        return MatrixNotifier(settings)
    return ConsoleNotifier()


def create_initial_state(*, settings: Any = None, notifier: Notifier | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/notifier injectable makes the app easier to test and avoids hidden
    global config reads. Raises SchemaMismatchError if the database is incompatible.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = ObligationStore(settings.db_path)
    if notifier is None:
        notifier = build_notifier(settings)

    service = ObligationService(
        store,
        notifier,
        alert_lead_seconds=getattr(settings, "alert_lead_seconds", ALERT_LEAD_SECONDS),
        idle_poll_seconds=getattr(settings, "idle_poll_seconds", IDLE_POLL_SECONDS),
        retry_delay_seconds=getattr(settings, "retry_delay_seconds", RETRY_DELAY_SECONDS),
    )

    state = AppState(
        settings=settings,
        store=store,
        notifier=notifier,
        service=service,
        intake=ObligationIntake(store, service),
    )

    if isinstance(notifier, MatrixNotifier):
        from .commands import registry

        notifier.set_command_handler(
            lambda line, user_id, room_id: registry.handle(state, line, user_id=user_id, room_id=room_id)
        )

    return state
