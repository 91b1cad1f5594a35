# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from chore_companion.core.state import AppState
from chore_companion.intake import ObligationIntake
from chore_companion.obligations.store import ObligationStore
from chore_companion.scheduling.service import ObligationService

from .fakes import FakeClock, FakeNotifier

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()
HOUR = 60 * 60
DAY = 24 * HOUR


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="chore-test",
        data_dir=tmp_path,
        db_path=tmp_path / "obligations.sqlite3",
        matrix_enabled=False,
        matrix_room_id="!room:example.org",
        alert_lead_seconds=8 * HOUR,
        idle_poll_seconds=60.0,
        retry_delay_seconds=60.0,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> ObligationStore:
    return ObligationStore(settings.db_path)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def service(store: ObligationStore, notifier: FakeNotifier, clock: FakeClock) -> ObligationService:
    return ObligationService(store, notifier, clock=clock)


@pytest.fixture()
def intake(store: ObligationStore, service: ObligationService, clock: FakeClock) -> ObligationIntake:
    return ObligationIntake(store, service, clock=clock)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: ObligationStore,
    notifier: FakeNotifier,
    service: ObligationService,
    intake: ObligationIntake,
) -> AppState:
    return AppState(settings=settings, store=store, notifier=notifier, service=service, intake=intake)
