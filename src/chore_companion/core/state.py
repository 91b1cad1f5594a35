# src/chore_companion/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..intake import ObligationIntake
from ..obligations.store import ObligationStore
from ..scheduling.service import ObligationService
from .ports import Notifier


@dataclass
class AppState:
    # Settings object (config.Settings in production, SimpleNamespace in tests).
    settings: Any

    store: ObligationStore
    notifier: Notifier
    service: ObligationService
    intake: ObligationIntake

    # Guards admin commands coming from several connectors at once.
    lock: threading.Lock = field(default_factory=threading.Lock)
