# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from chore_companion.logging_setup import _ConsoleNoiseFilter, level_from_name, setup_logging


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_level_from_name() -> None:
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name(" WARNING ") == logging.WARNING
    assert level_from_name(logging.ERROR) == logging.ERROR
    assert level_from_name("chatty") == logging.INFO


def test_console_filter_thresholds() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("chore_companion.intake", logging.DEBUG))
    assert not f.filter(_record("chore_companion.scheduling.wake_scheduler", logging.DEBUG))
    assert f.filter(_record("chore_companion.scheduling.service", logging.INFO))
    assert not f.filter(_record("chore_companion.connectors.matrix_notifier", logging.INFO))
    assert f.filter(_record("chore_companion.connectors.matrix_notifier", logging.WARNING))
    assert not f.filter(_record("nio.responses", logging.WARNING))
    assert f.filter(_record("nio.responses", logging.ERROR))


def test_setup_logging_writes_file(tmp_path: Path, restore_root_logging) -> None:
    log_file = setup_logging(log_dir=tmp_path / "logs", console_level="error")

    logging.getLogger("chore_companion.test").debug("hello file")
    for h in logging.getLogger().handlers:
        h.flush()

    assert log_file == tmp_path / "logs" / "chore.log"
    assert "hello file" in log_file.read_text("utf-8")
