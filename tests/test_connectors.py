# tests/test_connectors.py

from __future__ import annotations

import io
import time
from types import SimpleNamespace

import pytest

from chore_companion.connectors.console_notifier import ConsoleNotifier
from chore_companion.connectors.matrix_client import send_text
from chore_companion.connectors.matrix_notifier import MatrixNotifier

from .fakes import FakeMatrixClient

ROOM = "!room:example.org"


def _settings() -> SimpleNamespace:
    return SimpleNamespace(matrix_room_id=ROOM)


def _message(body: str, sender: str = "@alice:example.org", ts: int = 10**13) -> SimpleNamespace:
    return SimpleNamespace(body=body, sender=sender, server_timestamp=ts)


@pytest.mark.asyncio
async def test_send_text_posts_plain_message() -> None:
    client = FakeMatrixClient()
    await send_text(client, room_id=ROOM, text="hello")
    assert client.sent == [(ROOM, "hello")]


@pytest.mark.asyncio
async def test_commands_answered_in_configured_room_only() -> None:
    notifier = MatrixNotifier(_settings())
    notifier._client = FakeMatrixClient()
    calls: list[tuple[str, str | None, str | None]] = []

    def handler(line, user_id, room_id):
        calls.append((line, user_id, room_id))
        return f"Chat id: {room_id}"

    notifier.set_command_handler(handler)

    await notifier._on_message(SimpleNamespace(room_id=ROOM), _message("/id"))
    await notifier._on_message(SimpleNamespace(room_id="!other:example.org"), _message("/id"))
    await notifier._on_message(SimpleNamespace(room_id=ROOM), _message("just chatting"))
    await notifier._on_message(SimpleNamespace(room_id=ROOM), _message("/id", sender="@bot:example.org"))

    assert calls == [("/id", "@alice:example.org", ROOM)]
    assert notifier._client.sent == [(ROOM, f"Chat id: {ROOM}")]


@pytest.mark.asyncio
async def test_messages_before_startup_are_ignored() -> None:
    notifier = MatrixNotifier(_settings())
    notifier._client = FakeMatrixClient()
    notifier._startup_ts = 1000
    notifier.set_command_handler(lambda line, user_id, room_id: "reply")

    await notifier._on_message(SimpleNamespace(room_id=ROOM), _message("/id", ts=999))

    assert notifier._client.sent == []


def test_notify_without_running_loop_is_dropped() -> None:
    notifier = MatrixNotifier(_settings())
    notifier.notify("lost")


def test_notify_is_delivered_from_another_thread() -> None:
    client = FakeMatrixClient()

    async def factory(settings):
        return client

    notifier = MatrixNotifier(_settings(), client_factory=factory, sync_timeout_ms=10)
    assert notifier.start(timeout=5.0)
    try:
        notifier.notify("Reminder: Dentist")

        deadline = time.monotonic() + 5
        while not client.sent and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        notifier.stop()
        notifier.join(timeout=5.0)

    assert client.sent == [(ROOM, "Reminder: Dentist")]
    assert client.closed
    assert client.callbacks


def test_console_notifier_prints_timestamped_lines() -> None:
    out = io.StringIO()
    ConsoleNotifier(out).notify("Task due: Alice for Dishes")

    line = out.getvalue()
    assert line.startswith("[")
    assert line.endswith("] Task due: Alice for Dishes\n")
