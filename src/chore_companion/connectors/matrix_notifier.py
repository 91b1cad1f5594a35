# src/chore_companion/connectors/matrix_notifier.py

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any

from nio import MatrixRoom, RoomMessageText

from .matrix_client import create_matrix_client, send_text

logger = logging.getLogger(__name__)

# (line, user_id, room_id) -> reply text or None
CommandHandler = Callable[[str, str | None, str | None], str | None]
ClientFactory = Callable[[Any], Awaitable[Any]]


def _ms_now() -> int:
    return int(time.time() * 1000)


class MatrixNotifier:
    """
    Matrix notification channel.

    The nio client runs its own event loop on a background thread (scheduler threads are
    plain threads). notify() hands the send over to that loop and returns immediately;
    delivery failures are only logged.

    Slash commands posted in the configured room are answered through an optional
    command handler (wired by the bootstrap).
    """

    def __init__(
        self,
        settings: Any,
        *,
        client_factory: ClientFactory = create_matrix_client,
        sync_timeout_ms: int = 30000,
    ) -> None:
        self._settings = settings
        self._room_id = str(getattr(settings, "matrix_room_id", "") or "").strip()
        self._client_factory = client_factory
        self._sync_timeout_ms = int(sync_timeout_ms)

        self._command_handler: CommandHandler | None = None
        self._client: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._client_ready: asyncio.Event | None = None
        self._thread: threading.Thread | None = None
        self._startup_ts = 0

    def set_command_handler(self, handler: CommandHandler | None) -> None:
        self._command_handler = handler

    # ---- outbound ----

    def notify(self, text: str) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("Matrix notifier not running; dropping notification %r", text)
            return

        fut = asyncio.run_coroutine_threadsafe(self._send(text), loop)
        fut.add_done_callback(self._log_send_failure)

    @staticmethod
    def _log_send_failure(fut: concurrent.futures.Future) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("Failed to deliver Matrix notification: %r", exc)

    async def _send(self, text: str) -> None:
        if self._client_ready is not None:
            await self._client_ready.wait()
        if self._client is None:
            logger.warning("Matrix client unavailable; dropping notification %r", text)
            return
        await send_text(self._client, room_id=self._room_id, text=text)
        logger.info("Notification sent to %s", self._room_id)

    # ---- inbound (commands) ----

    async def _on_message(self, room: MatrixRoom, event: RoomMessageText) -> None:
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= self._startup_ts:
            return
        if event.sender == getattr(self._client, "user_id", None):
            return
        if room.room_id != self._room_id:
            return

        body = (event.body or "").strip()
        if not body.startswith("/") or self._command_handler is None:
            return

        try:
            reply = self._command_handler(body, event.sender, room.room_id)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply:
            try:
                await send_text(self._client, room_id=room.room_id, text=reply)
            except Exception:
                logger.exception("Failed to send command reply.")

    # ---- lifecycle ----

    async def _run(self) -> None:
        assert self._stop_event is not None and self._client_ready is not None
        self._startup_ts = _ms_now()

        try:
            client = await self._client_factory(self._settings)
        except Exception:
            logger.exception("Matrix client creation failed.")
            client = None

        if client is None:
            self._client_ready.set()
            logger.error("Matrix notifier has no client; notifications will be dropped.")
            return

        self._client = client
        client.add_event_callback(self._on_message, RoomMessageText)
        self._client_ready.set()
        logger.info("Matrix notifier ready (room=%s).", self._room_id)

        try:
            await client.sync(timeout=self._sync_timeout_ms, full_state=True)
            while not self._stop_event.is_set():
                await client.sync(timeout=self._sync_timeout_ms, full_state=False)
        except asyncio.CancelledError:
            logger.info("Matrix sync cancelled.")
        except Exception:
            logger.exception("Matrix sync loop crashed.")
        finally:
            with contextlib.suppress(Exception):
                await client.close()
            logger.info("Matrix notifier stopped.")

    def start(self, timeout: float = 5.0) -> bool:
        """Start the background loop thread. True once the loop is up."""
        if self._thread is not None and self._thread.is_alive():
            return True

        ready = threading.Event()

        def runner() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._stop_event = asyncio.Event()
            self._client_ready = asyncio.Event()
            self._loop = loop
            ready.set()
            try:
                loop.run_until_complete(self._run())
                # Let in-flight sends finish.
                pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
                if pending:
                    loop.run_until_complete(asyncio.wait(pending, timeout=5.0))
            finally:
                with contextlib.suppress(Exception):
                    loop.close()

        self._thread = threading.Thread(target=runner, name="matrix", daemon=True)
        self._thread.start()

        if not ready.wait(timeout=timeout):
            logger.error("Matrix thread did not initialize properly.")
            return False
        logger.info("Matrix background thread started.")
        return True

    def stop(self) -> None:
        loop, stop_event = self._loop, self._stop_event
        if loop is None or stop_event is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal Matrix stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)
