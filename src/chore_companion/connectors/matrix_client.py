# src/chore_companion/connectors/matrix_client.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)


def _session_path(store_dir: Path) -> Path:
    return store_dir / "session.json"


def _load_session(path: Path) -> dict[str, Any]:
    val = json.loads(path.read_text("utf-8"))
    if not isinstance(val, dict):
        raise ValueError("Expected JSON object")
    for key in ("access_token", "user_id", "device_id"):
        if not val.get(key):
            raise ValueError(f"session.json is missing {key}")
    return val


def _save_session(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Contains an access token.
        os.chmod(path, 0o600)


async def send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient.

    The access token is persisted in <matrix_store_path>/session.json so restarts
    reuse the same device instead of logging in again.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/chore/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set CHORE_MATRIX_HOMESERVER and CHORE_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = _session_path(store_dir)

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(store_sync_tokens=False),
    )

    if session_file.exists():
        try:
            data = _load_session(session_file)
            client.access_token = str(data["access_token"])
            client.user_id = str(data["user_id"])
            client.device_id = str(data["device_id"])
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        except (OSError, ValueError) as e:
            logger.warning("Failed to restore Matrix session.json, will try password login: %r", e)

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set CHORE_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'chore-companion')} (Python)"
    logger.info("Logging in to Matrix (device_name=%r)...", device_name)
    resp = await client.login(password=password, device_name=device_name)

    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _save_session(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # Still usable for this run; next start logs in again.
        logger.error("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client
