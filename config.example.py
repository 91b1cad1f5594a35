# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep them in .env (local, gitignored).
"""

ENV_VARS = {
    # App / logging
    "CHORE_APP_NAME": "App display name, also used as Matrix device name (default: chore-companion).",
    "CHORE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "CHORE_DATA_DIR": "Local data directory (default: .local/chore).",
    "CHORE_DB_PATH": "SQLite database path (default: <data_dir>/obligations.sqlite3).",
    # Matrix (notification channel)
    "CHORE_MATRIX_ENABLED": "Send notifications to Matrix (true/false; default: false -> console).",
    "CHORE_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "CHORE_MATRIX_USER_ID": "Matrix user ID (bot).",
    "CHORE_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "CHORE_MATRIX_ROOM_ID": "Room that receives notifications and answers /commands.",
    "CHORE_MATRIX_STORE_PATH": "Matrix session directory (default: <data_dir>/matrix_store).",
    # Scheduling
    "CHORE_ALERT_LEAD_HOURS": "How long before the due instant obligations fire (default: 8).",
    "CHORE_IDLE_POLL_SECONDS": "Poll interval when a class has no obligations (default: 60).",
    "CHORE_RETRY_DELAY_SECONDS": "Wait after a failed check pass (default: 60).",
}
