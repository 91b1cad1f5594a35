# src/chore_companion/obligations/store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

from ..errors import (
    NoParticipantsError,
    SchemaMismatchError,
    StoreTransactionError,
    UnknownUserError,
)
from .models import (
    FiredObligation,
    ObligationKind,
    Reminder,
    Task,
    TaskParticipation,
    User,
    normalize_name,
)
from .rotation import advance_due, pick_next_responsible

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"

# kind -> (table, due column)
_DUE_COLUMNS: dict[ObligationKind, tuple[str, str]] = {
    ObligationKind.TASK: ("tasks", "next_due_at"),
    ObligationKind.REMINDER: ("reminders", "due_at"),
}

TaskFireHook = Callable[[Task, User], None]
ReminderFireHook = Callable[[Reminder], None]


class ObligationStore:
    """
    SQLite store for users, tasks (with rotation history) and reminders.

    Transactions:
    - every read-then-write operation runs inside BEGIN IMMEDIATE, so concurrent
      writers are serialized by SQLite itself
    - firing an obligation (re-check due, notify, advance/delete) is one transaction
      per row; a second concurrent pass sees the row already advanced or gone

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "obligations.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info(
            "ObligationStore ready db=%s users=%s tasks=%s reminders=%s",
            self._db_path,
            self.count_users(),
            self.count_tasks(),
            self.count_reminders(),
        )

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly in _transaction().
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Serialized write transaction.

        sqlite3 errors roll back and surface as StoreTransactionError.
        Domain errors (UnknownUserError, NoParticipantsError, ...) roll back and propagate as-is.
        """
        conn = self._get_conn()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreTransactionError(f"could not begin transaction: {e}") from e

            try:
                yield conn
            except sqlite3.Error as e:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise StoreTransactionError(str(e)) from e
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise StoreTransactionError(f"commit failed: {e}") from e
        finally:
            conn.close()

    @contextlib.contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreTransactionError(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    normalized_name TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    description TEXT NOT NULL,
                    next_due_at REAL NOT NULL,
                    interval_days INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS task_participations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id),
                    task_id INTEGER NOT NULL REFERENCES tasks(id),
                    last_participated REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    description TEXT NOT NULL,
                    due_at REAL NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_data (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

            conn.execute("CREATE INDEX IF NOT EXISTS idx_users_normalized ON users(normalized_name)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(next_due_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_reminders_due ON reminders(due_at)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_participations_task "
                "ON task_participations(task_id, last_participated)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_participations_user ON task_participations(user_id)"
            )

            conn.execute(
                "INSERT OR IGNORE INTO schema_data(key, value) VALUES ('schema_version', ?)",
                (SCHEMA_VERSION,),
            )
            row = conn.execute("SELECT value FROM schema_data WHERE key = 'schema_version'").fetchone()

        found = row["value"] if row else None
        logger.info("DB schema version: %s (current: %s)", found, SCHEMA_VERSION)
        if found != SCHEMA_VERSION:
            raise SchemaMismatchError(found, SCHEMA_VERSION)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            normalized_name=str(row["normalized_name"]),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            description=str(row["description"]),
            next_due_at=float(row["next_due_at"]),
            interval_days=int(row["interval_days"]),
        )

    @staticmethod
    def _row_to_participation(row: sqlite3.Row) -> TaskParticipation:
        return TaskParticipation(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            task_id=int(row["task_id"]),
            last_participated=float(row["last_participated"]),
        )

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=int(row["id"]),
            description=str(row["description"]),
            due_at=float(row["due_at"]),
        )

    def _count(self, table: str) -> int:
        with self._read() as conn:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
            return int(n)

    # ---- users ----

    def count_users(self) -> int:
        return self._count("users")

    def create_user(self, name: str) -> User:
        clean = (name or "").strip()
        normalized = normalize_name(clean)
        if not normalized:
            raise ValueError(f"user name {name!r} has no letters")

        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM users WHERE normalized_name = ?", (normalized,)
            ).fetchone()
            if existing is not None:
                raise ValueError(f"user {clean!r} already exists")

            cur = conn.execute(
                "INSERT INTO users(name, normalized_name) VALUES (?, ?)", (clean, normalized)
            )
            user_id = cur.lastrowid
            if user_id is None:
                raise RuntimeError("SQLite did not return lastrowid for users insert")

        logger.info("User added id=%s name=%s", user_id, clean)
        return User(id=int(user_id), name=clean, normalized_name=normalized)

    def find_user(self, name: str) -> User | None:
        normalized = normalize_name(name)
        if not normalized:
            return None
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE normalized_name = ? ORDER BY id LIMIT 1", (normalized,)
            ).fetchone()
            return self._row_to_user(row) if row else None

    def remove_user(self, user_id: int) -> None:
        """Remove a user together with all of its task participations."""
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM task_participations WHERE user_id = ?", (int(user_id),))
            dropped = cur.rowcount
            conn.execute("DELETE FROM users WHERE id = ?", (int(user_id),))
        logger.info("User removed id=%s (participations dropped=%s)", user_id, dropped)

    def all_usernames(self) -> list[str]:
        return [u.name for u in self.list_users()]

    def list_users(self) -> list[User]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id ASC").fetchall()
            return [self._row_to_user(r) for r in rows]

    # ---- tasks ----

    def count_tasks(self) -> int:
        return self._count("tasks")

    def count_participations(self) -> int:
        return self._count("task_participations")

    def create_task(
        self,
        description: str,
        due_at: float,
        interval_days: int,
        participant_names: Sequence[str],
        *,
        now_ts: float | None = None,
    ) -> Task:
        """
        Create a task and one participation row per participant.

        All-or-nothing: every name must resolve to an existing user, otherwise
        UnknownUserError is raised for the first unresolved name and nothing is written.
        Every participant starts with last_participated = now_ts (equal standing).
        """
        desc = (description or "").strip()
        if not desc:
            raise ValueError("description is required")
        if int(interval_days) <= 0:
            raise ValueError("interval_days must be positive")
        if not participant_names:
            raise ValueError("at least one participant is required")

        if now_ts is None:
            now_ts = time.time()

        with self._transaction() as conn:
            members: list[User] = []
            seen: set[int] = set()
            for name in participant_names:
                row = conn.execute(
                    "SELECT * FROM users WHERE normalized_name = ? ORDER BY id LIMIT 1",
                    (normalize_name(name),),
                ).fetchone()
                if row is None:
                    raise UnknownUserError(name)
                user = self._row_to_user(row)
                if user.id not in seen:
                    seen.add(user.id)
                    members.append(user)

            cur = conn.execute(
                "INSERT INTO tasks(description, next_due_at, interval_days) VALUES (?, ?, ?)",
                (desc, float(due_at), int(interval_days)),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)

            conn.executemany(
                "INSERT INTO task_participations(user_id, task_id, last_participated) VALUES (?, ?, ?)",
                [(m.id, task_id, float(now_ts)) for m in members],
            )

        logger.info(
            "Task added id=%s desc=%r due_at=%s interval_days=%s participants=%s",
            task_id,
            desc,
            due_at,
            interval_days,
            [m.name for m in members],
        )
        return Task(id=task_id, description=desc, next_due_at=float(due_at), interval_days=int(interval_days))

    def get_task(self, task_id: int) -> Task | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    def list_tasks(self) -> list[Task]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM tasks ORDER BY next_due_at ASC, id ASC").fetchall()
            return [self._row_to_task(r) for r in rows]

    def list_participations(self, task_id: int) -> list[TaskParticipation]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM task_participations WHERE task_id = ? ORDER BY id ASC",
                (int(task_id),),
            ).fetchall()
            return [self._row_to_participation(r) for r in rows]

    def remove_task(self, task_id: int) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM task_participations WHERE task_id = ?", (int(task_id),))
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
        logger.info("Task removed id=%s", task_id)

    # ---- reminders ----

    def count_reminders(self) -> int:
        return self._count("reminders")

    def create_reminder(self, description: str, due_at: float) -> Reminder:
        desc = (description or "").strip()
        if not desc:
            raise ValueError("description is required")

        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO reminders(description, due_at) VALUES (?, ?)", (desc, float(due_at))
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for reminders insert")

        logger.debug("Reminder added id=%s due_at=%s", rowid, due_at)
        return Reminder(id=int(rowid), description=desc, due_at=float(due_at))

    def remove_reminder(self, reminder_id: int) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM reminders WHERE id = ?", (int(reminder_id),))

    def list_reminders(self) -> list[Reminder]:
        with self._read() as conn:
            rows = conn.execute("SELECT * FROM reminders ORDER BY due_at ASC, id ASC").fetchall()
            return [self._row_to_reminder(r) for r in rows]

    # ---- due-time queries ----

    def next_due_instant(self, kind: ObligationKind) -> float | None:
        table, column = _DUE_COLUMNS[kind]
        with self._read() as conn:
            (value,) = conn.execute(f"SELECT MIN({column}) FROM {table}").fetchone()
            return float(value) if value is not None else None

    def list_due(self, kind: ObligationKind, *, until: float) -> list[Task] | list[Reminder]:
        """Every obligation of this kind due at or before `until`, earliest first."""
        table, column = _DUE_COLUMNS[kind]
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT * FROM {table} WHERE {column} <= ? ORDER BY {column} ASC, id ASC",
                (float(until),),
            ).fetchall()
        if kind is ObligationKind.TASK:
            return [self._row_to_task(r) for r in rows]
        return [self._row_to_reminder(r) for r in rows]

    def _time_to_next(self, kind: ObligationKind, now_ts: float | None) -> float | None:
        due = self.next_due_instant(kind)
        if due is None:
            return None
        if now_ts is None:
            now_ts = time.time()
        return max(0.0, due - now_ts)

    def time_to_next_task(self, now_ts: float | None = None) -> float | None:
        """Seconds until the earliest task is due (0 if overdue, None if there are no tasks)."""
        return self._time_to_next(ObligationKind.TASK, now_ts)

    def time_to_next_reminder(self, now_ts: float | None = None) -> float | None:
        return self._time_to_next(ObligationKind.REMINDER, now_ts)

    def tasks_within(self, window_s: float, now_ts: float | None = None) -> list[Task]:
        if now_ts is None:
            now_ts = time.time()
        return self.list_due(ObligationKind.TASK, until=now_ts + window_s)  # type: ignore[return-value]

    def reminders_within(self, window_s: float, now_ts: float | None = None) -> list[Reminder]:
        if now_ts is None:
            now_ts = time.time()
        return self.list_due(ObligationKind.REMINDER, until=now_ts + window_s)  # type: ignore[return-value]

    # ---- rotation ----

    def _responsible_for(self, conn: sqlite3.Connection, task_id: int) -> User:
        rows = conn.execute(
            "SELECT * FROM task_participations WHERE task_id = ?", (int(task_id),)
        ).fetchall()
        chosen = pick_next_responsible((self._row_to_participation(r) for r in rows), task_id=task_id)
        user_row = conn.execute("SELECT * FROM users WHERE id = ?", (chosen.user_id,)).fetchone()
        if user_row is None:
            raise NoParticipantsError(task_id)
        return self._row_to_user(user_row)

    def _advance(self, conn: sqlite3.Connection, task: Task, user_id: int, now_ts: float) -> float:
        new_due = advance_due(task.next_due_at, task.interval_days)
        conn.execute("UPDATE tasks SET next_due_at = ? WHERE id = ?", (new_due, task.id))

        # Keep the chosen participant strictly last in line, even if the clock stalls.
        (latest,) = conn.execute(
            "SELECT MAX(last_participated) FROM task_participations WHERE task_id = ?", (task.id,)
        ).fetchone()
        stamp = float(now_ts)
        if latest is not None and stamp <= float(latest):
            stamp = float(latest) + 1e-6

        conn.execute(
            "UPDATE task_participations SET last_participated = ? WHERE task_id = ? AND user_id = ?",
            (stamp, task.id, int(user_id)),
        )
        return new_due

    def next_user_responsible_for(self, task_id: int) -> User:
        with self._read() as conn:
            return self._responsible_for(conn, task_id)

    def update_task(self, task_id: int, user_id: int, now_ts: float | None = None) -> Task | None:
        """Advance the due date by one interval and mark `user_id` as having served."""
        if now_ts is None:
            now_ts = time.time()
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            if row is None:
                return None
            task = self._row_to_task(row)
            new_due = self._advance(conn, task, user_id, now_ts)
        return Task(id=task.id, description=task.description, next_due_at=new_due, interval_days=task.interval_days)

    # ---- atomic firing ----

    def fire_task(
        self,
        task_id: int,
        *,
        horizon: float,
        on_fire: TaskFireHook,
        now_ts: float | None = None,
        expected_due_at: float | None = None,
    ) -> FiredObligation | None:
        """
        Claim and fire one task in a single transaction.

        Returns None when the task vanished, is no longer due before `horizon`, or its due
        instant differs from `expected_due_at` (the one the caller read; another pass already
        advanced it). NoParticipantsError propagates and nothing changes.
        """
        if now_ts is None:
            now_ts = time.time()

        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            if row is None:
                return None
            task = self._row_to_task(row)
            if task.next_due_at > horizon:
                return None
            if expected_due_at is not None and task.next_due_at != float(expected_due_at):
                return None

            user = self._responsible_for(conn, task.id)
            on_fire(task, user)
            new_due = self._advance(conn, task, user.id, now_ts)

        logger.info("Task %s fired for %s; next due %s", task.id, user.name, new_due)
        return FiredObligation(
            kind=ObligationKind.TASK,
            obligation_id=task.id,
            description=task.description,
            due_at=task.next_due_at,
            responsible=user,
        )

    def fire_reminder(
        self,
        reminder_id: int,
        *,
        horizon: float,
        on_fire: ReminderFireHook,
        expected_due_at: float | None = None,
    ) -> FiredObligation | None:
        """Claim, fire and delete one reminder in a single transaction (same skip rules as fire_task)."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM reminders WHERE id = ?", (int(reminder_id),)).fetchone()
            if row is None:
                return None
            reminder = self._row_to_reminder(row)
            if reminder.due_at > horizon:
                return None
            if expected_due_at is not None and reminder.due_at != float(expected_due_at):
                return None

            on_fire(reminder)
            conn.execute("DELETE FROM reminders WHERE id = ?", (reminder.id,))

        logger.info("Reminder %s fired and removed", reminder.id)
        return FiredObligation(
            kind=ObligationKind.REMINDER,
            obligation_id=reminder.id,
            description=reminder.description,
            due_at=reminder.due_at,
        )
