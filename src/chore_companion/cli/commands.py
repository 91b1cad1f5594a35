# src/chore_companion/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from datetime import datetime

from ..core.state import AppState
from ..errors import NoParticipantsError, UnknownUserError
from ..obligations.models import ObligationKind

CommandHandler = Callable[[AppState, list[str], str | None, str | None], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /id, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases or []:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        logger.debug("Command /%s from user=%s room=%s", name, user_id, room_id)
        with state.lock:
            return handler(state, parts[1:], user_id, room_id)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def parse_instant(raw: str) -> float:
    """ISO date or datetime -> timestamp; naive values are local time. Raises ValueError."""
    return datetime.fromisoformat(raw.strip()).timestamp()


def cmd_help(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return registry.build_help()


def cmd_id(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return f"Chat id: {room_id or '-'}"


def cmd_users(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    names = state.store.all_usernames()
    if not names:
        return "No users yet."
    return "Users: " + ", ".join(names)


def cmd_tasks(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    tasks = state.store.list_tasks()
    if not tasks:
        return "No tasks."

    lines = ["Tasks:"]
    for task in tasks:
        try:
            who = state.store.next_user_responsible_for(task.id).name
        except NoParticipantsError:
            who = "nobody"
        lines.append(
            f"#{task.id} {task.description} - due {format_ts(task.next_due_at)}, "
            f"every {task.interval_days} d, next: {who}"
        )
    return "\n".join(lines)


def cmd_reminders(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    reminders = state.store.list_reminders()
    if not reminders:
        return "No reminders."
    lines = ["Reminders:"]
    for i, reminder in enumerate(reminders, start=1):
        lines.append(f"{i}. {reminder.description} - {format_ts(reminder.due_at)}")
    return "\n".join(lines)


def cmd_remind(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    # /remind <when> <text...>
    if len(args) < 2:
        return "Usage: /remind <YYYY-MM-DD[THH:MM]> <text>"
    try:
        due_at = parse_instant(args[0])
    except ValueError:
        return f"Not a date: {args[0]}"

    reminder = state.intake.import_reminder(" ".join(args[1:]), due_at)
    if reminder is None:
        return "That time is already past; nothing added."
    return f"Reminder added: {reminder.description} at {format_ts(reminder.due_at)}"


def cmd_addtask(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    # /addtask <description> <first due> <interval days> [user ...]
    if len(args) < 3:
        return "Usage: /addtask <description> <YYYY-MM-DD> <interval days> [user ...]"
    description, raw_due, raw_interval, *names = args
    try:
        due_at = parse_instant(raw_due)
        interval = int(raw_interval)
    except ValueError:
        return "Due date must be ISO (YYYY-MM-DD) and the interval a whole number of days."

    try:
        task = state.intake.create_task(description, due_at, interval, names or None)
    except (UnknownUserError, ValueError) as e:
        return f"Task not created: {e}"
    return f"Task added: #{task.id} {task.description}, first due {format_ts(task.next_due_at)}"


def cmd_deltask(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    if len(args) != 1 or not args[0].lstrip("#").isdigit():
        return "Usage: /deltask <task id>"
    task_id = int(args[0].lstrip("#"))
    task = state.store.get_task(task_id)
    if task is None:
        return f"No task #{task_id}."
    state.store.remove_task(task_id)
    return f"Task removed: #{task_id} {task.description}"


def cmd_status(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    service = state.service
    return (
        "Status:\n"
        f"  Running: {'yes' if service.is_running else 'no'}\n"
        f"  Task scheduler: {service.phase(ObligationKind.TASK)}\n"
        f"  Reminder scheduler: {service.phase(ObligationKind.REMINDER)}\n"
        f"  Alert lead: {service.alert_lead_seconds / 3600:.1f} h"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("id", cmd_id, help_text="Show the id of this chat.")
registry.register("users", cmd_users, help_text="List users.")
registry.register("tasks", cmd_tasks, help_text="List tasks with next due date and next responsible.")
registry.register("reminders", cmd_reminders, help_text="List pending reminders.")
registry.register("remind", cmd_remind, help_text="Add a reminder: /remind <when> <text>.")
registry.register(
    "addtask",
    cmd_addtask,
    help_text="Add a recurring task: /addtask <description> <first due> <days> [user ...].",
)
registry.register("deltask", cmd_deltask, help_text="Remove a task by id: /deltask <id>.")
registry.register("status", cmd_status, help_text="Show scheduler state.")
