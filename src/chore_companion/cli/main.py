# src/chore_companion/cli/main.py

"""
CLI entrypoint.

Administrative subcommands (users, tasks, reminders) run once and exit;
`start` runs the scheduler service (and the Matrix connector, if enabled) until
SIGINT/SIGTERM.

Fatal startup errors (bad configuration, incompatible database schema) exit with status 1.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from collections.abc import Sequence

from ..cli.bootstrap import create_initial_state
from ..cli.commands import cmd_reminders, cmd_tasks, cmd_users
from ..cli.commands import parse_instant as _parse_iso
from ..config import get_settings
from ..connectors.matrix_notifier import MatrixNotifier
from ..core.state import AppState
from ..errors import ConfigError, SchemaMismatchError, UnknownUserError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def parse_instant(raw: str) -> float:
    """ISO date or datetime; naive values are local time."""
    try:
        return _parse_iso(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO date/datetime: {raw!r}") from e


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


# ---- subcommands ----


def _cmd_adduser(state: AppState, args: argparse.Namespace) -> int:
    rc = 0
    for name in args.names:
        try:
            user = state.store.create_user(name)
            print(f"Added user {user.name}")
        except ValueError as e:
            print(f"Cannot add user {name!r}: {e}")
            rc = 1
    return rc


def _cmd_deluser(state: AppState, args: argparse.Namespace) -> int:
    rc = 0
    for name in args.names:
        user = state.store.find_user(name)
        if user is None:
            print(f"No user named {name}")
            rc = 1
            continue
        state.store.remove_user(user.id)
        print(f"Removed user {user.name}")
    return rc


def _cmd_users(state: AppState, args: argparse.Namespace) -> int:
    print(cmd_users(state, [], None, None))
    return 0


def _cmd_addtask(state: AppState, args: argparse.Namespace) -> int:
    try:
        task = state.intake.create_task(args.description, args.due, args.interval, args.participants)
    except (UnknownUserError, ValueError) as e:
        print(f"Task not created: {e}")
        return 1
    print(f"Created task {task.description}")
    return 0


def _cmd_deltask(state: AppState, args: argparse.Namespace) -> int:
    task = state.store.get_task(args.task_id)
    if task is None:
        print(f"No task #{args.task_id}")
        return 1
    state.store.remove_task(task.id)
    print(f"Removed task #{task.id} {task.description}")
    return 0


def _cmd_remind(state: AppState, args: argparse.Namespace) -> int:
    reminder = state.intake.import_reminder(args.description, args.at)
    if reminder is None:
        print("Reminder is in the past; skipped.")
        return 0
    print(f"Created reminder {reminder.description}")
    return 0


def _cmd_list(state: AppState, args: argparse.Namespace) -> int:
    print(cmd_tasks(state, [], None, None))
    print(cmd_reminders(state, [], None, None))
    return 0


def _cmd_start(state: AppState, args: argparse.Namespace) -> int:
    notifier = state.notifier
    if isinstance(notifier, MatrixNotifier):
        notifier.start()

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    state.service.start()
    logger.info("Service running. Press Ctrl+C to stop.")
    try:
        stop_main.wait()
    finally:
        state.service.stop()
        state.service.join(timeout=5.0)
        if isinstance(notifier, MatrixNotifier):
            notifier.stop()
            notifier.join(timeout=10.0)
        logger.info("Bye.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chore-companion",
        description="Rotating chores and reminders, announced to a chat room.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("adduser", help="add users")
    p.add_argument("names", nargs="+", metavar="USERNAME")
    p.set_defaults(func=_cmd_adduser)

    p = sub.add_parser("deluser", help="remove users (and their task participations)")
    p.add_argument("names", nargs="+", metavar="USERNAME")
    p.set_defaults(func=_cmd_deluser)

    p = sub.add_parser("users", help="list users")
    p.set_defaults(func=_cmd_users)

    p = sub.add_parser("addtask", help="add a recurring task")
    p.add_argument("description", metavar="TASKDESC")
    p.add_argument("--due", required=True, type=parse_instant, metavar="DATE",
                   help="next due date (YYYY-MM-DD or ISO datetime)")
    p.add_argument("--interval", type=_positive_int, default=7, metavar="DAYS",
                   help="interval in days (default: 7)")
    p.add_argument("-p", "--participant", dest="participants", action="append", default=[],
                   metavar="USERNAME", help="participating user (repeatable; default: all users)")
    p.set_defaults(func=_cmd_addtask)

    p = sub.add_parser("deltask", help="remove a task (and its participations)")
    p.add_argument("task_id", type=_positive_int, metavar="TASKID")
    p.set_defaults(func=_cmd_deltask)

    p = sub.add_parser("remind", help="add a one-shot reminder")
    p.add_argument("description", metavar="TEXT")
    p.add_argument("--at", required=True, type=parse_instant, metavar="DATETIME")
    p.set_defaults(func=_cmd_remind)

    p = sub.add_parser("list", help="list tasks and reminders")
    p.set_defaults(func=_cmd_list)

    p = sub.add_parser("start", help="run the scheduler service")
    p.set_defaults(func=_cmd_start)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings().validate()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)
    logger.debug("Logging to %s", log_file)

    try:
        state = create_initial_state(settings=settings)
    except SchemaMismatchError as e:
        logger.error("%s. Schema upgrade not supported yet.", e)
        return 1

    return int(args.func(state, args))


if __name__ == "__main__":
    sys.exit(main())
