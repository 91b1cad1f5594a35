"""Rotating chores and one-shot reminders, announced to a chat room when they fall due."""

__version__ = "1.0.0"
