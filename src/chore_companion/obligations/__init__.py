"""
Obligation subsystem.

Components:
- models.py: data structures (User, Task, TaskParticipation, Reminder)
- store.py: SQLite-backed storage with per-row atomic firing
- rotation.py: least-recently-served rotation and due-date arithmetic
- oracle.py: next-due / due-within queries per obligation class
"""
