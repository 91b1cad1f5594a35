"""
Scheduling subsystem.

Components:
- wake_scheduler.py: generic per-class loop (idle / sleeping / checking) with early-wake signal
- service.py: the two class schedulers plus the task/reminder check passes
"""
