"""Deadline classification for tasks.

Both predicates take the caller's clock explicitly so results are
reproducible. A finished task is never late and never due soon, and a task
without a due date is neither.
"""
from datetime import timedelta

from .models import TaskStatus

DUE_SOON_DAYS = 3


def is_overdue(task, now) -> bool:
    if task.status == TaskStatus.DONE or task.due_date is None:
        return False
    return task.due_date < now


def is_due_soon(task, now, window_days: int = DUE_SOON_DAYS) -> bool:
    """True when the due date falls strictly inside ``(now, now + window_days)``."""
    if task.status == TaskStatus.DONE or task.due_date is None:
        return False
    return now < task.due_date < now + timedelta(days=window_days)


def overdue_tasks(tasks, now):
    return [task for task in tasks if is_overdue(task, now)]


def due_soon_tasks(tasks, now, window_days: int = DUE_SOON_DAYS):
    return [task for task in tasks if is_due_soon(task, now, window_days)]
