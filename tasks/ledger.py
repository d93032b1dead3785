# taskcrm/tasks/ledger.py
"""Time accounting for tasks.

Durations are whole minutes. A task's logged hours are always derived from
its time entries, never kept as a running counter, so editing or deleting
an entry can't leave a stale total behind.

Running timers live in the Django cache until they are stopped; only a
stopped timer with a positive duration becomes a :class:`TimeEntry`.
"""
import logging
import math
from collections import OrderedDict
from datetime import datetime, timedelta

from django.core.cache import cache
from django.utils import timezone

from .store import TaskStore

logger = logging.getLogger(__name__)

CHART_WINDOW_DAYS = 7
CSV_HEADER = ['Date', 'Task', 'User', 'Duration (minutes)', 'Notes']


def round_half_up(value):
    return int(math.floor(value + 0.5))


def duration_minutes(start_time, end_time):
    return round_half_up((end_time - start_time).total_seconds() / 60)


def manual_duration(hours=0, minutes=0):
    return int(hours or 0) * 60 + int(minutes or 0)


def calendar_day(moment):
    return timezone.localtime(moment).date().isoformat()


def total_minutes(entries):
    return sum(entry.duration or 0 for entry in entries)


def task_hours(task):
    return task.actual_hours


def total_hours(tasks):
    return sum(task_hours(task) for task in tasks)


def minutes_by_user(entries):
    totals = OrderedDict()
    for entry in entries:
        totals[entry.user_id] = totals.get(entry.user_id, 0) + (entry.duration or 0)
    return totals


def minutes_by_day(entries):
    totals = {}
    for entry in entries:
        totals[entry.date] = totals.get(entry.date, 0) + (entry.duration or 0)
    return totals


def daily_hours(entries, today, days=CHART_WINDOW_DAYS):
    """Hours per calendar day over the ``days`` days ending on ``today``."""
    per_day = minutes_by_day(entries)
    chart = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        minutes = per_day.get(day.isoformat(), 0)
        chart.append({
            'date': day.isoformat(),
            'label': day.strftime('%a'),
            'hours': round_half_up(minutes / 60 * 10) / 10,
        })
    return chart


def _quoted(value):
    return '"%s"' % str(value or '').replace('"', '""')


def export_rows(entries):
    rows = []
    for entry in entries:
        rows.append([
            entry.date,
            _quoted(entry.task.title),
            _quoted(entry.user.name),
            str(entry.duration or 0),
            _quoted(entry.notes),
        ])
    return rows


def to_csv(entries):
    lines = [','.join(CSV_HEADER)]
    lines.extend(','.join(row) for row in export_rows(entries))
    return '\n'.join(lines)


class TimerSession:
    """A running stopwatch for one user on one task."""

    def __init__(self, task_id, user_id, start_time):
        self.task_id = task_id
        self.user_id = user_id
        self.start_time = start_time

    def elapsed_seconds(self, now):
        return max(0, int((now - self.start_time).total_seconds()))

    def to_dict(self):
        return {
            'task_id': self.task_id,
            'user_id': self.user_id,
            'start_time': self.start_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(data['task_id'], data['user_id'], datetime.fromisoformat(data['start_time']))


class ActiveTimers:
    """One running timer per user, kept in the cache."""

    key_prefix = 'taskcrm:timer:'

    def __init__(self, backend=None):
        self.backend = backend or cache

    def _key(self, user_id):
        return f"{self.key_prefix}{user_id}"

    def get(self, user_id):
        data = self.backend.get(self._key(user_id))
        return TimerSession.from_dict(data) if data else None

    def put(self, session):
        self.backend.set(self._key(session.user_id), session.to_dict(), timeout=None)

    def pop(self, user_id):
        session = self.get(user_id)
        if session is not None:
            self.backend.delete(self._key(user_id))
        return session


class TimeLedger:
    def __init__(self, store=None, timers=None):
        self.store = store or TaskStore()
        self.timers = timers or ActiveTimers()

    def start_timer(self, task, context):
        """Start the actor's stopwatch on ``task``.

        Returns None while another timer of the actor is still running; it
        has to be stopped first so its time gets logged.
        """
        if self.timers.get(context.actor.pk) is not None:
            logger.info(f"User {context.actor.pk} already has a running timer")
            return None
        session = TimerSession(task.pk, context.actor.pk, context.now)
        self.timers.put(session)
        logger.info(f"Timer started for user {context.actor.pk} on task {task.pk}")
        return session

    def active_timer(self, user):
        return self.timers.get(user.pk)

    def stop_timer(self, context, notes=''):
        """Stop the actor's stopwatch and log the elapsed time.

        Returns the new entry, or None when no timer was running or the
        rounded duration is not positive.
        """
        session = self.timers.pop(context.actor.pk)
        if session is None:
            return None
        duration = duration_minutes(session.start_time, context.now)
        if duration <= 0:
            logger.info(f"Discarded {duration}m timer for user {context.actor.pk} on task {session.task_id}")
            return None
        task = self.store.tasks.get(session.task_id)
        if task is None:
            logger.warning(f"Timer stopped for missing task {session.task_id}")
            return None
        return self.record(
            task, context,
            start_time=session.start_time,
            end_time=context.now,
            duration=duration,
            notes=notes,
        )

    def log_manual(self, task, context, hours=0, minutes=0, notes='', day=None):
        if task is None:
            return None
        duration = manual_duration(hours, minutes)
        if duration <= 0:
            return None
        return self.record(
            task, context,
            start_time=context.now,
            end_time=context.now,
            duration=duration,
            notes=notes,
            day=day,
        )

    def record(self, task, context, start_time, end_time, duration, notes='', day=None):
        entry = self.store.time_entries.insert(
            task=task,
            user=context.actor,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
            notes=notes or '',
            date=day or calendar_day(end_time or start_time),
        )
        self.store.touch_task(task.pk, context.now)
        logger.info(f"Logged {duration}m on task {task.pk} for user {context.actor.pk}")
        return entry

    def update_entry(self, entry_id, **changes):
        if 'duration' in changes and (changes['duration'] or 0) <= 0:
            return None
        return self.store.time_entries.update(entry_id, **changes)

    def delete_entry(self, entry_id):
        return self.store.time_entries.delete(entry_id)
