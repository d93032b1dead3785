"""Risk scoring for open tasks.

A task's score is the sum of four independent signals, clamped to 100:

  - deadline pressure: the single highest matching tier
      overdue +50, due within 1 day +40, within 3 days +25, within 7 days +10
  - priority: urgent +30, high +20, medium +10, low +0
  - blocked status: +20
  - stalled work: in progress with under a quarter of its subtasks done +15

Tasks scoring at least ``AT_RISK_THRESHOLD`` are considered at risk.
"""
from typing import List, Tuple

from .models import TaskPriority, TaskStatus
from .temporal import is_due_soon, is_overdue

MAX_SCORE = 100
AT_RISK_THRESHOLD = 30

OVERDUE_POINTS = 50
DEADLINE_TIERS = (
    (1, 40),
    (3, 25),
    (7, 10),
)
PRIORITY_POINTS = {
    TaskPriority.URGENT: 30,
    TaskPriority.HIGH: 20,
    TaskPriority.MEDIUM: 10,
    TaskPriority.LOW: 0,
}
BLOCKED_POINTS = 20
STALLED_POINTS = 15
STALLED_RATIO = 0.25


def subtask_completion_ratio(task) -> float:
    subtasks = list(task.subtasks.all())
    if not subtasks:
        return 0.0
    return sum(1 for subtask in subtasks if subtask.completed) / len(subtasks)


def deadline_points(task, now) -> int:
    if is_overdue(task, now):
        return OVERDUE_POINTS
    for window_days, points in DEADLINE_TIERS:
        if is_due_soon(task, now, window_days):
            return points
    return 0


def task_risk_score(task, now) -> int:
    score = deadline_points(task, now)
    score += PRIORITY_POINTS.get(task.priority, 0)

    if task.status == TaskStatus.BLOCKED:
        score += BLOCKED_POINTS

    if task.status == TaskStatus.IN_PROGRESS and subtask_completion_ratio(task) < STALLED_RATIO:
        score += STALLED_POINTS

    return min(score, MAX_SCORE)


def score_tasks(tasks, now, threshold: int = AT_RISK_THRESHOLD) -> List[Tuple[object, int]]:
    """Score every open task and keep those at or above ``threshold``.

    Highest score first; equal scores keep their input order.
    """
    scored = [
        (task, task_risk_score(task, now))
        for task in tasks
        if task.status != TaskStatus.DONE
    ]
    scored = [(task, score) for task, score in scored if score >= threshold]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def at_risk_tasks(tasks, now, threshold: int = AT_RISK_THRESHOLD):
    return [task for task, _ in score_tasks(tasks, now, threshold)]
