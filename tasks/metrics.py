# taskcrm/tasks/metrics.py
"""Read-only rollups for dashboards and analytics.

Every function works on task snapshots plus the caller's ``now`` and
returns plain dicts and lists.
"""
import logging

from .ledger import round_half_up, total_hours
from .models import TaskPriority, TaskStatus
from .temporal import overdue_tasks

logger = logging.getLogger(__name__)

HIGH_WORKLOAD = 5
MEDIUM_WORKLOAD = 3

PERFORMANCE_BANDS = (
    (80, 'Excellent'),
    (60, 'Good'),
    (40, 'Average'),
)


def completion_rate(tasks):
    tasks = list(tasks)
    if not tasks:
        return 0
    done = sum(1 for task in tasks if task.status == TaskStatus.DONE)
    return round_half_up(100 * done / len(tasks))


def performance_rating(rate):
    for floor, label in PERFORMANCE_BANDS:
        if rate >= floor:
            return label
    return 'Needs Attention'


def rollup(name, tasks, now):
    tasks = list(tasks)
    return {
        'name': name,
        'total': len(tasks),
        'done': sum(1 for task in tasks if task.status == TaskStatus.DONE),
        'in_progress': sum(1 for task in tasks if task.status == TaskStatus.IN_PROGRESS),
        'overdue': len(overdue_tasks(tasks, now)),
        'completion_rate': completion_rate(tasks),
        'hours': round_half_up(total_hours(tasks) * 10) / 10,
    }


def department_rollups(departments, tasks, now):
    """One rollup per ``(code, name)`` department, grouping tasks by project department."""
    tasks = list(tasks)
    rollups = []
    for code, name in departments:
        department_tasks = [task for task in tasks if task.project.department == code]
        row = rollup(name, department_tasks, now)
        row['code'] = code
        rollups.append(row)
    return rollups


def employee_rollups(employees, tasks, now):
    tasks = list(tasks)
    rollups = []
    for employee in employees:
        assigned = [task for task in tasks if task.assignee_id == employee.pk]
        row = rollup(employee.name, assigned, now)
        row.update({
            'id': employee.pk,
            'position': employee.position,
            'department': employee.department,
            'rating': performance_rating(row['completion_rate']),
        })
        rollups.append(row)
    return rollups


def sort_rollups(rollups, key='completion_rate', descending=True):
    return sorted(rollups, key=lambda row: row[key], reverse=descending)


def extremes(rollups, key='completion_rate'):
    """The weakest and strongest rollups by ``key``.

    Both are ``None`` when there is nothing to compare.
    """
    if not rollups:
        return {'needs_attention': None, 'best_performing': None}
    ordered = sort_rollups(rollups, key=key, descending=False)
    return {'needs_attention': ordered[0], 'best_performing': ordered[-1]}


def workload_tier(active_count):
    if active_count > HIGH_WORKLOAD:
        return 'High'
    if active_count > MEDIUM_WORKLOAD:
        return 'Medium'
    return 'Light'


def workloads(users, tasks):
    tasks = list(tasks)
    rows = []
    for user in users:
        active = [
            task for task in tasks
            if task.assignee_id == user.pk and task.status != TaskStatus.DONE
        ]
        urgent = sum(1 for task in active if task.priority == TaskPriority.URGENT)
        rows.append({
            'id': user.pk,
            'name': user.name,
            'active': len(active),
            'urgent': urgent,
            'tier': workload_tier(len(active)),
        })
    return rows


def average_completion_hours(tasks):
    durations = [
        (task.completed_at - task.created_at).total_seconds() / 3600
        for task in tasks
        if task.status == TaskStatus.DONE and task.completed_at and task.created_at
    ]
    if not durations:
        return 0
    return round_half_up(sum(durations) / len(durations) * 10) / 10


def kpis(tasks, projects, now):
    tasks = list(tasks)
    return {
        'total_tasks': len(tasks),
        'completed_tasks': sum(1 for task in tasks if task.status == TaskStatus.DONE),
        'in_progress_tasks': sum(1 for task in tasks if task.status == TaskStatus.IN_PROGRESS),
        'overdue_tasks': len(overdue_tasks(tasks, now)),
        'completion_rate': completion_rate(tasks),
        'total_hours': round_half_up(total_hours(tasks) * 10) / 10,
        'active_projects': sum(1 for project in projects if project.status == 'active'),
        'average_completion_hours': average_completion_hours(tasks),
    }


def status_distribution(tasks):
    tasks = list(tasks)
    return [
        {'status': value, 'name': label, 'value': sum(1 for task in tasks if task.status == value)}
        for value, label in TaskStatus.choices
    ]


def priority_distribution(tasks):
    tasks = list(tasks)
    ordered = [TaskPriority.URGENT, TaskPriority.HIGH, TaskPriority.MEDIUM, TaskPriority.LOW]
    return [
        {'priority': p.value, 'name': p.label, 'value': sum(1 for task in tasks if task.priority == p)}
        for p in ordered
    ]


def analytics_report_csv(summary, departments, employees, generated_on):
    """Render the analytics report as CSV text.

    ``summary`` is a :func:`kpis` dict; ``departments`` and ``employees`` are
    rollup lists. Cells are joined with commas and not quoted.
    """
    rows = [
        ['Task CRM - Analytics Report'],
        ['Generated:', generated_on.isoformat()],
        [],
        ['OVERALL METRICS'],
        ['Total Tasks', summary['total_tasks']],
        ['Completed Tasks', summary['completed_tasks']],
        ['Completion Rate', f"{summary['completion_rate']}%"],
        ['Overdue Tasks', summary['overdue_tasks']],
        ['Total Hours Logged', f"{summary['total_hours']:.1f}h"],
        ['Active Projects', summary['active_projects']],
        [],
        ['DEPARTMENT PERFORMANCE'],
        ['Department', 'Total Tasks', 'Done', 'Completion Rate', 'Hours'],
    ]
    for row in departments:
        rows.append([row['name'], row['total'], row['done'], f"{row['completion_rate']}%", f"{row['hours']}h"])
    rows.extend([
        [],
        ['EMPLOYEE PERFORMANCE'],
        ['Name', 'Position', 'Total Tasks', 'Done', 'Completion Rate', 'Hours'],
    ])
    for row in employees:
        rows.append([
            row['name'], row['position'], row['total'], row['done'],
            f"{row['completion_rate']}%", f"{row['hours']}h",
        ])
    logger.debug(f"Built analytics report with {len(departments)} departments and {len(employees)} employees")
    return '\n'.join(','.join(str(cell) for cell in row) for row in rows)
