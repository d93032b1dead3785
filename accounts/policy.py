"""Role based access policy.

Every "may this user do X" question in the project is answered by
:func:`can`. Roles map to a fixed set of global capabilities. Task scoped
actions are granted either by a global capability or by the user's own
involvement in the task (assignee, creator or project member).
"""
from django.db.models import Q

from .models import Role

MANAGE_TASKS = 'manage_tasks'
DELETE_TASKS = 'delete_tasks'
MANAGE_USERS = 'manage_users'
INVITE_USERS = 'invite_users'
VIEW_ALL_TASKS = 'view_all_tasks'
VIEW_ANALYTICS = 'view_analytics'
MANAGE_PROJECTS = 'manage_projects'
MANAGE_DEPARTMENTS = 'manage_departments'

VIEW_TASK = 'view_task'
EDIT_TASK = 'edit_task'
CHANGE_STATUS = 'change_status'
LOG_TIME = 'log_time'
COMMENT = 'comment'

ROLE_CAPABILITIES = {
    Role.ADMIN: frozenset({
        MANAGE_TASKS, DELETE_TASKS, MANAGE_USERS, INVITE_USERS,
        VIEW_ALL_TASKS, VIEW_ANALYTICS, MANAGE_PROJECTS, MANAGE_DEPARTMENTS,
    }),
    Role.MANAGEMENT: frozenset({
        MANAGE_TASKS, DELETE_TASKS, INVITE_USERS,
        VIEW_ALL_TASKS, VIEW_ANALYTICS, MANAGE_PROJECTS,
    }),
    Role.EMPLOYEE: frozenset(),
}

# task scoped action -> global capability that grants it on every task
TASK_ACTIONS = {
    VIEW_TASK: VIEW_ALL_TASKS,
    COMMENT: VIEW_ALL_TASKS,
    EDIT_TASK: MANAGE_TASKS,
    CHANGE_STATUS: MANAGE_TASKS,
    LOG_TIME: MANAGE_TASKS,
}

# actions an involved (non-assignee) user may still perform
_OBSERVER_ACTIONS = frozenset({VIEW_TASK, COMMENT})


def _is_active(user):
    return user is not None and getattr(user, 'is_authenticated', False) and user.is_active


def capabilities_for(user):
    if not _is_active(user):
        return frozenset()
    return ROLE_CAPABILITIES.get(user.role, frozenset())


def can(user, action, resource=None):
    """Return True when ``user`` may perform ``action`` on ``resource``.

    ``resource`` is only consulted for task scoped actions; it must be a
    task (anything with ``assignee_id``, ``created_by_id`` and ``project``).
    Inactive and anonymous users can do nothing.
    """
    if not _is_active(user):
        return False
    capabilities = capabilities_for(user)
    if action in capabilities:
        return True

    granting = TASK_ACTIONS.get(action)
    if granting is None:
        return False
    if granting in capabilities:
        return True
    if resource is None:
        return False

    if resource.assignee_id == user.pk:
        return True
    if action in _OBSERVER_ACTIONS:
        if resource.created_by_id == user.pk:
            return True
        return resource.project.has_member(user)
    return False


def visible_tasks(user, queryset):
    """Restrict a task queryset to what ``user`` may view."""
    if not _is_active(user):
        return queryset.none()
    if can(user, VIEW_ALL_TASKS):
        return queryset
    return queryset.filter(
        Q(assignee=user) | Q(created_by=user) | Q(project__members=user)
    ).distinct()
