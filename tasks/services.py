# taskcrm/tasks/services.py
"""Task lifecycle commands.

Status changes are deliberately permissive: any status may follow any other
(a finished task can be reopened). What every transition shares lives in
:meth:`TaskLifecycleService.set_status`: it stamps ``updated_at``, stamps
``completed_at`` when entering ``done``, asks reviewers to look at work an
employee sends to review, and records the change in the activity log.

Commands return the affected record, or ``None`` when there was nothing to
do (empty text, unchanged status, record gone).
"""
import logging
import re

from django.db import transaction

from accounts.models import Role
from notifications.models import NotificationType
from notifications.services import NotificationDispatcher
from .models import TaskStatus
from .signals import comment_added, task_status_changed
from .store import TaskStore

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r'@(\w+)')


def parse_mentions(content):
    return MENTION_PATTERN.findall(content or '')


class TaskLifecycleService:
    def __init__(self, store=None, dispatcher=None):
        self.store = store or TaskStore()
        self.dispatcher = dispatcher or NotificationDispatcher()

    # tasks

    def create_task(self, context, **fields):
        title = (fields.pop('title', '') or '').strip()
        if not title:
            return None
        dependencies = fields.pop('dependencies', None)
        status = fields.setdefault('status', TaskStatus.TODO)
        if status not in TaskStatus.values:
            raise ValueError(f"Unknown task status: {status!r}")
        if status == TaskStatus.DONE:
            fields['completed_at'] = context.now

        task = self.store.tasks.insert(
            title=title,
            created_by=context.actor,
            last_modified_by=context.actor,
            created_at=context.now,
            updated_at=context.now,
            **fields
        )
        if dependencies:
            task.dependencies.set(dependencies)
        logger.info(f"Task {task.pk} created by user {context.actor.pk}")
        self._notify_assignment(task, context)
        return task

    def update_task(self, task, context, **changes):
        """Apply field changes; a ``status`` change goes through :meth:`set_status`."""
        new_status = changes.pop('status', None)
        dependencies = changes.pop('dependencies', None)
        if 'title' in changes and not (changes['title'] or '').strip():
            changes.pop('title')

        with transaction.atomic():
            current = self.store.tasks.get(task.pk, for_update=True)
            if current is None:
                return None
            previous_assignee_id = current.assignee_id
            for field, value in changes.items():
                setattr(current, field, value)
            current.updated_at = context.now
            current.last_modified_by = context.actor
            current.save()
            if dependencies is not None:
                current.dependencies.set(dependencies)

        if current.assignee_id and current.assignee_id != previous_assignee_id:
            self._notify_assignment(current, context)
        if new_status is not None:
            current = self.set_status(current, new_status, context) or current
        return current

    def set_status(self, task, new_status, context):
        if new_status not in TaskStatus.values:
            raise ValueError(f"Unknown task status: {new_status!r}")

        with transaction.atomic():
            current = self.store.tasks.get(task.pk, for_update=True)
            if current is None:
                return None
            old_status = current.status
            if old_status == new_status:
                return None
            current.status = new_status
            current.updated_at = context.now
            if new_status == TaskStatus.DONE:
                current.completed_at = context.now
            current.last_modified_by = context.actor
            current.save(update_fields=['status', 'updated_at', 'completed_at', 'last_modified_by'])

        logger.info(f"Task {current.pk} moved {old_status} -> {new_status} by user {context.actor.pk}")
        task_status_changed.send(
            sender=current.__class__,
            instance=current,
            old_status=old_status,
            new_status=new_status,
            user=context.actor,
            timestamp=context.now,
        )
        self._notify_status_change(current, old_status, new_status, context)
        return current

    def delete_task(self, task, context):
        deleted = self.store.delete_task(task.pk)
        if deleted:
            logger.info(f"Task {task.pk} deleted by user {context.actor.pk}")
        return deleted

    # subtasks

    def add_subtask(self, task, context, title, assignee=None, due_date=None):
        title = (title or '').strip()
        if not title:
            return None
        subtask = self.store.subtasks.insert(task=task, title=title, assignee=assignee, due_date=due_date)
        self.store.touch_task(task.pk, context.now)
        return subtask

    def toggle_subtask(self, task, subtask_id, context):
        subtask = self.store.subtasks.list(task=task, pk=subtask_id).first()
        if subtask is None:
            return None
        subtask.completed = not subtask.completed
        subtask.save(update_fields=['completed'])
        self.store.touch_task(task.pk, context.now)
        return subtask

    # comments

    def add_comment(self, task, context, content):
        if not content or not content.strip():
            return None
        mentions = parse_mentions(content)
        comment = self.store.comments.insert(
            task=task,
            author=context.actor,
            content=content,
            mentions=mentions,
            created_at=context.now,
            updated_at=context.now,
        )
        self.store.touch_task(task.pk, context.now)
        comment_added.send(sender=comment.__class__, instance=comment, task=task, user=context.actor)

        for recipient in self._resolve_mentions(mentions, exclude=context.actor):
            self.dispatcher.notify(
                recipient,
                NotificationType.COMMENT_MENTION,
                'You were mentioned',
                f'{context.actor.name} mentioned you on "{task.title}"',
                task=task,
                from_user=context.actor,
                now=context.now,
            )
        return comment

    # notifications

    def _resolve_mentions(self, mentions, exclude=None):
        handles = {m.lower() for m in mentions}
        if not handles:
            return []
        recipients = []
        for user in self.store.users.list(is_active=True):
            if exclude is not None and user.pk == exclude.pk:
                continue
            if user.mention_handles & handles:
                recipients.append(user)
        return recipients

    def _notify_assignment(self, task, context):
        assignee = task.assignee
        if assignee is None or assignee.pk == context.actor.pk:
            return
        self.dispatcher.notify(
            assignee,
            NotificationType.TASK_ASSIGNED,
            'New Task Assigned',
            f'{context.actor.name} assigned you "{task.title}"',
            task=task,
            from_user=context.actor,
            now=context.now,
        )

    def _notify_status_change(self, task, old_status, new_status, context):
        actor = context.actor
        if actor.role == Role.EMPLOYEE and new_status == TaskStatus.REVIEW:
            for reviewer in self.store.users.model.objects.active_reviewers():
                self.dispatcher.notify(
                    reviewer,
                    NotificationType.REVIEW_REQUEST,
                    'Task Ready for Review',
                    f'{actor.name} marked "{task.title}" as ready for review',
                    task=task,
                    from_user=actor,
                    now=context.now,
                )

        assignee = task.assignee
        if assignee is not None and assignee.pk != actor.pk:
            self.dispatcher.notify(
                assignee,
                NotificationType.STATUS_CHANGE,
                'Task Status Updated',
                f'{actor.name} moved "{task.title}" from '
                f'{TaskStatus(old_status).label} to {TaskStatus(new_status).label}',
                task=task,
                from_user=actor,
                now=context.now,
            )
