# taskcrm/tasks/store.py
"""ORM backed storage collaborator.

Services talk to records only through a :class:`TaskStore`; each collection
offers get / list / insert / update / delete by id. Lookups that miss return
``None`` (or ``False`` for deletes) so callers decide what "not found" means.

Deletes of tasks, projects and users cascade as an explicit, ordered
sequence of deletes. There is no surrounding transaction: a failure half way
leaves the earlier deletes in place.
"""
import logging

from django.contrib.auth import get_user_model

from notifications.models import Notification
from projects.models import Project
from .models import Comment, FileAttachment, Subtask, Task, TimeEntry

logger = logging.getLogger(__name__)


class Collection:
    def __init__(self, model):
        self.model = model

    def get(self, pk, for_update=False):
        queryset = self.model.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(pk=pk).first()

    def list(self, **filters):
        return self.model.objects.filter(**filters)

    def insert(self, **fields):
        return self.model.objects.create(**fields)

    def update(self, pk, **changes):
        instance = self.get(pk)
        if instance is None:
            return None
        for field, value in changes.items():
            setattr(instance, field, value)
        instance.save()
        return instance

    def delete(self, pk):
        deleted, _ = self.model.objects.filter(pk=pk).delete()
        return deleted > 0


class TaskStore:
    def __init__(self):
        self.users = Collection(get_user_model())
        self.projects = Collection(Project)
        self.tasks = Collection(Task)
        self.subtasks = Collection(Subtask)
        self.comments = Collection(Comment)
        self.attachments = Collection(FileAttachment)
        self.time_entries = Collection(TimeEntry)
        self.notifications = Collection(Notification)

    def touch_task(self, task_id, now):
        Task.objects.filter(pk=task_id).update(updated_at=now)

    def delete_task(self, task_id):
        task = self.tasks.get(task_id)
        if task is None:
            return False
        self._purge_task(task)
        return True

    def delete_project(self, project_id):
        project = self.projects.get(project_id)
        if project is None:
            return False
        tasks = list(project.tasks.all())
        for task in tasks:
            self._purge_task(task)
        project.delete()
        logger.info(f"Deleted project {project_id} and {len(tasks)} tasks")
        return True

    def delete_user(self, user_id):
        user = self.users.get(user_id)
        if user is None:
            return False
        tasks = list(Task.objects.filter(assignee=user))
        for task in tasks:
            self._purge_task(task)
        self._purge_attachments(FileAttachment.objects.filter(uploaded_by=user))
        Comment.objects.filter(author=user).delete()
        TimeEntry.objects.filter(user=user).delete()
        Notification.objects.filter(user=user).delete()
        user.delete()
        logger.info(f"Deleted user {user_id} with {len(tasks)} assigned tasks")
        return True

    def _purge_attachments(self, attachments):
        for attachment in attachments:
            attachment.file.delete(save=False)
            attachment.delete()

    def _purge_task(self, task):
        self._purge_attachments(FileAttachment.objects.filter(task=task))
        Comment.objects.filter(task=task).delete()
        TimeEntry.objects.filter(task=task).delete()
        Subtask.objects.filter(task=task).delete()
        task_id = task.pk
        task.delete()
        logger.info(f"Deleted task {task_id}")
