# taskcrm/activity/signals.py
from django.db.models.signals import post_save, pre_save, post_delete, m2m_changed
from django.dispatch import receiver

from projects.models import Project
from tasks.models import FileAttachment, Task
from tasks.signals import comment_added, task_status_changed
from .middleware import get_current_user
from .models import ActivityLog

# Fields whose changes are not logged as generic updates.
# Task status has its own entries through task_status_changed.
IGNORED_FIELDS = {
    'Task': ['status', 'created_at', 'updated_at', 'completed_at', 'last_modified_by'],
    'Project': ['created_at', 'updated_at', 'last_modified_by'],
}

TRACKED_MODELS = (Task, Project)


def get_field_diff(old_instance, new_instance):
    diff = {}
    ignored = IGNORED_FIELDS.get(new_instance.__class__.__name__, [])
    for field in new_instance._meta.concrete_fields:
        if field.name in ignored:
            continue
        old_value = getattr(old_instance, field.attname, None)
        new_value = getattr(new_instance, field.attname, None)
        if old_value != new_value:
            diff[field.name] = {
                'from': str(old_value),
                'to': str(new_value)
            }
    return diff


def get_project_id(instance):
    if isinstance(instance, Project):
        return instance.pk
    if getattr(instance, 'project_id', None):
        return instance.project_id
    task = getattr(instance, 'task', None)
    if task is not None:
        return task.project_id
    return None


def acting_user(instance):
    return getattr(instance, 'last_modified_by', None) or get_current_user()


# Generic create / update / delete tracking

def capture_pre_save_state(sender, instance, **kwargs):
    instance._pre_save_state = sender.objects.filter(pk=instance.pk).first() if instance.pk else None


def log_save(sender, instance, created, **kwargs):
    changes = {}
    old_instance = getattr(instance, '_pre_save_state', None)
    if not created and old_instance is not None:
        changes = get_field_diff(old_instance, instance)

    # Skip logging if no meaningful changes
    if not created and not changes:
        return

    ActivityLog.objects.create(
        user=acting_user(instance),
        action='create' if created else 'update',
        content_object=instance,
        to_state=str(instance),
        changes=changes or None,
        project_id=get_project_id(instance),
    )


def log_delete(sender, instance, **kwargs):
    ActivityLog.objects.create(
        user=get_current_user(),
        action='delete',
        content_object=instance,
        from_state=str(instance),
        to_state='Deleted',
        project_id=get_project_id(instance),
    )


for model in TRACKED_MODELS:
    pre_save.connect(capture_pre_save_state, sender=model, dispatch_uid=f'activity_pre_save_{model.__name__}')
    post_save.connect(log_save, sender=model, dispatch_uid=f'activity_post_save_{model.__name__}')
    post_delete.connect(log_delete, sender=model, dispatch_uid=f'activity_post_delete_{model.__name__}')


@receiver(post_save, sender=FileAttachment)
def log_file_upload(sender, instance, created, **kwargs):
    if not created:
        return
    ActivityLog.objects.create(
        user=instance.uploaded_by,
        action='file_upload',
        content_object=instance.task,
        comment_text=instance.original_filename,
        changes={'size': instance.size, 'content_type': instance.content_type},
        project_id=get_project_id(instance),
    )


@receiver(m2m_changed, sender=Task.dependencies.through)
def log_task_dependencies(sender, instance, action, pk_set, **kwargs):
    """Log task dependency changes"""
    if action not in ['post_add', 'post_remove', 'post_clear']:
        return

    verb = {
        'post_add': 'added',
        'post_remove': 'removed',
        'post_clear': 'cleared'
    }[action]

    ActivityLog.objects.create(
        user=acting_user(instance),
        action='update',
        content_object=instance,
        comment_text=f"Dependencies {verb} for task",
        changes={'dependencies': sorted(pk_set)} if pk_set else None,
        project_id=get_project_id(instance),
    )


@receiver(task_status_changed)
def log_status_change(sender, instance, old_status, new_status, user=None, **kwargs):
    ActivityLog.objects.create(
        user=user,
        action='status_change',
        content_object=instance,
        from_state=old_status,
        to_state=new_status,
        project_id=instance.project_id,
    )


@receiver(comment_added)
def log_comment(sender, instance, task, user=None, **kwargs):
    ActivityLog.objects.create(
        user=user,
        action='comment',
        content_object=task,
        comment_text=instance.content,
        project_id=task.project_id,
    )
