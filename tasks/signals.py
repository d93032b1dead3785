from django.dispatch import Signal

# kwargs: instance, old_status, new_status, user, timestamp
task_status_changed = Signal()

# kwargs: instance (the comment), task, user
comment_added = Signal()
