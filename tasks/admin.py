from django.contrib import admin

from .models import Task, Subtask, Comment, FileAttachment, TimeEntry
admin.site.register(Task)
admin.site.register(Subtask)
admin.site.register(Comment)
admin.site.register(FileAttachment)
admin.site.register(TimeEntry)
