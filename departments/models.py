# taskcrm/departments/models.py
from django.db import models

DEFAULT_DEPARTMENTS = [
    ('hr', 'Human Resources', '#ec4899'),
    ('operations', 'Operations', '#10b981'),
    ('call_center', 'Call Center', '#f59e0b'),
    ('finance', 'Finance', '#3b82f6'),
    ('it', 'IT', '#8b5cf6'),
    ('management', 'Management', '#6366f1'),
]


class DepartmentManager(models.Manager):
    def ensure_defaults(self):
        for code, name, color in DEFAULT_DEPARTMENTS:
            self.get_or_create(code=code, defaults={'name': name, 'color': color})


class Department(models.Model):
    code = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    color = models.CharField(max_length=7, default="#6366f1")

    objects = DepartmentManager()

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    @classmethod
    def label_for(cls, code):
        department = cls.objects.filter(code=code).first()
        return department.name if department else code
