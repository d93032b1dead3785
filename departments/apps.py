from django.apps import AppConfig
from django.db.models.signals import post_migrate


def seed_departments(sender, using='default', **kwargs):
    from .models import Department
    Department.objects.db_manager(using).ensure_defaults()


class DepartmentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'departments'

    def ready(self):
        post_migrate.connect(seed_departments, sender=self, dispatch_uid='seed_departments')
