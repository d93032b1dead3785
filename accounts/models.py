# taskcrm/accounts/models.py
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class Role(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    MANAGEMENT = 'management', 'Management'
    EMPLOYEE = 'employee', 'Employee'


class CustomUserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', Role.ADMIN)
        return self.create_user(email, password, **extra_fields)

    def active_reviewers(self):
        """Active users who receive review requests."""
        return self.filter(is_active=True, role__in=[Role.MANAGEMENT, Role.ADMIN])


class CustomUser(AbstractUser):
    email = models.EmailField(unique=True)
    username = None
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.EMPLOYEE)
    department = models.CharField(max_length=50, blank=True, default='')
    position = models.CharField(max_length=100, blank=True, default='')
    REQUIRED_FIELDS = ['first_name', 'last_name']
    USERNAME_FIELD = 'email'

    objects = CustomUserManager()

    class Meta:
        ordering = ['first_name', 'last_name', 'email']

    @property
    def name(self):
        return self.get_full_name() or self.email

    @property
    def mention_handles(self):
        """Lower-cased handles an ``@mention`` in a comment can resolve to."""
        handles = {self.email.split('@', 1)[0].lower()}
        if self.first_name:
            handles.add(self.first_name.lower())
        return handles

    def __str__(self):
        return self.email
