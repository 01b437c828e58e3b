from django.contrib.auth.models import AbstractUser, UserManager as BaseUserManager
from django.db import models


class Role(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    PROCTOR = 'proctor', 'Proctor'
    TEACHER = 'teacher', 'Teacher'
    STUDENT = 'student', 'Student'


class UserManager(BaseUserManager):

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', Role.ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.STUDENT)

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(fields=['role'], name='user_role_idx'),
        ]

    def __str__(self):
        return f"{self.username} - {self.role}"

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}".strip() or self.username
