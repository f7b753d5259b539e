# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_STUDENT = "student"
    ROLE_ORGANIZER = "organizer"
    ROLE_CREW = "crew"
    ROLE_ADMIN = "admin"

    ROLE_CHOICES = (
        (ROLE_STUDENT, 'Student'),
        (ROLE_ORGANIZER, 'Organizer'),
        (ROLE_CREW, 'Crew'),
        (ROLE_ADMIN, 'Admin'),
    )

    role = models.CharField(
        max_length=30,
        choices=ROLE_CHOICES,
        default=ROLE_STUDENT
    )

    phone = models.CharField(max_length=20, blank=True, null=True)
    college = models.CharField(max_length=255, blank=True, null=True, help_text="University/College name")
    verified = models.BooleanField(default=False)

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def __str__(self):
        return self.username
