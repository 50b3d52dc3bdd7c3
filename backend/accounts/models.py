from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with role selection"""
    RIDER = 'rider'
    DRIVER = 'driver'
    MIXED = 'mixed'

    ROLE_CHOICES = [
        (RIDER, 'Rider'),
        (DRIVER, 'Driver'),
        (MIXED, 'Rider & Driver'),
    ]

    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=RIDER)
    phone_number = models.CharField(max_length=20, blank=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    @property
    def can_ride(self):
        return self.role in (self.RIDER, self.MIXED)

    @property
    def can_drive(self):
        return self.role in (self.DRIVER, self.MIXED)
