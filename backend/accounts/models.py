from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Student account; the same user may post rides and book seats."""

    phone_number = models.CharField(max_length=20, blank=True)
    university = models.CharField(max_length=120, blank=True)

    # Set by the .edu verification flow; only verified students may post rides
    is_verified_student = models.BooleanField(default=False)
    completed_rides = models.IntegerField(default=0)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.username

    @property
    def display_name(self):
        return self.get_full_name() or self.username
