from django.db import models
from django.conf import settings

from rides.models import Ride


class Booking(models.Model):
    """One rider's claim on seats of a ride."""

    STATUS_OPEN = 'open'
    STATUS_AUTHORIZED = 'authorized'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_DISPUTED = 'disputed'

    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_AUTHORIZED, 'Authorized'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_DISPUTED, 'Disputed'),
    ]

    ACTIVE_STATUSES = (STATUS_OPEN, STATUS_AUTHORIZED, STATUS_IN_PROGRESS)
    CANCELLABLE_STATUSES = (STATUS_OPEN, STATUS_AUTHORIZED)
    DISPUTABLE_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='bookings'
    )

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bookings'
    )

    seats = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)

    # Money (integer cents). final_share_cents stays NULL until completion.
    auth_estimate_cents = models.PositiveIntegerField()
    final_share_cents = models.PositiveIntegerField(null=True, blank=True)

    # Trip-start code
    trip_start_code = models.CharField(max_length=6, null=True, blank=True)
    code_expires_at = models.DateTimeField(null=True, blank=True)

    # Cancellation
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    is_late_cancellation = models.BooleanField(default=False)
    etiquette_payment_due = models.BooleanField(default=False)

    # Off-platform payment acknowledgements
    paid_by_rider = models.BooleanField(default=False)
    confirmed_by_driver = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    trip_started_at = models.DateTimeField(null=True, blank=True)
    trip_completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Booking #{self.id} - Ride {self.ride_id} - {self.rider} - {self.status}"

    def is_participant(self, user) -> bool:
        return user.id in (self.rider_id, self.ride.driver_id)


class Dispute(models.Model):
    """A complaint raised against a booking, resolved by an administrator."""

    STATUS_OPEN = 'open'
    STATUS_RESOLVED = 'resolved'
    STATUS_REJECTED = 'rejected'

    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_RESOLVED, 'Resolved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name='disputes'
    )

    opened_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='opened_disputes'
    )

    reason = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    resolution = models.TextField(null=True, blank=True)
    booking_status_at_open = models.CharField(max_length=20, choices=Booking.STATUS_CHOICES)

    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'disputes'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['booking'],
                condition=models.Q(status='open'),
                name='unique_open_dispute_per_booking'
            )
        ]

    def __str__(self):
        return f"Dispute #{self.id} - Booking {self.booking_id} - {self.status}"
