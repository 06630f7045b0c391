from django.db import models
from django.conf import settings


class Ride(models.Model):
    """A driver's offered trip with a fixed number of seats and a shared total cost."""

    STATUS_OPEN = 'open'
    STATUS_FULL = 'full'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_FULL, 'Full'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='offered_rides'
    )

    # Origin
    origin_text = models.CharField(max_length=255)
    origin_lat = models.DecimalField(max_digits=9, decimal_places=6)
    origin_lng = models.DecimalField(max_digits=9, decimal_places=6)

    # Destination
    dest_text = models.CharField(max_length=255)
    dest_lat = models.DecimalField(max_digits=9, decimal_places=6)
    dest_lng = models.DecimalField(max_digits=9, decimal_places=6)

    depart_at = models.DateTimeField()

    # Seats & pricing (integer cents only)
    seats_total = models.PositiveSmallIntegerField()
    seats_available = models.PositiveSmallIntegerField()
    total_cost_cents = models.PositiveIntegerField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    notes = models.TextField(blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'rides'
        ordering = ['depart_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(seats_available__lte=models.F('seats_total')),
                name='ride_seats_available_lte_total'
            )
        ]

    def __str__(self):
        return f"Ride #{self.id} - {self.origin_text} -> {self.dest_text} - {self.status}"

    @property
    def seats_occupied(self):
        return self.seats_total - self.seats_available
