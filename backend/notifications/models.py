from django.db import models
from django.conf import settings


class Notification(models.Model):
    """Outbox row for one email/SMS message; delivered asynchronously by Celery."""

    TYPE_CHOICES = [
        ('booking_authorized', 'Booking Authorized'),
        ('trip_started', 'Trip Started'),
        ('trip_completed', 'Trip Completed'),
        ('booking_cancelled', 'Booking Cancelled'),
        ('booking_disputed', 'Booking Disputed'),
        ('dispute_resolved', 'Dispute Resolved'),
    ]

    CHANNEL_EMAIL = 'email'
    CHANNEL_SMS = 'sms'
    CHANNEL_CHOICES = [
        (CHANNEL_EMAIL, 'Email'),
        (CHANNEL_SMS, 'SMS'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_SENT = 'sent'
    STATUS_RETRYING = 'retrying'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_RETRYING, 'Retrying'),
        (STATUS_FAILED, 'Failed'),
    ]

    notification_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES)

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    booking = models.ForeignKey(
        'bookings.Booking',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )

    template_data = models.JSONField(default=dict, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    attempts = models.PositiveSmallIntegerField(default=0)
    max_attempts = models.PositiveSmallIntegerField(default=3)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']

    def __str__(self):
        return f"Notification #{self.id} - {self.notification_type} via {self.channel} -> {self.recipient_id} ({self.status})"
