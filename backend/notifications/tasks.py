"""Celery tasks for notification delivery."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=None)
def deliver_notification_task(self, notification_id: int):
    """
    Deliver one queued notification, rescheduling itself with backoff on failure.

    Retry bookkeeping lives on the Notification row (attempts/max_attempts),
    so the Celery-level retry budget is unlimited.
    """
    from notifications.dispatch import deliver_notification

    retry_in = deliver_notification(notification_id)
    if retry_in is not None:
        raise self.retry(countdown=retry_in)
    return True
