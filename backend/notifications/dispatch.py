"""
Notification dispatch for booking lifecycle events.

Callers hand over (recipient, channel, template data); this module:
- Writes a Notification outbox row and queues Celery delivery
- Pushes an in-app copy to the recipient's WebSocket group: user_<id>
- Delivers queued rows (email via Django mail, SMS via the configured backend)

Dispatch never raises: a failure to notify must not undo the state change that
triggered it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from realtime.consumers.base import personal_group

from .backends import get_sms_backend
from .models import Notification
from .templates import render

logger = logging.getLogger(__name__)


# ---------------------- Realtime push ----------------------

def push_user_event(
    user_id: int | None,
    event_type: str,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """
    Send a booking event to a user's personal group: user_<user_id>

    Returns:
        True if sent, False if there is no user or no channel layer
    """
    if not user_id:
        return False

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    payload = {
        "type": "booking_event",
        "event": event_type,
        **(extra or {}),
    }
    if message:
        payload["message"] = message

    group = personal_group(user_id)
    logger.debug("WS -> %s: %s", group, event_type)
    async_to_sync(channel_layer.group_send)(group, payload)
    return True


# ---------------------- Outbox ----------------------

def notify(
    recipient,
    channel: str,
    notification_type: str,
    template_data: Dict[str, Any],
    booking=None,
) -> Optional[Notification]:
    """
    Queue one notification. Fire-and-forget: errors are logged, never raised.
    """
    from .tasks import deliver_notification_task

    try:
        notification = Notification.objects.create(
            notification_type=notification_type,
            channel=channel,
            recipient=recipient,
            booking=booking,
            template_data=template_data,
            max_attempts=settings.RIDESHARE["NOTIFICATION_MAX_ATTEMPTS"],
        )
    except Exception:
        logger.exception("Failed to record %s notification for user %s", notification_type, recipient.id)
        return None

    try:
        deliver_notification_task.delay(notification.id)
    except Exception:
        # Row stays pending; cleanup_notifications --requeue picks it up
        logger.exception("Failed to queue delivery of notification %s", notification.id)

    try:
        push_user_event(
            recipient.id,
            notification_type,
            extra={"booking_id": getattr(booking, "id", None)},
        )
    except Exception:
        logger.exception("Failed to push %s event to user %s", notification_type, recipient.id)

    return notification


def notify_parties(
    booking,
    notification_type: str,
    template_data: Dict[str, Any],
    channel: str = Notification.CHANNEL_EMAIL,
    exclude_user_id: int | None = None,
) -> int:
    """Notify the rider and the driver of a booking, skipping `exclude_user_id`."""
    sent = 0
    for user in (booking.rider, booking.ride.driver):
        if user.id == exclude_user_id:
            continue
        data = {**template_data, "recipient_name": user.display_name}
        if notify(user, channel, notification_type, data, booking=booking) is not None:
            sent += 1
    return sent


# ---------------------- Delivery ----------------------

def _send(notification: Notification) -> None:
    subject, body = render(notification.notification_type, notification.template_data)
    recipient = notification.recipient

    if notification.channel == Notification.CHANNEL_EMAIL:
        if not recipient.email:
            raise ValueError(f"User {recipient.id} has no email address")
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [recipient.email])
    else:
        if not recipient.phone_number:
            raise ValueError(f"User {recipient.id} has no phone number")
        get_sms_backend().send(recipient.phone_number, body)


def deliver_notification(notification_id: int) -> Optional[int]:
    """
    Attempt delivery of one queued notification.

    Returns:
        Seconds to wait before retrying, or None when no retry is needed
        (sent, permanently failed, or nothing to deliver).
    """
    try:
        notification = Notification.objects.select_related("recipient").get(id=notification_id)
    except Notification.DoesNotExist:
        logger.warning("Notification %s not found for delivery", notification_id)
        return None

    if notification.status in (Notification.STATUS_SENT, Notification.STATUS_FAILED):
        logger.info("Notification %s already %s", notification_id, notification.status)
        return None

    notification.attempts += 1

    try:
        _send(notification)
    except Exception as e:
        notification.error_message = str(e)
        retry_delays = settings.RIDESHARE["NOTIFICATION_RETRY_DELAYS"]

        if notification.attempts < notification.max_attempts:
            notification.status = Notification.STATUS_RETRYING
            notification.save(update_fields=["attempts", "status", "error_message"])
            delay = retry_delays[min(notification.attempts, len(retry_delays)) - 1]
            logger.warning(
                "Notification %s failed (attempt %s/%s), retrying in %ss: %s",
                notification_id, notification.attempts, notification.max_attempts, delay, e,
            )
            return delay

        notification.status = Notification.STATUS_FAILED
        notification.failed_at = timezone.now()
        notification.save(update_fields=["attempts", "status", "error_message", "failed_at"])
        logger.error("Notification %s permanently failed after %s attempts: %s", notification_id, notification.attempts, e)
        return None

    notification.status = Notification.STATUS_SENT
    notification.sent_at = timezone.now()
    notification.error_message = ""
    notification.save(update_fields=["attempts", "status", "sent_at", "error_message"])
    logger.info("Notification %s sent via %s", notification_id, notification.channel)
    return None
