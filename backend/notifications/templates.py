"""
Plain-text templates for booking notifications.

Template data is JSON-serializable (it is stored on the Notification row), so
datetimes arrive as ISO strings and money as integer cents.
"""

import re
from datetime import datetime
from typing import Any, Dict, Tuple

from services.fare_splitting import format_currency

SITE_NAME = "CampusRides"

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
_OTP_RE = re.compile(r"\b\d{6}\b")


def redact_pii(content: str) -> str:
    """Mask emails, phone numbers and 6-digit codes before content reaches the logs."""
    content = _EMAIL_RE.sub("[EMAIL_REDACTED]", content)
    content = _PHONE_RE.sub("[PHONE_REDACTED]", content)
    return _OTP_RE.sub("[CODE_REDACTED]", content)


def format_departure(value) -> str:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%A, %B %d %Y at %H:%M %Z").strip()


def _route(data: Dict[str, Any]) -> str:
    return f"{data.get('origin_text', '')} -> {data.get('dest_text', '')}"


def _booking_authorized(data):
    subject = f"{SITE_NAME}: Booking confirmed - {_route(data)}"
    body = (
        f"Hi {data.get('rider_name', 'Rider')},\n\n"
        f"Your seat request has been confirmed.\n\n"
        f"Route: {_route(data)}\n"
        f"Departure: {format_departure(data.get('depart_at', ''))}\n"
        f"Seats: {data.get('seats', 1)}\n"
        f"Estimated cost: {format_currency(data.get('estimated_cost_cents', 0))}\n"
        f"Trip start code: {data.get('otp_code', '')}\n\n"
        f"Share this code with your driver {data.get('driver_name', '')} at pickup. "
        f"It expires at {format_departure(data.get('code_expires_at', ''))}."
    )
    return subject, body


def _trip_started(data):
    subject = f"{SITE_NAME}: Trip started"
    body = (
        f"{SITE_NAME}: Trip started! {data.get('rider_name', 'Rider')} and "
        f"{data.get('driver_name', 'Driver')} are on their way ({_route(data)}). Safe travels!"
    )
    return subject, body


def _trip_completed(data):
    subject = f"{SITE_NAME}: Trip completed - {_route(data)}"
    body = (
        f"Hi {data.get('recipient_name', '')},\n\n"
        f"Your trip {_route(data)} is complete.\n"
        f"Final share: {format_currency(data.get('final_share_cents', 0))}\n\n"
        f"Please settle the payment with your driver."
    )
    return subject, body


def _booking_cancelled(data):
    subject = f"{SITE_NAME}: Booking cancelled - {_route(data)}"
    lines = [
        f"Hi {data.get('recipient_name', '')},",
        "",
        f"{data.get('cancelled_by_name', 'A participant')} cancelled the booking for {_route(data)} "
        f"departing {format_departure(data.get('depart_at', ''))} ({data.get('seats', 1)} seat(s)).",
    ]
    if data.get("late_cancellation"):
        lines.append("This was a late cancellation; a fee may apply.")
    if data.get("cancelled_by_driver"):
        lines.append("We apologize for the inconvenience. Please search again for an alternative ride.")
    return subject, "\n".join(lines)


def _booking_disputed(data):
    subject = f"{SITE_NAME}: Dispute opened - {_route(data)}"
    body = (
        f"Hi {data.get('recipient_name', '')},\n\n"
        f"{data.get('opened_by_name', 'A participant')} opened a dispute for {_route(data)}.\n\n"
        f"Reason: {data.get('dispute_reason', '')}\n\n"
        f"Our support team will review and contact you within 24-48 hours."
    )
    return subject, body


def _dispute_resolved(data):
    outcome = data.get("outcome", "resolved")
    subject = f"{SITE_NAME}: Dispute {outcome.capitalize()} - {_route(data)}"
    body = (
        f"Hi {data.get('recipient_name', '')},\n\n"
        f"Your dispute has been {outcome}.\n\n"
        f"Original dispute: {data.get('dispute_reason', '')}\n\n"
        f"Resolution: {data.get('resolution', '')}\n\n"
        f"If you have any questions about this resolution, please contact our support team.\n\n"
        f"The {SITE_NAME} Team"
    )
    return subject, body


_RENDERERS = {
    "booking_authorized": _booking_authorized,
    "trip_started": _trip_started,
    "trip_completed": _trip_completed,
    "booking_cancelled": _booking_cancelled,
    "booking_disputed": _booking_disputed,
    "dispute_resolved": _dispute_resolved,
}


def render(notification_type: str, template_data: Dict[str, Any]) -> Tuple[str, str]:
    """Return (subject, body) for a notification type."""
    try:
        renderer = _RENDERERS[notification_type]
    except KeyError:
        raise ValueError(f"Unknown notification type: {notification_type}")
    return renderer(template_data or {})
