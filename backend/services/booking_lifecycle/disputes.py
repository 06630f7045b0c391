"""
Dispute operations: riders and drivers open them, administrators resolve them.

At most one dispute per booking may be open at a time. The check below gives
the friendly message; the partial unique index on Dispute settles races.
"""

import logging

from django.db import IntegrityError, transaction

from bookings.models import Booking, Dispute
from notifications.dispatch import notify_parties
from services.exceptions import (
    DisputeAlreadyOpenError,
    DisputeAlreadyResolvedError,
    DisputeNotFoundError,
    FieldValidationError,
    InvalidTransitionError,
    NotAuthorizedError,
)
from services.results import ServiceResult, service_operation
from .bookings import _booking_template_data, _get_booking_for_update

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10
RESOLUTION_OUTCOMES = (Dispute.STATUS_RESOLVED, Dispute.STATUS_REJECTED)


@service_operation("Failed to open dispute")
@transaction.atomic
def open_dispute(user, booking_id, reason: str) -> ServiceResult:
    """
    Open a dispute against a completed or cancelled booking and flag it `disputed`.

    Cancelled bookings are disputable so a rider can contest a late-cancellation fee.

    Args:
        user: Rider or driver of the booking
        booking_id: Booking being disputed
        reason: Free text, at least 10 characters

    Returns:
        ServiceResult with the created dispute
    """
    reason = (reason or "").strip()
    if len(reason) < MIN_TEXT_LENGTH:
        raise FieldValidationError(
            "Invalid dispute request",
            {"reason": f"Dispute reason must be at least {MIN_TEXT_LENGTH} characters"},
        )

    booking = _get_booking_for_update(booking_id)

    is_rider = booking.rider_id == user.id
    if not booking.is_participant(user):
        raise NotAuthorizedError("You are not authorized to dispute this booking")

    if booking.disputes.filter(status=Dispute.STATUS_OPEN).exists():
        raise DisputeAlreadyOpenError("A dispute is already open for this booking")

    if booking.status not in Booking.DISPUTABLE_STATUSES:
        raise InvalidTransitionError("This booking cannot be disputed in its current state")

    try:
        with transaction.atomic():
            dispute = Dispute.objects.create(
                booking=booking,
                opened_by=user,
                reason=reason,
                booking_status_at_open=booking.status,
            )
    except IntegrityError:
        raise DisputeAlreadyOpenError("A dispute is already open for this booking")

    booking.status = Booking.STATUS_DISPUTED
    booking.save(update_fields=["status"])

    logger.info("Dispute %s opened on booking %s by user %s", dispute.id, booking.id, user.id)

    template_data = {
        **_booking_template_data(booking),
        "opened_by_name": user.display_name,
        "dispute_reason": reason,
        "opened_by_rider": is_rider,
    }
    transaction.on_commit(
        lambda: notify_parties(booking, "booking_disputed", template_data, exclude_user_id=user.id)
    )

    return ServiceResult.ok(
        "Dispute opened successfully. Our support team will review and contact you within 24-48 hours.",
        booking=booking,
        dispute=dispute,
        extra={"dispute_id": dispute.id},
    )


@service_operation("Failed to resolve dispute")
@transaction.atomic
def resolve_dispute(user, dispute_id, outcome: str, resolution: str) -> ServiceResult:
    """
    Close an open dispute as `resolved` or `rejected` (administrators only).

    A resolved dispute returns the booking to the status it had when the dispute
    was opened; a rejected one leaves the booking `disputed`.
    """
    if not user.is_staff:
        raise NotAuthorizedError("Only administrators can resolve disputes")

    resolution = (resolution or "").strip()
    errors = {}
    if outcome not in RESOLUTION_OUTCOMES:
        errors["status"] = "Outcome must be 'resolved' or 'rejected'"
    if len(resolution) < MIN_TEXT_LENGTH:
        errors["resolution"] = f"Resolution must be at least {MIN_TEXT_LENGTH} characters"
    if errors:
        raise FieldValidationError("Invalid resolution data", errors)

    try:
        dispute = (
            Dispute.objects.select_for_update()
            .select_related("booking", "booking__ride", "booking__ride__driver", "booking__rider")
            .get(id=dispute_id)
        )
    except (Dispute.DoesNotExist, ValueError):
        raise DisputeNotFoundError("Dispute not found")

    if dispute.status != Dispute.STATUS_OPEN:
        raise DisputeAlreadyResolvedError("Dispute is already resolved")

    dispute.status = outcome
    dispute.resolution = resolution
    dispute.resolved_by = user
    dispute.save(update_fields=["status", "resolution", "resolved_by", "updated_at"])

    booking = dispute.booking
    if outcome == Dispute.STATUS_RESOLVED:
        booking.status = dispute.booking_status_at_open
        booking.save(update_fields=["status"])

    logger.info("Dispute %s %s by admin %s", dispute.id, outcome, user.id)

    template_data = {
        **_booking_template_data(booking),
        "outcome": outcome,
        "dispute_reason": dispute.reason,
        "resolution": resolution,
    }
    transaction.on_commit(lambda: notify_parties(booking, "dispute_resolved", template_data))

    return ServiceResult.ok(
        f"Dispute {outcome} successfully",
        booking=booking,
        dispute=dispute,
    )


def list_disputes(status: str = None):
    """Disputes for the admin dashboard, newest first."""
    queryset = Dispute.objects.select_related(
        "booking", "booking__ride", "booking__rider", "opened_by"
    )
    if status:
        queryset = queryset.filter(status=status)
    return queryset
