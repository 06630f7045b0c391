"""
Booking lifecycle operations.

This module contains the business logic for a rider's booking:
    - Booking seats (authorized, holding a conservative estimate)
    - Starting the trip with the one-time code
    - Cancelling before the trip starts
    - Recording off-platform payment acknowledgements

Every public function returns a ServiceResult; expected failures never escape
as exceptions.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from bookings.models import Booking
from notifications.dispatch import notify, notify_parties
from notifications.models import Notification
from rides.models import Ride
from services.exceptions import (
    ActiveBookingExistsError,
    BookingNotFoundError,
    FieldValidationError,
    InsufficientSeatsError,
    InvalidTransitionError,
    NotAuthorizedError,
    OwnRideBookingError,
    RideNotAvailableError,
    RideNotFoundError,
)
from services.fare_splitting import MAX_RIDERS, estimate_booking_share
from services.results import ServiceResult, service_operation
from .trip_codes import generate_trip_code, normalize_trip_code, trip_code_expiry, verify_trip_code

logger = logging.getLogger(__name__)


def _get_booking_for_update(booking_id) -> Booking:
    try:
        return (
            Booking.objects.select_for_update()
            .select_related("ride", "ride__driver", "rider")
            .get(id=booking_id)
        )
    except (Booking.DoesNotExist, ValueError):
        raise BookingNotFoundError("Booking not found")


def _booking_template_data(booking: Booking) -> dict:
    ride = booking.ride
    return {
        "rider_name": booking.rider.display_name,
        "driver_name": ride.driver.display_name,
        "origin_text": ride.origin_text,
        "dest_text": ride.dest_text,
        "depart_at": ride.depart_at.isoformat(),
        "seats": booking.seats,
    }


# ===================== Booking =====================

@service_operation("Failed to book ride")
@transaction.atomic
def create_booking(user, ride_id, seats: int = 1, *, now=None) -> ServiceResult:
    """
    Reserve seats on an open ride and move the booking straight to `authorized`.

    The seat decrement and the booking insert share one transaction; the ride
    row is locked and the decrement is conditional on enough seats remaining.

    Args:
        user: Authenticated rider
        ride_id: ID of the ride to book
        seats: Number of seats requested (1-8)
        now: Clock override for tests

    Returns:
        ServiceResult with the new booking
    """
    now = now or timezone.now()

    if isinstance(seats, bool) or not isinstance(seats, int) or not 1 <= seats <= MAX_RIDERS:
        raise FieldValidationError(
            "Invalid booking request",
            {"seats": f"Seats must be between 1 and {MAX_RIDERS}"},
        )

    try:
        ride = Ride.objects.select_for_update().select_related("driver").get(id=ride_id)
    except (Ride.DoesNotExist, ValueError):
        raise RideNotFoundError("Ride not found")

    if ride.driver_id == user.id:
        raise OwnRideBookingError("You cannot book your own ride")

    if ride.status != Ride.STATUS_OPEN:
        raise RideNotAvailableError("This ride is no longer available for booking")

    if ride.seats_available < seats:
        raise InsufficientSeatsError(
            f"Only {ride.seats_available} seats available, but you requested {seats}"
        )

    if Booking.objects.filter(ride=ride, rider=user, status__in=Booking.ACTIVE_STATUSES).exists():
        raise ActiveBookingExistsError("You already have an active booking for this ride")

    estimate = estimate_booking_share(ride.total_cost_cents, ride.seats_occupied, seats)

    # Guarded decrement: a concurrent booking that got here first makes this a no-op
    updated = Ride.objects.filter(
        id=ride.id,
        status=Ride.STATUS_OPEN,
        seats_available__gte=seats,
    ).update(seats_available=F("seats_available") - seats)

    ride.refresh_from_db(fields=["seats_available", "status"])
    if not updated:
        raise InsufficientSeatsError(
            f"Only {ride.seats_available} seats available, but you requested {seats}"
        )

    if ride.seats_available == 0:
        ride.status = Ride.STATUS_FULL
        ride.save(update_fields=["status"])

    code = generate_trip_code()
    booking = Booking.objects.create(
        ride=ride,
        rider=user,
        seats=seats,
        status=Booking.STATUS_AUTHORIZED,
        auth_estimate_cents=estimate,
        trip_start_code=code,
        code_expires_at=trip_code_expiry(ride.depart_at, now),
    )

    logger.info(
        "Booking %s authorized: ride=%s rider=%s seats=%s estimate=%s",
        booking.id, ride.id, user.id, seats, estimate,
    )

    template_data = {
        **_booking_template_data(booking),
        "estimated_cost_cents": estimate,
        "otp_code": code,
        "code_expires_at": booking.code_expires_at.isoformat(),
    }
    transaction.on_commit(
        lambda: notify(user, Notification.CHANNEL_EMAIL, "booking_authorized", template_data, booking=booking)
    )

    return ServiceResult.ok(
        "Ride booked successfully! Check your email for the trip start code.",
        booking=booking,
        ride=ride,
        extra={"booking_id": booking.id, "auth_estimate_cents": estimate},
    )


# ===================== Trip start =====================

@service_operation("Failed to start trip")
@transaction.atomic
def start_trip(user, booking_id, code, *, now=None) -> ServiceResult:
    """
    Move an authorized booking to `in_progress` after verifying the pickup code.

    The code is cleared on success so it cannot be replayed; starting an
    already started trip is rejected as an invalid transition.
    """
    now = now or timezone.now()
    code = normalize_trip_code(code)

    booking = _get_booking_for_update(booking_id)

    if not booking.is_participant(user):
        raise NotAuthorizedError("You are not authorized to start this trip")

    if booking.ride.status in (Ride.STATUS_COMPLETED, Ride.STATUS_CANCELLED):
        raise RideNotAvailableError("This ride has already ended")

    if booking.status == Booking.STATUS_IN_PROGRESS:
        raise InvalidTransitionError("This trip has already started")

    if booking.status != Booking.STATUS_AUTHORIZED:
        raise InvalidTransitionError(
            f"A trip cannot be started for a {booking.get_status_display().lower()} booking"
        )

    verify_trip_code(booking, code, now)

    booking.status = Booking.STATUS_IN_PROGRESS
    booking.trip_started_at = now
    booking.trip_start_code = None
    booking.code_expires_at = None
    booking.save(update_fields=["status", "trip_started_at", "trip_start_code", "code_expires_at"])

    ride = booking.ride
    if ride.status in (Ride.STATUS_OPEN, Ride.STATUS_FULL):
        ride.status = Ride.STATUS_IN_PROGRESS
        ride.save(update_fields=["status"])

    logger.info("Booking %s trip started by user %s", booking.id, user.id)

    template_data = _booking_template_data(booking)
    transaction.on_commit(
        lambda: notify_parties(booking, "trip_started", template_data, channel=Notification.CHANNEL_SMS)
    )

    return ServiceResult.ok(
        "Trip started successfully! Both parties have been notified.",
        booking=booking,
    )


# ===================== Cancellation =====================

@service_operation("Failed to cancel booking")
@transaction.atomic
def cancel_booking(user, booking_id, *, now=None) -> ServiceResult:
    """
    Cancel a booking that has not started and give its seats back to the ride.

    A rider cancelling inside the late-cancellation window (12h before departure)
    still succeeds, but the booking is tagged and the message warns of a fee.
    """
    now = now or timezone.now()
    booking = _get_booking_for_update(booking_id)
    ride = booking.ride

    is_rider = booking.rider_id == user.id
    is_driver = ride.driver_id == user.id

    if not is_rider and not is_driver:
        raise NotAuthorizedError("You are not authorized to cancel this booking")

    if booking.status not in Booking.CANCELLABLE_STATUSES:
        raise InvalidTransitionError("This booking cannot be cancelled in its current state")

    late_window = timedelta(hours=settings.RIDESHARE["LATE_CANCEL_WINDOW_HOURS"])
    is_late = is_rider and ride.depart_at - now < late_window

    booking.status = Booking.STATUS_CANCELLED
    booking.cancelled_at = now
    booking.cancelled_by = user
    booking.is_late_cancellation = is_late
    booking.etiquette_payment_due = is_late
    booking.trip_start_code = None
    booking.code_expires_at = None
    booking.save(update_fields=[
        "status", "cancelled_at", "cancelled_by", "is_late_cancellation",
        "etiquette_payment_due", "trip_start_code", "code_expires_at",
    ])

    # Restore seats
    Ride.objects.filter(id=ride.id).update(seats_available=F("seats_available") + booking.seats)
    ride.refresh_from_db(fields=["seats_available", "status"])
    if ride.status == Ride.STATUS_FULL:
        ride.status = Ride.STATUS_OPEN
        ride.save(update_fields=["status"])

    logger.info("Booking %s cancelled by user %s (late=%s)", booking.id, user.id, is_late)

    template_data = {
        **_booking_template_data(booking),
        "cancelled_by_name": user.display_name,
        "cancelled_by_driver": is_driver,
        "late_cancellation": is_late,
    }
    transaction.on_commit(
        lambda: notify_parties(booking, "booking_cancelled", template_data, exclude_user_id=user.id)
    )

    message = "Booking cancelled successfully"
    if is_late:
        message += ". Note: Late cancellation fee may apply. Please notify the driver ASAP."

    return ServiceResult.ok(
        message,
        booking=booking,
        ride=ride,
        extra={"late_cancellation": is_late},
    )


# ===================== Payment =====================

@service_operation("Failed to update payment status")
@transaction.atomic
def record_payment(user, booking_id, *, paid_by_rider=None, confirmed_by_driver=None) -> ServiceResult:
    """
    Record the off-platform payment handshake on a completed booking.

    The rider may only set `paid_by_rider`; the driver may only set
    `confirmed_by_driver`.
    """
    booking = _get_booking_for_update(booking_id)

    is_rider = booking.rider_id == user.id
    is_driver = booking.ride.driver_id == user.id
    if not is_rider and not is_driver:
        raise NotAuthorizedError("You are not authorized to update this booking")

    if paid_by_rider is None and confirmed_by_driver is None:
        raise FieldValidationError("Invalid payment update", {"form": "Nothing to update"})
    if paid_by_rider is not None and not is_rider:
        raise NotAuthorizedError("Only the rider can mark the booking as paid")
    if confirmed_by_driver is not None and not is_driver:
        raise NotAuthorizedError("Only the driver can confirm payment")

    if booking.status != Booking.STATUS_COMPLETED:
        raise InvalidTransitionError("Payment can only be recorded for completed bookings")

    update_fields = []
    if paid_by_rider is not None:
        booking.paid_by_rider = bool(paid_by_rider)
        update_fields.append("paid_by_rider")
    if confirmed_by_driver is not None:
        booking.confirmed_by_driver = bool(confirmed_by_driver)
        update_fields.append("confirmed_by_driver")
    booking.save(update_fields=update_fields)

    return ServiceResult.ok("Payment status updated", booking=booking)
