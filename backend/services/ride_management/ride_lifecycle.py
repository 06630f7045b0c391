"""
Core ride lifecycle operations.

This module contains the driver-side business logic for rides, kept out of the
views layer for testability and reuse:
    - Posting a ride offer
    - Completing a trip and reconciling every rider's final share
"""

import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import F, Q
from django.utils import timezone

from bookings.models import Booking
from notifications.dispatch import notify
from notifications.models import Notification
from rides.models import Ride
from services.exceptions import (
    DriverNotVerifiedError,
    FieldValidationError,
    InvalidTransitionError,
    LifecycleError,
    NoActiveBookingsError,
    NotAuthorizedError,
    RideNotFoundError,
)
from services.fare_splitting import MAX_RIDERS, final_shares, validate_cost_constraints
from services.results import ServiceResult, service_operation

logger = logging.getLogger(__name__)

User = get_user_model()


# ===================== Driver Operations =====================

@service_operation("Failed to create ride")
@transaction.atomic
def post_ride(
    driver,
    origin_text: str,
    origin_lat,
    origin_lng,
    dest_text: str,
    dest_lat,
    dest_lng,
    depart_at,
    seats_total: int,
    total_cost_cents: int,
    notes: str = "",
    *,
    now=None,
) -> ServiceResult:
    """
    Publish a new ride offer.

    Args:
        driver: Authenticated, verified student
        origin_text / dest_text: Human-readable endpoints
        origin_lat, origin_lng, dest_lat, dest_lng: Coordinates
        depart_at: Aware datetime in the future
        seats_total: Seats offered to riders (1-8)
        total_cost_cents: Trip cost shared by all riders ($1.00-$500.00)

    Returns:
        ServiceResult with the created ride
    """
    now = now or timezone.now()

    if not driver.is_verified_student:
        raise DriverNotVerifiedError("Your student status must be verified before offering rides")

    errors = {}
    if isinstance(seats_total, bool) or not isinstance(seats_total, int) or not 1 <= seats_total <= MAX_RIDERS:
        errors["seats_total"] = f"Seats must be between 1 and {MAX_RIDERS}"
    if isinstance(total_cost_cents, bool) or not isinstance(total_cost_cents, int):
        errors["total_cost_cents"] = "Cost must be a whole number of cents"
    else:
        pricing = validate_cost_constraints(total_cost_cents, seats_total if "seats_total" not in errors else 1)
        if not pricing.valid:
            errors["total_cost_cents"] = " ".join(pricing.errors)
    if depart_at <= now:
        errors["depart_at"] = "Departure must be in the future"
    if errors:
        raise FieldValidationError("Please check your ride details", errors)

    ride = Ride.objects.create(
        driver=driver,
        origin_text=origin_text,
        origin_lat=origin_lat,
        origin_lng=origin_lng,
        dest_text=dest_text,
        dest_lat=dest_lat,
        dest_lng=dest_lng,
        depart_at=depart_at,
        seats_total=seats_total,
        seats_available=seats_total,
        total_cost_cents=total_cost_cents,
        notes=notes,
        status=Ride.STATUS_OPEN,
    )

    logger.info("Ride %s posted by driver %s (%s seats, %s cents)", ride.id, driver.id, seats_total, total_cost_cents)

    return ServiceResult.ok("Ride created successfully!", ride=ride, extra={"ride_id": ride.id})


@service_operation("Failed to complete trip")
@transaction.atomic
def complete_trip(driver, ride_id, *, now=None) -> ServiceResult:
    """
    Complete a trip - called by the driver at drop-off.

    Final shares are computed across every in-progress or already finalized booking (in
    booking order) so they sum to the ride total. Each booking is then
    completed in its own savepoint: a booking that cannot be updated is
    reported in `failed_bookings` without blocking the others, and the ride
    itself is only marked completed when every booking made it. Bookings that
    were never started are cancelled as no-shows.

    Args:
        driver: User model instance (driver)
        ride_id: ID of the ride to complete

    Returns:
        ServiceResult with completion counts and per-booking shares
    """
    now = now or timezone.now()

    try:
        ride = Ride.objects.select_for_update().get(id=ride_id)
    except (Ride.DoesNotExist, ValueError):
        raise RideNotFoundError("Ride not found")

    if ride.driver_id != driver.id:
        raise NotAuthorizedError("Only the driver can complete this trip")

    if ride.status == Ride.STATUS_COMPLETED:
        raise InvalidTransitionError("This trip has already been completed")
    if ride.status == Ride.STATUS_CANCELLED:
        raise InvalidTransitionError("This ride has been cancelled")

    # Bookings finalized by an earlier, partially failed attempt stay in the
    # split so a retry reproduces the same shares instead of re-charging the total.
    riders = list(
        ride.bookings.select_related("rider")
        .filter(
            Q(status=Booking.STATUS_IN_PROGRESS)
            | Q(final_share_cents__isnull=False)
        )
        .order_by("created_at", "id")
    )
    bookings = [booking for booking in riders if booking.status == Booking.STATUS_IN_PROGRESS]
    if not bookings:
        raise NoActiveBookingsError("No active bookings to complete")

    shares = dict(zip((booking.id for booking in riders), final_shares(ride.total_cost_cents, riders)))

    completed = []
    failed = []
    for booking in bookings:
        share = shares[booking.id]
        try:
            with transaction.atomic():
                updated = Booking.objects.filter(
                    id=booking.id,
                    status=Booking.STATUS_IN_PROGRESS,
                    final_share_cents__isnull=True,
                ).update(
                    status=Booking.STATUS_COMPLETED,
                    final_share_cents=share,
                    trip_completed_at=now,
                )
                if not updated:
                    raise InvalidTransitionError(f"Booking {booking.id} is no longer in progress")

                User.objects.filter(id=booking.rider_id).update(completed_rides=F("completed_rides") + 1)
        except (LifecycleError, DatabaseError) as e:
            logger.warning("Could not complete booking %s on ride %s: %s", booking.id, ride.id, e)
            failed.append({"booking_id": booking.id, "error": str(e)})
            continue

        booking.status = Booking.STATUS_COMPLETED
        booking.final_share_cents = share
        booking.trip_completed_at = now
        completed.append(booking)

    if not completed:
        raise InvalidTransitionError("None of the in-progress bookings could be completed")

    no_shows = _cancel_no_shows(ride, driver, now)

    if not failed:
        ride.status = Ride.STATUS_COMPLETED
        ride.completed_at = now
        ride.save(update_fields=["status", "completed_at"])
        User.objects.filter(id=driver.id).update(completed_rides=F("completed_rides") + 1)

    logger.info(
        "Ride %s completion: %s bookings finalized, %s failed, %s no-shows cancelled",
        ride.id, len(completed), len(failed), len(no_shows),
    )

    def _notify_riders():
        for booking in no_shows:
            notify(
                booking.rider,
                Notification.CHANNEL_EMAIL,
                "booking_cancelled",
                {
                    "recipient_name": booking.rider.display_name,
                    "origin_text": ride.origin_text,
                    "dest_text": ride.dest_text,
                    "depart_at": ride.depart_at.isoformat(),
                    "seats": booking.seats,
                    "cancelled_by_name": driver.display_name,
                    "cancelled_by_driver": True,
                },
                booking=booking,
            )
        for booking in completed:
            notify(
                booking.rider,
                Notification.CHANNEL_EMAIL,
                "trip_completed",
                {
                    "recipient_name": booking.rider.display_name,
                    "origin_text": ride.origin_text,
                    "dest_text": ride.dest_text,
                    "final_share_cents": booking.final_share_cents,
                },
                booking=booking,
            )

    transaction.on_commit(_notify_riders)

    message = f"Trip completed successfully! {len(completed)} bookings have been finalized."
    if failed:
        message += f" {len(failed)} could not be updated and remain in progress."
    if no_shows:
        message += f" {len(no_shows)} unstarted bookings were cancelled."

    return ServiceResult.ok(
        message,
        ride=ride,
        extra={
            "completed_bookings": len(completed),
            "failed_bookings": failed,
            "cancelled_bookings": [booking.id for booking in no_shows],
            "final_shares": {booking.id: booking.final_share_cents for booking in completed},
        },
    )


def _cancel_no_shows(ride, driver, now):
    """Cancel bookings whose trip never started; their seats go back to the ride."""
    no_shows = list(
        ride.bookings.select_for_update()
        .select_related("rider")
        .filter(status=Booking.STATUS_AUTHORIZED)
        .order_by("created_at", "id")
    )
    for booking in no_shows:
        booking.status = Booking.STATUS_CANCELLED
        booking.cancelled_at = now
        booking.cancelled_by = driver
        booking.trip_start_code = None
        booking.code_expires_at = None
        booking.save(update_fields=[
            "status", "cancelled_at", "cancelled_by", "trip_start_code", "code_expires_at",
        ])

    released = sum(booking.seats for booking in no_shows)
    if released:
        Ride.objects.filter(id=ride.id).update(seats_available=F("seats_available") + released)
        logger.info("Ride %s: cancelled %s unstarted bookings at drop-off", ride.id, len(no_shows))
    return no_shows


def get_ride_bookings(driver, ride_id):
    """Bookings on one of the driver's rides, in booking order."""
    try:
        ride = Ride.objects.get(id=ride_id, driver=driver)
    except (Ride.DoesNotExist, ValueError):
        raise RideNotFoundError("Ride not found or not offered by you")
    return ride.bookings.select_related("rider").order_by("created_at", "id")
