"""
Cent-exact cost splitting for shared rides.

Every amount is an integer number of cents. Two modes are provided:

    - estimate: conservative per-seat quote before the trip (rounded up)
    - final: exact per-booking shares after the trip, summing to the ride total

None of these functions touch the database.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Sequence, Union

MIN_TOTAL_COST_CENTS = 100
MAX_TOTAL_COST_CENTS = 50000
MIN_RIDERS = 1
MAX_RIDERS = 8

SUGGESTED_MIN_COST_CENTS = 500


class InvalidArgumentError(ValueError):
    """Raised when a cost computation receives arguments outside its contract."""
    pass


@dataclass
class PricingValidation:
    """Outcome of validate_cost_constraints: every violated rule is listed."""
    valid: bool
    errors: List[str] = field(default_factory=list)


def _require_cents(value, name: str) -> int:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer number of cents")
    return value


def _seats_of(booking: Union[Mapping[str, Any], Any]) -> int:
    if isinstance(booking, Mapping):
        return booking["seats"]
    return booking.seats


# ===================== Estimates =====================

def estimate_share(total_cost_cents: int, current_occupied_seats: int, requested_seats: int) -> int:
    """
    Estimate the per-seat share for a new booking, rounding up.

    Args:
        total_cost_cents: Ride total in cents (>= 0)
        current_occupied_seats: Seats already booked before this request (>= 0)
        requested_seats: Seats the rider is asking for (>= 1)

    Returns:
        ceil(total / (occupied + requested)) in cents

    Raises:
        InvalidArgumentError: On negative inputs or a zero seat denominator
    """
    _require_cents(total_cost_cents, "total_cost_cents")
    if total_cost_cents < 0:
        raise InvalidArgumentError("total cost cannot be negative")
    if current_occupied_seats < 0:
        raise InvalidArgumentError("occupied seats cannot be negative")
    if requested_seats < 1:
        raise InvalidArgumentError("requested seats must be at least 1")

    seats = current_occupied_seats + requested_seats
    # Integer ceiling division; never goes through floats
    return -(-total_cost_cents // seats)


def estimate_booking_share(total_cost_cents: int, current_occupied_seats: int, requested_seats: int) -> int:
    """Conservative estimate held on a booking covering `requested_seats` seats."""
    return estimate_share(total_cost_cents, current_occupied_seats, requested_seats) * requested_seats


# ===================== Final reconciliation =====================

def final_shares(total_cost_cents: int, bookings: Sequence[Any]) -> List[int]:
    """
    Split the ride total across bookings, weighted by seats.

    The leftover cents (total mod seats) are handed out one per seat, walking the
    bookings in the given order, so a multi-seat booking early in the list can
    absorb several of them.

    Args:
        total_cost_cents: Ride total in cents (>= 0)
        bookings: Ordered sequence of objects or mappings exposing `seats` (>= 1)

    Returns:
        One share per booking, same order, summing exactly to total_cost_cents.
        An empty list when there are no seats to charge.
    """
    _require_cents(total_cost_cents, "total_cost_cents")
    if total_cost_cents < 0:
        raise InvalidArgumentError("total cost cannot be negative")

    seat_counts = [_seats_of(booking) for booking in bookings]
    if any(seats < 1 for seats in seat_counts):
        raise InvalidArgumentError("every booking must hold at least 1 seat")

    total_seats = sum(seat_counts)
    if total_seats == 0:
        return []

    base, remainder = divmod(total_cost_cents, total_seats)

    shares = []
    for seats in seat_counts:
        extra = min(remainder, seats)
        remainder -= extra
        shares.append(base * seats + extra)

    return shares


def rider_shares(total_cost_cents: int, rider_count: int) -> List[int]:
    """
    Equal per-head split; the first (total mod riders) riders pay one extra cent.

    >>> rider_shares(1001, 4)
    [251, 250, 250, 250]
    """
    _require_cents(total_cost_cents, "total_cost_cents")
    if rider_count <= 0:
        raise InvalidArgumentError("rider count must be positive")
    if total_cost_cents < 0:
        raise InvalidArgumentError("total cost cannot be negative")

    base, remainder = divmod(total_cost_cents, rider_count)
    return [base + 1 if index < remainder else base for index in range(rider_count)]


# ===================== Validation =====================

def validate_cost_constraints(total_cost_cents: int, rider_count: int) -> PricingValidation:
    """Collect every violated pricing rule instead of stopping at the first one."""
    errors = []

    if total_cost_cents < MIN_TOTAL_COST_CENTS:
        errors.append("Minimum cost is $1.00")
    if total_cost_cents > MAX_TOTAL_COST_CENTS:
        errors.append("Maximum cost is $500.00")
    if rider_count < MIN_RIDERS:
        errors.append("Must have at least 1 rider")
    if rider_count > MAX_RIDERS:
        errors.append("Maximum 8 riders allowed")

    return PricingValidation(valid=not errors, errors=errors)


validate_pricing = validate_cost_constraints


# ===================== Display helpers =====================

def format_currency(cents: int) -> str:
    """Format cents as US dollars, e.g. 1234 -> '$12.34'."""
    sign = "-" if cents < 0 else ""
    dollars, remainder = divmod(abs(cents), 100)
    return f"{sign}${dollars:,}.{remainder:02d}"


def cost_per_mile(total_cost_cents: int, distance_miles) -> Decimal:
    """Dollars per mile, or 0 when no distance is known."""
    distance = Decimal(str(distance_miles))
    if distance <= 0:
        return Decimal("0")
    return Decimal(total_cost_cents) / distance / 100


def suggest_pricing(distance_miles, base_rate_cents_per_mile: int = 50) -> int:
    """Suggest a total in cents from distance, clamped to [$5.00, $500.00]."""
    distance = Decimal(str(distance_miles))
    raw = (distance * base_rate_cents_per_mile).to_integral_value()
    return min(max(int(raw), SUGGESTED_MIN_COST_CENTS), MAX_TOTAL_COST_CENTS)
