"""
Booking lifecycle service - rider-side booking operations.

This module handles:
    - Booking seats on a ride
    - Starting trips with the one-time pickup code
    - Cancelling bookings
    - Recording payment acknowledgements
    - Opening and resolving disputes
"""

from .bookings import (
    create_booking,
    start_trip,
    cancel_booking,
    record_payment,
)
from .disputes import (
    open_dispute,
    resolve_dispute,
    list_disputes,
)
from .trip_codes import (
    generate_trip_code,
    trip_code_expiry,
    verify_trip_code,
)

__all__ = [
    # Booking operations
    "create_booking",
    "start_trip",
    "cancel_booking",
    "record_payment",
    # Disputes
    "open_dispute",
    "resolve_dispute",
    "list_disputes",
    # Trip codes
    "generate_trip_code",
    "trip_code_expiry",
    "verify_trip_code",
]
