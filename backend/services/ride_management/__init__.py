"""
Ride management service - driver-side ride operations.

This module handles:
    - Posting rides
    - Completing trips with exact final shares
    - Listing a ride's bookings for its driver
"""

from .ride_lifecycle import (
    post_ride,
    complete_trip,
    get_ride_bookings,
)

__all__ = [
    "post_ride",
    "complete_trip",
    "get_ride_bookings",
]
