"""One-time trip-start codes proving in-person pickup."""

import re
import secrets
from datetime import timedelta

from django.conf import settings

from services.exceptions import FieldValidationError, TripCodeExpiredError, TripCodeInvalidError

CODE_LENGTH = 6
_CODE_RE = re.compile(r"[0-9]{6}")


def generate_trip_code() -> str:
    """Return a uniformly random 6-digit code (leading zeros allowed)."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def trip_code_expiry(depart_at, now):
    """The code lives until departure, capped at TRIP_CODE_TTL_HOURS from now."""
    ttl = timedelta(hours=settings.RIDESHARE["TRIP_CODE_TTL_HOURS"])
    return min(depart_at, now + ttl)


def normalize_trip_code(code) -> str:
    code = str(code or "").strip()
    if not _CODE_RE.fullmatch(code):
        raise FieldValidationError(
            "Invalid trip start request",
            {"otp": "Trip start code must be 6 digits"},
        )
    return code


def verify_trip_code(booking, code: str, now) -> None:
    """
    Check a supplied code against the booking.

    Raises:
        TripCodeExpiredError: No code on file, or now is past its expiry
        TripCodeInvalidError: Code is current but does not match
    """
    if not booking.trip_start_code or booking.code_expires_at is None or now > booking.code_expires_at:
        raise TripCodeExpiredError("Trip start code has expired")

    if not secrets.compare_digest(booking.trip_start_code, code):
        raise TripCodeInvalidError("Invalid trip start code")
