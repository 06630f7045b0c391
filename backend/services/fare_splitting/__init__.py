"""
Fare splitting - pure cost computations for shared rides.

This module handles:
    - Conservative pre-trip estimates
    - Exact seat-weighted final shares
    - Equal per-rider splits
    - Pricing constraint validation
"""

from .splitter import (
    estimate_share,
    estimate_booking_share,
    final_shares,
    rider_shares,
    validate_cost_constraints,
    validate_pricing,
    format_currency,
    cost_per_mile,
    suggest_pricing,
    InvalidArgumentError,
    PricingValidation,
    MIN_TOTAL_COST_CENTS,
    MAX_TOTAL_COST_CENTS,
    MAX_RIDERS,
)

__all__ = [
    "estimate_share",
    "estimate_booking_share",
    "final_shares",
    "rider_shares",
    "validate_cost_constraints",
    "validate_pricing",
    "format_currency",
    "cost_per_mile",
    "suggest_pricing",
    "InvalidArgumentError",
    "PricingValidation",
    "MIN_TOTAL_COST_CENTS",
    "MAX_TOTAL_COST_CENTS",
    "MAX_RIDERS",
]
