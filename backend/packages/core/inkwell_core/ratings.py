"""
Rating value rules.

Ratings are half-star values between 0.5 and 5.0 inclusive.
"""

import math
from typing import Any

MIN_RATING = 0.5
MAX_RATING = 5.0


def normalize_rating(value: Any) -> float | None:
    """
    Snap a rating to the nearest half star.

    Args:
        value: Raw rating (number or numeric string).

    Returns:
        Normalized rating, or None if the value is not a number or falls
        outside [0.5, 5.0] before snapping.
    """
    if isinstance(value, bool):
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None

    if math.isnan(rating) or rating < MIN_RATING or rating > MAX_RATING:
        return None

    # Half-up rounding: 4.7 -> 4.5, 4.75 -> 5.0
    snapped = math.floor(rating * 2 + 0.5) / 2
    return max(MIN_RATING, min(MAX_RATING, snapped))
