"""
Rating rollup calculation.

Pure functions computing the next (sum, count, avg) triples of a rollup row
for total, week and month windows. No I/O: the rollup service reads the
row, calls compute_rating_rollup and writes the result back with a
compare-and-swap on the row version.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RatingWindow:
    """Rating aggregate for one window."""

    sum: float
    count: int
    avg: float


@dataclass(frozen=True)
class RatingRollup:
    """Next rating state of a rollup row."""

    total: RatingWindow
    week: RatingWindow
    month: RatingWindow
    week_stamp: int
    month_stamp: int

    def to_columns(self) -> dict[str, Any]:
        """Map to ItemRollup column values."""
        return {
            "rating_sum_total": self.total.sum,
            "rating_count_total": self.total.count,
            "rating_avg_total": self.total.avg,
            "rating_sum_week": self.week.sum,
            "rating_count_week": self.week.count,
            "rating_avg_week": self.week.avg,
            "rating_week_stamp": self.week_stamp,
            "rating_sum_month": self.month.sum,
            "rating_count_month": self.month.count,
            "rating_avg_month": self.month.avg,
            "rating_month_stamp": self.month_stamp,
        }


def _field(row: Any, name: str, default: Any = 0) -> Any:
    if row is None:
        return default
    if isinstance(row, Mapping):
        value = row.get(name, default)
    else:
        value = getattr(row, name, default)
    return default if value is None else value


def _window(total: float, count: int) -> RatingWindow:
    count = max(0, int(count))
    total = max(0.0, float(total)) if count > 0 else 0.0
    avg = round(total / count, 4) if count > 0 else 0.0
    return RatingWindow(sum=round(total, 4), count=count, avg=avg)


def _apply(
    total: float,
    count: int,
    new_rating: float,
    old_rating: float,
    is_new: bool,
    is_removal: bool,
) -> RatingWindow:
    if is_removal:
        total -= old_rating
        count -= 1
    elif is_new:
        total += new_rating
        count += 1
    else:
        total += new_rating - old_rating
    return _window(total, count)


def _apply_windowed(
    row: Any,
    prefix: str,
    stored_stamp: int,
    current_stamp: int,
    new_rating: float,
    old_rating: float,
    is_new: bool,
    is_removal: bool,
) -> RatingWindow:
    # A stale window only knows about this write
    if stored_stamp != current_stamp:
        if is_removal:
            return RatingWindow(sum=0.0, count=0, avg=0.0)
        return _window(new_rating, 1)

    return _apply(
        float(_field(row, f"rating_sum_{prefix}", 0.0)),
        int(_field(row, f"rating_count_{prefix}", 0)),
        new_rating,
        old_rating,
        is_new,
        is_removal,
    )


def compute_rating_rollup(
    row: Any,
    new_rating: float,
    old_rating: float,
    is_new: bool,
    is_removal: bool,
    week_stamp: int,
    month_stamp: int,
) -> RatingRollup:
    """
    Compute the rating state after one rating write.

    Args:
        row: Current rollup row (ItemRollup, mapping or None for no row).
        new_rating: Rating being written (ignored for removals).
        old_rating: Previous rating (ignored for new ratings).
        is_new: The actor had no rating before.
        is_removal: The actor's rating is being removed.
        week_stamp: Current ISO-week stamp.
        month_stamp: Current month stamp.

    Returns:
        New rating columns; sums and averages rounded to 4 decimals,
        counts never negative.
    """
    total = _apply(
        float(_field(row, "rating_sum_total", 0.0)),
        int(_field(row, "rating_count_total", 0)),
        new_rating,
        old_rating,
        is_new,
        is_removal,
    )
    week = _apply_windowed(
        row,
        "week",
        int(_field(row, "rating_week_stamp", 0)),
        week_stamp,
        new_rating,
        old_rating,
        is_new,
        is_removal,
    )
    month = _apply_windowed(
        row,
        "month",
        int(_field(row, "rating_month_stamp", 0)),
        month_stamp,
        new_rating,
        old_rating,
        is_new,
        is_removal,
    )
    return RatingRollup(
        total=total,
        week=week,
        month=month,
        week_stamp=week_stamp,
        month_stamp=month_stamp,
    )
