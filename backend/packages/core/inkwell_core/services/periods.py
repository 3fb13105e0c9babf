"""Rollup period stamps."""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class PeriodStamps:
    """Current ISO-week and calendar-month stamps, e.g. 202642 and 202610."""

    week: int
    month: int


def period_stamps(now: datetime | None = None) -> PeriodStamps:
    """
    Compute period stamps for a moment in time (UTC).

    Args:
        now: Reference time, defaults to the current time.

    Returns:
        Week and month stamps.
    """
    now = now or datetime.now(UTC)
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    iso_year, iso_week, _ = now.isocalendar()
    return PeriodStamps(
        week=int(f"{iso_year}{iso_week:02d}"),
        month=int(f"{now.year}{now.month:02d}"),
    )
