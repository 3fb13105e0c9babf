"""Tests for the rating rollup calculator."""

from inkwell_core.services.rating_rollup import RatingWindow, compute_rating_rollup

WEEK = 202642
MONTH = 202610


def _row(**overrides):
    row = {
        "rating_sum_total": 0.0,
        "rating_count_total": 0,
        "rating_sum_week": 0.0,
        "rating_count_week": 0,
        "rating_week_stamp": WEEK,
        "rating_sum_month": 0.0,
        "rating_count_month": 0,
        "rating_month_stamp": MONTH,
    }
    row.update(overrides)
    return row


def _to_row(rollup):
    return _row(**{k: v for k, v in rollup.to_columns().items() if not k.startswith("rating_avg")})


class TestComputeRatingRollup:
    """Test compute_rating_rollup."""

    def test_first_vote_without_row(self):
        rollup = compute_rating_rollup(None, 4.0, 0.0, True, False, WEEK, MONTH)

        assert rollup.total == RatingWindow(sum=4.0, count=1, avg=4.0)
        assert rollup.week == RatingWindow(sum=4.0, count=1, avg=4.0)
        assert rollup.month == RatingWindow(sum=4.0, count=1, avg=4.0)
        assert rollup.week_stamp == WEEK
        assert rollup.month_stamp == MONTH

    def test_three_votes_then_removal(self):
        row = None
        for rating in (2.0, 3.0, 4.0):
            row = _to_row(compute_rating_rollup(row, rating, 0.0, True, False, WEEK, MONTH))

        assert row["rating_sum_total"] == 9.0
        assert row["rating_count_total"] == 3
        rollup = compute_rating_rollup(row, 0.0, 4.0, False, True, WEEK, MONTH)
        assert rollup.total.count == 2
        assert rollup.total.avg == 2.5

    def test_three_votes_average(self):
        row = None
        rollup = None
        for rating in (2.0, 3.0, 4.0):
            rollup = compute_rating_rollup(row, rating, 0.0, True, False, WEEK, MONTH)
            row = _to_row(rollup)
        assert rollup.total.avg == 3.0
        assert rollup.total.count == 3

    def test_update_keeps_count(self):
        row = _row(rating_sum_total=7.0, rating_count_total=2, rating_sum_week=7.0, rating_count_week=2)
        rollup = compute_rating_rollup(row, 5.0, 3.0, False, False, WEEK, MONTH)

        assert rollup.total == RatingWindow(sum=9.0, count=2, avg=4.5)
        assert rollup.week == RatingWindow(sum=9.0, count=2, avg=4.5)

    def test_stale_week_reseeds_on_vote(self):
        row = _row(
            rating_sum_total=10.0,
            rating_count_total=3,
            rating_sum_week=10.0,
            rating_count_week=3,
            rating_week_stamp=WEEK - 1,
        )
        rollup = compute_rating_rollup(row, 2.5, 4.0, False, False, WEEK, MONTH)

        assert rollup.week == RatingWindow(sum=2.5, count=1, avg=2.5)
        assert rollup.total.count == 3

    def test_stale_month_resets_on_removal(self):
        row = _row(
            rating_sum_total=4.0,
            rating_count_total=1,
            rating_sum_month=4.0,
            rating_count_month=1,
            rating_month_stamp=MONTH - 1,
        )
        rollup = compute_rating_rollup(row, 0.0, 4.0, False, True, WEEK, MONTH)

        assert rollup.month == RatingWindow(sum=0.0, count=0, avg=0.0)
        assert rollup.total == RatingWindow(sum=0.0, count=0, avg=0.0)

    def test_removal_saturates_at_zero(self):
        rollup = compute_rating_rollup(_row(), 0.0, 3.0, False, True, WEEK, MONTH)

        assert rollup.total.count == 0
        assert rollup.total.sum == 0.0
        assert rollup.total.avg == 0.0

    def test_average_rounded_to_four_decimals(self):
        row = _row(rating_sum_total=3.5, rating_count_total=2)
        rollup = compute_rating_rollup(row, 4.0, 0.0, True, False, WEEK, MONTH)
        assert rollup.total.avg == round(7.5 / 3, 4)
