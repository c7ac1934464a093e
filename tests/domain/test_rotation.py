"""
Pure rotation arithmetic: recipient positions, round states, schedule dates.
"""

from datetime import date

import pytest

from rosca_kernel.domain.rotation import (
    Completed,
    DEFAULT_INTERVALS,
    NotStarted,
    RoundInProgress,
    ScheduleInterval,
    compact_positions,
    compute_payout_amount,
    is_permutation,
    next_free_position,
    recipient_position,
    round_state,
    scheduled_date,
)


class TestRecipientPosition:
    @pytest.mark.parametrize(
        "round_number,member_count,expected",
        [(1, 5, 1), (2, 5, 2), (5, 5, 5), (6, 5, 1), (12, 5, 2), (1, 1, 1), (3, 1, 1)],
    )
    def test_wraps_around_the_roster(self, round_number, member_count, expected):
        assert recipient_position(round_number, member_count) == expected

    def test_rejects_round_zero(self):
        with pytest.raises(ValueError):
            recipient_position(0, 3)

    def test_rejects_empty_roster(self):
        with pytest.raises(ValueError):
            recipient_position(1, 0)


class TestRoundState:
    def test_not_started(self):
        assert round_state(0, 5) == NotStarted()

    def test_in_progress(self):
        assert round_state(3, 5) == RoundInProgress(round_number=3)

    def test_last_round_still_in_progress(self):
        assert round_state(5, 5) == RoundInProgress(round_number=5)

    def test_completed_after_last_round(self):
        assert round_state(6, 5) == Completed(rounds_paid=5)


class TestPositions:
    def test_next_free_position_fills_gaps(self):
        assert next_free_position([1, 2, 4]) == 3

    def test_next_free_position_empty(self):
        assert next_free_position([]) == 1

    def test_is_permutation(self):
        assert is_permutation([2, 3, 1], 3)

    def test_duplicate_is_not_permutation(self):
        assert not is_permutation([1, 1, 2], 3)

    def test_gap_is_not_permutation(self):
        assert not is_permutation([1, 2, 4], 3)

    def test_compact_positions_numbers_in_order(self):
        assert compact_positions(["c", "a", "b"]) == {"c": 1, "a": 2, "b": 3}


class TestPayoutAmount:
    def test_amount_times_member_count(self):
        assert compute_payout_amount(100, 5) == 500

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            compute_payout_amount(-1, 5)


class TestSchedule:
    MONTHLY = DEFAULT_INTERVALS["monthly"]

    def test_weekly(self):
        assert scheduled_date(date(2024, 1, 1), DEFAULT_INTERVALS["weekly"], 1) == date(2024, 1, 8)
        assert scheduled_date(date(2024, 1, 1), DEFAULT_INTERVALS["weekly"], 3) == date(2024, 1, 22)

    def test_biweekly(self):
        assert scheduled_date(date(2024, 1, 1), DEFAULT_INTERVALS["biweekly"], 1) == date(2024, 1, 15)

    def test_monthly(self):
        assert scheduled_date(date(2024, 1, 15), self.MONTHLY, 1) == date(2024, 2, 15)

    def test_month_end_is_clamped(self):
        assert scheduled_date(date(2024, 1, 31), self.MONTHLY, 1) == date(2024, 2, 29)
        assert scheduled_date(date(2023, 1, 31), self.MONTHLY, 1) == date(2023, 2, 28)

    def test_month_end_clamping_does_not_compound(self):
        dates = [scheduled_date(date(2024, 12, 31), self.MONTHLY, r) for r in range(1, 5)]
        assert dates == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
        ]

    def test_year_rollover(self):
        assert scheduled_date(date(2024, 12, 10), self.MONTHLY, 1) == date(2025, 1, 10)

    def test_round_zero_is_the_start_date(self):
        assert scheduled_date(date(2024, 3, 5), self.MONTHLY, 0) == date(2024, 3, 5)

    def test_custom_interval(self):
        assert scheduled_date(date(2024, 1, 1), ScheduleInterval(days=3), 2) == date(2024, 1, 7)
