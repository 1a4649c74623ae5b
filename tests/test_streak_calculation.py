"""Unit tests for the pure streak walk and its incremental variant."""

from datetime import date, timedelta

import pytest

from app.services.streaks import (
    EMPTY_STREAK,
    StreakSummary,
    compute_streak,
    extend_streak,
    is_alive,
)

D = date(2025, 1, 30)


def days_ago(*offsets):
    return [D - timedelta(days=n) for n in offsets]


class TestComputeStreak:
    def test_empty_history(self):
        assert compute_streak([], D) == EMPTY_STREAK

    def test_single_checkin_today(self):
        assert compute_streak(days_ago(0), D) == StreakSummary(1, 1, D)

    def test_single_checkin_yesterday_is_still_alive(self):
        assert compute_streak(days_ago(1), D) == StreakSummary(1, 1, D - timedelta(days=1))

    def test_single_old_checkin(self):
        assert compute_streak(days_ago(5), D) == StreakSummary(0, 1, D - timedelta(days=5))

    def test_three_consecutive_days(self):
        result = compute_streak(days_ago(0, 1, 2), D)
        assert result.current == 3
        assert result.longest == 3

    def test_gap_breaks_the_run(self):
        result = compute_streak(days_ago(0, 2), D)
        assert result.current == 1
        assert result.longest == 1

    def test_streak_broken_by_absence_keeps_longest(self):
        result = compute_streak(days_ago(3, 4, 5, 6), D)
        assert result.current == 0
        assert result.longest == 4
        assert result.last_checkin == D - timedelta(days=3)

    def test_longest_comes_from_older_run(self):
        # run of 2 ending today, run of 5 last month
        history = days_ago(0, 1) + days_ago(20, 21, 22, 23, 24)
        result = compute_streak(history, D)
        assert result.current == 2
        assert result.longest == 5

    def test_unordered_and_duplicate_days(self):
        history = days_ago(2, 0, 1, 1, 0)
        assert compute_streak(history, D) == StreakSummary(3, 3, D)

    def test_longest_never_below_current(self):
        for history in (days_ago(0), days_ago(0, 1, 5), days_ago(1, 2, 3, 9, 10)):
            result = compute_streak(history, D)
            assert result.longest >= result.current

    def test_zero_grace_days_requires_today(self):
        assert compute_streak(days_ago(1, 2), D, grace_days=0).current == 0
        assert compute_streak(days_ago(0, 1), D, grace_days=0).current == 2


class TestIsAlive:
    @pytest.mark.parametrize(
        "offset, expected",
        [(0, True), (1, True), (2, False), (30, False)],
    )
    def test_grace_window(self, offset, expected):
        assert is_alive(D - timedelta(days=offset), D) is expected

    def test_never_checked_in(self):
        assert is_alive(None, D) is False


class TestExtendStreak:
    def test_no_previous_row_needs_full_recompute(self):
        assert extend_streak(None, D, D) is None
        assert extend_streak(EMPTY_STREAK, D, D) is None

    def test_next_day_extends_live_run(self):
        previous = StreakSummary(current=4, longest=4, last_checkin=D - timedelta(days=1))
        assert extend_streak(previous, D, D) == StreakSummary(5, 5, D)

    def test_next_day_keeps_higher_longest(self):
        previous = StreakSummary(current=2, longest=9, last_checkin=D - timedelta(days=1))
        assert extend_streak(previous, D, D) == StreakSummary(3, 9, D)

    def test_same_day_is_noop(self):
        previous = StreakSummary(current=3, longest=3, last_checkin=D)
        assert extend_streak(previous, D, D) == previous

    def test_gap_needs_full_recompute(self):
        previous = StreakSummary(current=0, longest=6, last_checkin=D - timedelta(days=4))
        assert extend_streak(previous, D, D) is None

    def test_gap_after_live_run_needs_full_recompute(self):
        # D-1 may exist without having been folded in
        previous = StreakSummary(current=1, longest=1, last_checkin=D - timedelta(days=2))
        assert extend_streak(previous, D, D) is None

    def test_backfill_needs_full_recompute(self):
        previous = StreakSummary(current=1, longest=1, last_checkin=D)
        assert extend_streak(previous, D - timedelta(days=1), D) is None

    def test_dead_run_needs_full_recompute(self):
        # Persisted while stale: current was zeroed although the last day is adjacent
        previous = StreakSummary(current=0, longest=3, last_checkin=D - timedelta(days=1))
        assert extend_streak(previous, D, D) is None

    @pytest.mark.parametrize(
        "history, new_day",
        [
            (days_ago(1, 2, 3), D),
            (days_ago(0, 1), D),
            (days_ago(1, 2, 10, 11, 12, 13), D),
        ],
    )
    def test_matches_full_recompute(self, history, new_day):
        previous = compute_streak(history, D)
        extended = extend_streak(previous, new_day, D)
        assert extended == compute_streak(history + [new_day], D)
