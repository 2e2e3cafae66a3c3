"""
Unit tests for streak tracking over ordered series.
"""

from dawnpatrol.core.streak import longest_run, longest_streak


def is_true(x):
    return x


class TestLongestStreak:
    def test_reports_longest_not_final_run(self):
        items = [True, True, False, True, True, True, False, True]
        assert longest_streak(items, is_true) == 3

    def test_any_failure_resets(self):
        assert longest_streak([True, False, True, False, True], is_true) == 1

    def test_all_qualifying(self):
        assert longest_streak([5, 6, 7], lambda x: x > 0) == 3

    def test_empty_series(self):
        assert longest_streak([], is_true) == 0


class TestLongestRun:
    def test_bounds_of_longest_run(self):
        items = [False, True, False, True, True, True, False]
        assert longest_run(items, is_true) == (3, 5)

    def test_first_run_wins_ties(self):
        assert longest_run([True, True, False, True, True], is_true) == (0, 1)

    def test_no_qualifying_items(self):
        assert longest_run([False, False], is_true) is None
        assert longest_run([], is_true) is None
