"""
Unit tests for circular direction statistics.
"""

import pytest

from dawnpatrol.core.direction_stats import (
    circular_mean,
    direction_consistency,
    modal_consistency,
    modal_direction,
    resultant_consistency,
    summarize_directions,
)
from dawnpatrol.utils.weather_utils import angular_difference


class TestResultantConsistency:
    """Canonical resultant-vector consistency."""

    def test_identical_directions_fully_consistent(self):
        assert resultant_consistency([315.0] * 6) == pytest.approx(100.0)

    def test_opposing_quadrants_cancel_out(self):
        assert resultant_consistency([0, 90, 180, 270]) == pytest.approx(0.0, abs=1e-6)

    def test_wraparound_at_north_is_consistent(self):
        assert resultant_consistency([350, 5, 355, 10]) > 75

    def test_empty_and_single_sample_are_not_evidence(self):
        assert resultant_consistency([]) == 0.0
        assert resultant_consistency([270]) == 0.0

    def test_score_stays_within_percentage_range(self):
        score = resultant_consistency([10, 40, 80, 300])
        assert 0 <= score <= 100


class TestCircularMean:
    """Mean direction from unit vectors."""

    def test_mean_across_north(self):
        mean = circular_mean([350, 5, 355, 10])
        assert angular_difference(mean, 0) < 1e-6

    def test_mean_of_simple_pair(self):
        assert circular_mean([80, 100]) == pytest.approx(90.0)

    def test_empty_has_no_mean(self):
        assert circular_mean([]) is None

    def test_balanced_directions_have_no_mean(self):
        assert circular_mean([0, 180]) is None


class TestModalPolicy:
    """Bucketed modal direction, the named alternative policy."""

    def test_modal_bucket_centred_on_north(self):
        mode = modal_direction([0, 5, 355, 180])
        assert angular_difference(mode, 0) < 1e-6

    def test_tie_goes_to_lowest_bucket(self):
        assert modal_direction([100, 200]) == pytest.approx(100.0)

    def test_modal_consistency_share_within_deviation(self):
        assert modal_consistency([0, 5, 355, 180], deviation=45) == pytest.approx(75.0)

    def test_modal_handles_wraparound(self):
        assert modal_consistency([350, 5, 355, 10], deviation=45) == pytest.approx(100.0)

    def test_modal_empty_input(self):
        assert modal_direction([]) is None
        assert modal_consistency([]) == 0.0


class TestDispatcher:
    """Method selection and summary."""

    def test_resultant_is_default(self):
        directions = [0, 90, 180, 270]
        assert direction_consistency(directions) == resultant_consistency(directions)

    def test_modal_method_selected_by_name(self):
        directions = [0, 5, 355, 180]
        assert direction_consistency(directions, method="modal") == pytest.approx(75.0)

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError):
            direction_consistency([0, 10], method="median")

    def test_summary_fields(self):
        summary = summarize_directions([310, 315, 320])
        assert summary.sample_count == 3
        assert summary.method == "resultant"
        assert summary.mean_direction == pytest.approx(315.0)
        assert summary.consistency > 99
