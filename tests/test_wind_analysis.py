"""
Unit tests for the wind condition analyzer.

Times are July in Denver (MDT, UTC-6): 06:00 local is 12:00Z.
"""

from datetime import datetime

import pandas as pd
import pytest
import pytz

from dawnpatrol.core.wind_analysis import (
    analyze,
    filter_to_window,
    verify_wind_conditions,
    window_bounds,
)
from dawnpatrol.core.sample_normalizer import normalize_samples
from dawnpatrol.models.wind import AlarmCriteria, AnalysisWindow, DirectionSector

DENVER = pytz.timezone("America/Denver")


def make_records(speeds, directions=315, start="2025-07-04T12:00:00Z", step_minutes=5):
    if not isinstance(directions, (list, tuple)):
        directions = [directions] * len(speeds)
    base = pd.Timestamp(start)
    return [
        {
            "time": (base + pd.Timedelta(minutes=i * step_minutes)).isoformat(),
            "windSpeedMph": speed,
            "windDirection": direction,
        }
        for i, (speed, direction) in enumerate(zip(speeds, directions))
    ]


@pytest.fixture
def default_criteria():
    return AlarmCriteria(
        min_average_speed=10,
        direction_consistency_threshold=70,
        min_consecutive_points=4,
    )


class TestAnalyze:
    """Alarm verdicts over a trailing window."""

    def test_steady_northwest_wind_is_alarm_worthy(self, default_criteria):
        records = make_records([18, 20, 22, 19, 21], 315)
        verdict = analyze(records, default_criteria, "2025-07-04T12:20:00Z")

        assert verdict.is_alarm_worthy
        assert verdict.average_speed == pytest.approx(20.0)
        assert verdict.direction_consistency == pytest.approx(100.0)
        assert verdict.consecutive_good_points == 5
        assert verdict.sample_count == 5
        assert verdict.explanation.startswith("Alarm worthy")

    def test_reference_time_defaults_to_latest_sample(self, default_criteria):
        verdict = analyze(make_records([18, 20, 22, 19, 21]), default_criteria)
        assert verdict.is_alarm_worthy
        assert verdict.window_end == pd.Timestamp("2025-07-04T12:20:00Z")

    def test_empty_input_gives_no_data_verdict(self, default_criteria):
        verdict = analyze([], default_criteria, "2025-07-04T12:20:00Z")

        assert not verdict.is_alarm_worthy
        assert verdict.average_speed == 0
        assert verdict.consecutive_good_points == 0
        assert "no wind data" in verdict.explanation.lower()

    def test_samples_outside_window_ignored(self, default_criteria):
        records = make_records([18, 20, 22, 19, 21])
        verdict = analyze(records, default_criteria, "2025-07-04T15:00:00Z")

        assert not verdict.is_alarm_worthy
        assert verdict.sample_count == 0
        assert "no wind data" in verdict.explanation.lower()

    def test_streak_is_longest_run(self, default_criteria):
        records = make_records([15, 15, 15, 15, 5, 15])
        verdict = analyze(records, default_criteria, "2025-07-04T12:25:00Z")
        assert verdict.consecutive_good_points == 4

    def test_short_streak_fails(self, default_criteria):
        records = make_records([15, 15, 5, 15, 15, 15])
        verdict = analyze(records, default_criteria, "2025-07-04T12:25:00Z")

        assert verdict.consecutive_good_points == 3
        assert not verdict.is_alarm_worthy
        assert "(fail)" in verdict.explanation

    def test_scattered_directions_fail_consistency(self, default_criteria):
        records = make_records([20, 20, 20, 20], [0, 90, 180, 270])
        verdict = analyze(records, default_criteria, "2025-07-04T12:15:00Z")

        assert verdict.direction_consistency == pytest.approx(0.0, abs=1e-6)
        assert not verdict.is_alarm_worthy

    def test_direction_can_be_ignored(self, default_criteria):
        criteria = AlarmCriteria(use_wind_direction=False)
        records = make_records([20, 20, 20, 20], [0, 90, 180, 270])
        verdict = analyze(records, criteria, "2025-07-04T12:15:00Z")

        assert verdict.is_alarm_worthy
        assert verdict.consecutive_good_points == 4

    def test_preferred_sector_rejects_other_directions(self):
        criteria = AlarmCriteria(preferred_sector=DirectionSector(center=90, half_width=30))
        records = make_records([18, 20, 22, 19, 21], 315)
        verdict = analyze(records, criteria, "2025-07-04T12:20:00Z")

        assert verdict.consecutive_good_points == 0
        assert not verdict.is_alarm_worthy

    def test_modal_consistency_method(self):
        criteria = AlarmCriteria(consistency_method="modal")
        records = make_records([20, 20, 20, 20], [350, 5, 355, 10])
        verdict = analyze(records, criteria, "2025-07-04T12:15:00Z")

        assert verdict.direction_consistency == pytest.approx(100.0)
        assert verdict.is_alarm_worthy

    def test_accepts_normalized_samples(self, default_criteria):
        samples = normalize_samples(make_records([18, 20, 22, 19, 21]))
        verdict = analyze(samples, default_criteria, "2025-07-04T12:20:00Z")
        assert verdict.is_alarm_worthy

    def test_verdict_serializes(self, default_criteria):
        verdict = analyze(make_records([18, 20, 22, 19, 21]), default_criteria)
        data = verdict.to_dict()
        assert data["is_alarm_worthy"] is True
        assert data["window_end"] == "2025-07-04T12:20:00+00:00"

    def test_non_record_entries_are_skipped(self, default_criteria):
        records = make_records([18, 20, 22, 19, 21]) + [None, "garbage", [315, 20]]
        verdict = analyze(records, default_criteria, "2025-07-04T12:20:00Z")

        assert verdict.is_alarm_worthy
        assert verdict.sample_count == 5

    def test_only_garbage_gives_no_data_verdict(self, default_criteria):
        verdict = analyze([None, "garbage"], default_criteria, "2025-07-04T12:20:00Z")
        assert not verdict.is_alarm_worthy
        assert "no wind data" in verdict.explanation.lower()

    def test_unparseable_reference_time_warns(self, default_criteria, caplog):
        verdict = analyze(make_records([18, 20, 22, 19, 21]), default_criteria, "someday")

        assert verdict.window_end == pd.Timestamp("2025-07-04T12:20:00Z")
        assert "Unparseable reference time" in caplog.text


class TestWindows:
    """Trailing and clock windows."""

    def test_trailing_bounds_inclusive(self):
        samples = normalize_samples(make_records([10, 10, 10], step_minutes=30))
        window = AnalysisWindow.trailing(60)
        kept = filter_to_window(samples, window, "2025-07-04T13:00:00Z")
        assert len(kept) == 3

    def test_clock_window_same_morning(self):
        window = AnalysisWindow.clock("06:00", "08:00", "America/Denver")
        start, end = window_bounds(window, pd.Timestamp("2025-07-04T14:30:00Z"))
        assert start == pd.Timestamp(DENVER.localize(datetime(2025, 7, 4, 6, 0)))
        assert end == pd.Timestamp(DENVER.localize(datetime(2025, 7, 4, 8, 0)))

    def test_clock_window_before_start_uses_previous_day(self):
        window = AnalysisWindow.clock("06:00", "08:00", "America/Denver")
        start, _ = window_bounds(window, pd.Timestamp("2025-07-04T11:00:00Z"))
        assert start == pd.Timestamp(DENVER.localize(datetime(2025, 7, 3, 6, 0)))

    def test_clock_window_across_midnight(self):
        window = AnalysisWindow.clock("22:00", "02:00", "America/Denver")
        records = make_records([12, 12], start="2025-07-05T05:00:00Z", step_minutes=30)
        # 01:00 local on July 5
        kept = filter_to_window(normalize_samples(records), window, "2025-07-05T07:00:00Z")
        assert len(kept) == 2

    def test_verification_window(self, default_criteria):
        # 06:00-06:20 local, evaluated at 08:30 local
        records = make_records([18, 20, 22, 19, 21])
        verdict = verify_wind_conditions(records, default_criteria, "2025-07-04T14:30:00Z")

        assert verdict.is_alarm_worthy
        assert verdict.window_start == pd.Timestamp("2025-07-04T12:00:00Z")
        assert verdict.window_end == pd.Timestamp("2025-07-04T14:00:00Z")


class TestAlarmCriteria:
    """Configuration validation."""

    def test_defaults(self):
        criteria = AlarmCriteria()
        assert criteria.min_average_speed == 10.0
        assert criteria.window.mode == "trailing"
        assert criteria.window.trailing_minutes == 60

    def test_out_of_range_consistency_rejected(self):
        with pytest.raises(ValueError):
            AlarmCriteria(direction_consistency_threshold=150)

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError):
            AlarmCriteria(consistency_method="vibes")

    def test_bad_clock_rejected(self):
        with pytest.raises(ValueError):
            AnalysisWindow.clock("25:00", "08:00")

    def test_bad_timezone_rejected(self):
        with pytest.raises(ValueError):
            AnalysisWindow(timezone="Mars/Olympus_Mons")

    def test_nan_thresholds_rejected(self):
        with pytest.raises(ValueError):
            AlarmCriteria(min_average_speed=float("nan"))
        with pytest.raises(ValueError):
            AlarmCriteria(direction_consistency_threshold=float("nan"))
        with pytest.raises(ValueError):
            AnalysisWindow.trailing(float("nan"))

    def test_from_dict_builds_nested_records(self, caplog):
        criteria = AlarmCriteria.from_dict(
            {
                "min_average_speed": 12,
                "preferred_sector": {"center": -45, "half_width": 40},
                "window": {"mode": "clock", "start": "06:00", "end": "08:00"},
                "snooze": True,
            }
        )
        assert criteria.min_average_speed == 12
        assert criteria.preferred_sector.center == 315.0
        assert criteria.window.mode == "clock"
        assert "snooze" in caplog.text
