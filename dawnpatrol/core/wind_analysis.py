"""
Wind condition analysis for the dawn patrol alarm.

Filters samples to the analysis window, scores average speed, direction
consistency and the longest run of qualifying samples, and returns an
AlarmVerdict with a readable explanation.
"""

from dataclasses import replace
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from dawnpatrol import config
from dawnpatrol.core.direction_stats import summarize_directions
from dawnpatrol.core.sample_normalizer import normalize_samples
from dawnpatrol.core.streak import longest_streak
from dawnpatrol.models.wind import AlarmCriteria, AlarmVerdict, AnalysisWindow, WindSample
from dawnpatrol.utils.date_util import clock_window_bounds, to_local, to_timestamp
from dawnpatrol.utils.log_util import app_logger
from dawnpatrol.utils.weather_utils import (
    angular_difference,
    format_wind_direction,
    is_direction_in_sector,
)

logger = app_logger(__name__)


def window_bounds(
    window: AnalysisWindow, reference_time: pd.Timestamp
) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """
    Resolve an analysis window against the reference time.

    Clock windows resolve to the most recent occurrence whose start is not
    after the reference time, so a 22:00-02:00 window evaluated at 01:00
    covers the previous evening.

    :return: (start, end) as UTC Timestamps
    """
    reference_time = to_timestamp(reference_time)
    if window.mode == config.WINDOW_TRAILING:
        return reference_time - timedelta(minutes=window.trailing_minutes), reference_time

    local_ref = to_local(reference_time, window.timezone)
    day = local_ref.date()
    start, end = clock_window_bounds(day, window.start, window.end, window.timezone)
    if start > local_ref:
        start, end = clock_window_bounds(
            day - timedelta(days=1), window.start, window.end, window.timezone
        )
    return start.tz_convert("UTC"), end.tz_convert("UTC")


def filter_to_window(
    samples: Iterable[WindSample],
    window: AnalysisWindow,
    reference_time: pd.Timestamp,
) -> List[WindSample]:
    """Samples inside the window (inclusive) and not after the reference time."""
    reference_time = to_timestamp(reference_time)
    start, end = window_bounds(window, reference_time)
    end = min(end, reference_time)
    return [s for s in samples if start <= s.timestamp <= end]


def _direction_test(criteria: AlarmCriteria, modal: Optional[float]):
    if not criteria.use_wind_direction:
        return lambda direction: True
    sector = criteria.preferred_sector
    if sector is not None:
        return lambda direction: is_direction_in_sector(
            direction, sector.center, sector.half_width
        )
    if modal is None:
        return lambda direction: False
    return (
        lambda direction: angular_difference(direction, modal)
        <= criteria.direction_deviation_threshold
    )


def _mark(passed: bool) -> str:
    return "pass" if passed else "fail"


def analyze(
    samples: Iterable,
    criteria: Optional[AlarmCriteria] = None,
    reference_time=None,
) -> AlarmVerdict:
    """
    Decide whether recent wind is alarm worthy.

    :param samples: Raw records or WindSamples, any order
    :param criteria: AlarmCriteria, defaults when None
    :param reference_time: "Now" for window filtering; when None the latest
                           sample time is used
    :return: AlarmVerdict; an empty window gives a zero verdict, never an error
    """
    criteria = criteria or AlarmCriteria()
    series = normalize_samples(samples)

    reference = to_timestamp(reference_time) if reference_time is not None else None
    if reference is None and reference_time is not None:
        logger.warning(
            f"Unparseable reference time {reference_time!r}, using the latest sample time"
        )
    if reference is None:
        if not series:
            return AlarmVerdict(
                is_alarm_worthy=False,
                average_speed=0.0,
                direction_consistency=0.0,
                consecutive_good_points=0,
                explanation="No wind data available in the analysis window",
            )
        reference = series[-1].timestamp

    start, end = window_bounds(criteria.window, reference)
    in_window = filter_to_window(series, criteria.window, reference)
    logger.debug(
        f"{len(in_window)} of {len(series)} samples inside window {start} - {end}"
    )

    if not in_window:
        return AlarmVerdict(
            is_alarm_worthy=False,
            average_speed=0.0,
            direction_consistency=0.0,
            consecutive_good_points=0,
            explanation=f"No wind data available in the analysis window "
            f"({start.isoformat()} to {end.isoformat()})",
            window_start=start,
            window_end=end,
        )

    average_speed = float(np.mean([s.speed for s in in_window]))
    directions = [s.direction for s in in_window]
    summary = summarize_directions(
        directions,
        method=criteria.consistency_method,
        deviation=criteria.direction_deviation_threshold,
    )

    direction_ok = _direction_test(criteria, summary.modal_direction)
    streak = longest_streak(
        in_window,
        lambda s: s.speed >= criteria.min_average_speed and direction_ok(s.direction),
    )

    speed_ok = average_speed >= criteria.min_average_speed
    consistency_ok = (
        not criteria.use_wind_direction
        or summary.consistency >= criteria.direction_consistency_threshold
    )
    streak_ok = streak >= criteria.min_consecutive_points
    worthy = speed_ok and consistency_ok and streak_ok

    parts = [
        f"average speed {average_speed:.1f} mph vs {criteria.min_average_speed:.1f} "
        f"mph ({_mark(speed_ok)})",
    ]
    if criteria.use_wind_direction:
        parts.append(
            f"direction consistency {summary.consistency:.0f}% vs "
            f"{criteria.direction_consistency_threshold:.0f}% ({_mark(consistency_ok)}), "
            f"mean {format_wind_direction(summary.mean_direction)}"
        )
    else:
        parts.append("direction ignored")
    parts.append(
        f"{streak} consecutive qualifying samples vs "
        f"{criteria.min_consecutive_points} ({_mark(streak_ok)})"
    )
    headline = "Alarm worthy" if worthy else "Not alarm worthy"
    explanation = f"{headline}: " + "; ".join(parts)

    logger.debug(explanation)

    return AlarmVerdict(
        is_alarm_worthy=worthy,
        average_speed=average_speed,
        direction_consistency=summary.consistency,
        consecutive_good_points=streak,
        explanation=explanation,
        mean_direction=summary.mean_direction,
        sample_count=len(in_window),
        window_start=start,
        window_end=end,
    )


def verify_wind_conditions(
    samples: Iterable,
    criteria: Optional[AlarmCriteria] = None,
    reference_time=None,
) -> AlarmVerdict:
    """Run the analysis over the fixed dawn patrol verification window (06:00-08:00)."""
    criteria = criteria or AlarmCriteria()
    window = AnalysisWindow.clock(
        config.VERIFICATION_WINDOW["start"],
        config.VERIFICATION_WINDOW["end"],
        timezone=criteria.window.timezone,
    )
    return analyze(samples, replace(criteria, window=window), reference_time)
