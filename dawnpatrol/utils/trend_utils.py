"""
Trend calculation utilities for forecast series.

This module provides the pressure trend classification used by the katabatic
pressure factor, comparing the first and last reading of a trailing window.
"""

from typing import List, Optional, Tuple

import pandas as pd

from dawnpatrol.utils.log_util import app_logger

logger = app_logger(__name__)

TREND_RISING = "rising"
TREND_FALLING = "falling"
TREND_STABLE = "stable"

TREND_ARROWS = {TREND_RISING: "↑", TREND_FALLING: "↓", TREND_STABLE: "→"}


def classify_trend(change: float, epsilon: float) -> str:
    """
    Classify a change as rising, falling or stable.

    :param change: Last reading minus first reading
    :param epsilon: Changes smaller than this (absolute) count as stable
    :return: "rising", "falling" or "stable"
    """
    if abs(change) < epsilon:
        return TREND_STABLE
    return TREND_RISING if change > 0 else TREND_FALLING


def calculate_pressure_trend(
    readings: List[Tuple[pd.Timestamp, float]], epsilon: float
) -> Optional[dict]:
    """
    Calculate pressure trend from timestamped readings.

    :param readings: (timestamp, pressure hPa) pairs in any order
    :param epsilon: Stable band in hPa
    :return: Dict with change, trend, rate_per_hour, first/last readings;
             None when fewer than two readings are available
    """
    if len(readings) < 2:
        logger.debug("Not enough pressure readings for a trend")
        return None

    ordered = sorted(readings, key=lambda r: r[0])
    first_time, first_pressure = ordered[0]
    last_time, last_pressure = ordered[-1]

    change = last_pressure - first_pressure
    hours = (last_time - first_time).total_seconds() / 3600
    rate = change / hours if hours > 0 else 0.0
    trend = classify_trend(change, epsilon)

    logger.debug(
        f"Pressure {trend}: {first_pressure:.1f} -> {last_pressure:.1f} hPa "
        f"(change: {change:+.1f}, rate: {rate:+.2f} hPa/hr)"
    )

    return {
        "change": change,
        "trend": trend,
        "rate_per_hour": rate,
        "first_pressure": first_pressure,
        "last_pressure": last_pressure,
        "first_time": first_time,
        "last_time": last_time,
    }
