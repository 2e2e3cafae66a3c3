"""
Weather utility functions for formatting and angular calculations.

This module provides reusable wind-related calculations and formatting
functions that can be used across the engine.
"""

from typing import Optional

CARDINAL_POINTS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


def normalize_direction(degrees: float) -> float:
    """
    Wrap an angle into [0, 360).

    :param degrees: Any angle in degrees, negative or above 360
    :return: Equivalent angle in [0, 360)
    """
    wrapped = ((degrees % 360) + 360) % 360
    # float modulo can round 359.9999999 up to exactly 360
    return 0.0 if wrapped >= 360 else float(wrapped)


def format_wind_direction(degrees: Optional[float]) -> str:
    """
    Convert wind direction in degrees to a 16-point compass name.

    :param degrees: Wind direction in degrees
    :return: Cardinal direction string (N, NNE, ... NNW), "--" when unknown
    """
    if degrees is None:
        return "--"
    index = int(round(normalize_direction(degrees) / 22.5)) % 16
    return CARDINAL_POINTS[index]


def angular_difference(a: float, b: float) -> float:
    """
    Smallest absolute angle between two directions.

    :return: Difference in degrees within [0, 180]
    """
    diff = abs(normalize_direction(a) - normalize_direction(b))
    return 360.0 - diff if diff > 180 else diff


def is_direction_in_sector(direction: float, center: float, half_width: float) -> bool:
    """
    Check whether a direction lies inside a sector, handling the 0/360 wrap.

    :param direction: Direction to test (degrees)
    :param center: Sector center (degrees)
    :param half_width: Allowed deviation either side of the center (degrees)
    """
    if half_width >= 180:
        return True
    return angular_difference(direction, center) <= half_width


def format_duration_minutes(duration_minutes: float) -> str:
    """
    Format a duration in minutes to a human-readable string.

    :param duration_minutes: Duration in minutes
    :return: Formatted duration string
    """
    if duration_minutes >= 1440:
        return f"{duration_minutes / 1440:.1f}d"
    elif duration_minutes >= 60:
        return f"{duration_minutes / 60:.1f}h"
    else:
        return f"{duration_minutes:.0f}min"
