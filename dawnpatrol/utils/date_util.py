from datetime import date, datetime, time, timedelta
from numbers import Real
from typing import Optional, Tuple

import pandas as pd
import pytz
from dateutil import parser

from dawnpatrol.utils.log_util import app_logger

logger = app_logger(__name__)

# Epoch values above this are milliseconds (dateutc style), below are seconds
EPOCH_MS_CUTOFF = 100_000_000_000


def to_timestamp(value) -> Optional[pd.Timestamp]:
    """
    Coerce a timestamp-like value into a UTC-aware pandas Timestamp.

    Accepts epoch numbers (milliseconds or seconds), ISO strings, datetimes and
    Timestamps. Naive values are taken as UTC.

    :param value: Timestamp-like value.
    :return: pd.Timestamp in UTC, or None when the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, Real):
            if pd.isna(value):
                return None
            unit = "ms" if abs(value) >= EPOCH_MS_CUTOFF else "s"
            return pd.Timestamp(value, unit=unit, tz="UTC")

        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                number = float(text)
            except ValueError:
                ts = pd.Timestamp(parser.parse(text))
            else:
                return to_timestamp(number)
        else:
            ts = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Unparseable timestamp {value!r}: {e}")
        return None

    if ts is pd.NaT:
        return None
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def parse_clock(clock: str) -> Tuple[int, int]:
    """
    Parse an "HH:MM" local clock string.

    :param clock: str - Clock time such as "06:00".
    :return: (hour, minute)
    :raises ValueError: when the string is not a valid 24h clock time.
    """
    try:
        hour_text, minute_text = str(clock).split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid clock time {clock!r}, expected HH:MM")

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid clock time {clock!r}, expected HH:MM")
    return hour, minute


def to_local(ts: pd.Timestamp, tz_name: str) -> pd.Timestamp:
    """Convert a timestamp to the given timezone (naive values are UTC)."""
    ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.tz_convert(pytz.timezone(tz_name))


def local_datetime(day: date, clock: str, tz_name: str) -> pd.Timestamp:
    """Localized Timestamp for a clock time on a calendar day (DST aware)."""
    hour, minute = parse_clock(clock)
    tz = pytz.timezone(tz_name)
    return pd.Timestamp(tz.localize(datetime.combine(day, time(hour, minute))))


def clock_window_bounds(
    day: date, start: str, end: str, tz_name: str
) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """
    Bounds of a local clock window that ends on ``day``.

    Windows whose end is not after their start (e.g. 22:00-02:00) begin on the
    previous calendar day.

    :return: (start, end) localized Timestamps.
    """
    window_end = local_datetime(day, end, tz_name)
    window_start = local_datetime(day, start, tz_name)
    if window_start >= window_end:
        window_start = local_datetime(day - timedelta(days=1), start, tz_name)
    return window_start, window_end


def clock_minutes(clock: str) -> int:
    """Minutes after midnight for an "HH:MM" string."""
    hour, minute = parse_clock(clock)
    return hour * 60 + minute


def minutes_of_day(ts: pd.Timestamp) -> int:
    return ts.hour * 60 + ts.minute


def to_iso(ts: Optional[pd.Timestamp]) -> Optional[str]:
    """ISO-8601 text for a timestamp, None passes through."""
    if ts is None:
        return None
    return pd.Timestamp(ts).isoformat()
