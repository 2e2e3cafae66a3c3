"""
Wind sample models, alarm criteria and station health records.

This module provides the type-safe value objects passed between the sample
normalizer, the wind condition analyzer and the transmission quality
analyzer. Everything here is created fresh per analysis call.
"""

import math
from dataclasses import dataclass, field, fields
from typing import FrozenSet, List, Mapping, Optional

import pandas as pd
import pytz

from dawnpatrol import config
from dawnpatrol.utils.date_util import parse_clock, to_iso
from dawnpatrol.utils.log_util import app_logger
from dawnpatrol.utils.weather_utils import normalize_direction

logger = app_logger(__name__)


def filter_known_fields(cls, mapping: Mapping) -> dict:
    """
    Keep only keys that are dataclass fields of ``cls``.

    Unknown keys are logged and dropped so a stale config file does not break
    loading.
    """
    names = {f.name for f in fields(cls)}
    unknown = sorted(k for k in mapping if k not in names)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {unknown}")
    return {k: v for k, v in mapping.items() if k in names}


def validate_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value}")


def validate_non_negative(name: str, value: float) -> None:
    validate_finite(name, value)
    if value < 0:
        raise ValueError(f"{name} cannot be negative, got {value}")


def validate_percentage(name: str, value: float) -> None:
    validate_finite(name, value)
    if not 0 <= value <= 100:
        raise ValueError(f"{name} must be within [0, 100], got {value}")


def validate_timezone(name: str) -> None:
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone {name!r}")


@dataclass(frozen=True)
class TransmissionQuality:
    """Completeness of a single station report."""

    is_full_transmission: bool
    has_outdoor_sensors: bool
    missing_data_fields: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "is_full_transmission": self.is_full_transmission,
            "has_outdoor_sensors": self.has_outdoor_sensors,
            "missing_data_fields": sorted(self.missing_data_fields),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "TransmissionQuality":
        """Build from snake_case or camelCase keys (station feeds use camelCase)."""
        missing = data.get("missing_data_fields", data.get("missingDataFields")) or []
        full = data.get("is_full_transmission", data.get("isFullTransmission"))
        outdoor = data.get("has_outdoor_sensors", data.get("hasOutdoorSensors"))
        missing = frozenset(str(m) for m in missing)
        return cls(
            is_full_transmission=bool(full) if full is not None else not missing,
            has_outdoor_sensors=bool(outdoor)
            if outdoor is not None
            else not (
                {config.FIELD_OUTDOOR_TEMPERATURE, config.FIELD_OUTDOOR_HUMIDITY}
                & missing
            ),
            missing_data_fields=missing,
        )


@dataclass(frozen=True)
class WindSample:
    """One normalized wind observation. Speeds in mph, direction in [0, 360)."""

    timestamp: pd.Timestamp
    speed: float
    gust: float
    direction: float
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    quality: Optional[TransmissionQuality] = None


@dataclass(frozen=True)
class DirectionSector:
    """Preferred wind sector: center +/- half_width degrees."""

    center: float
    half_width: float

    def __post_init__(self):
        if not 0 <= self.half_width <= 180:
            raise ValueError(
                f"Sector half width must be within [0, 180], got {self.half_width}"
            )
        object.__setattr__(self, "center", normalize_direction(self.center))


@dataclass(frozen=True)
class AnalysisWindow:
    """
    Look-back window for the alarm analysis.

    ``trailing`` keeps samples from the last ``trailing_minutes`` before the
    reference time; ``clock`` keeps samples inside a fixed local clock range.
    """

    mode: str = config.WINDOW_TRAILING
    trailing_minutes: int = config.DEFAULT_TRAILING_MINUTES
    start: str = "03:00"
    end: str = "05:00"
    timezone: str = config.DEFAULT_TIMEZONE

    def __post_init__(self):
        if self.mode not in config.WINDOW_MODES:
            raise ValueError(
                f"Unknown window mode {self.mode!r}, expected one of {config.WINDOW_MODES}"
            )
        validate_finite("trailing_minutes", self.trailing_minutes)
        if self.trailing_minutes <= 0:
            raise ValueError("trailing_minutes must be positive")
        parse_clock(self.start)
        parse_clock(self.end)
        validate_timezone(self.timezone)

    @classmethod
    def trailing(cls, minutes: int, timezone: str = config.DEFAULT_TIMEZONE):
        return cls(mode=config.WINDOW_TRAILING, trailing_minutes=minutes, timezone=timezone)

    @classmethod
    def clock(cls, start: str, end: str, timezone: str = config.DEFAULT_TIMEZONE):
        return cls(mode=config.WINDOW_CLOCK, start=start, end=end, timezone=timezone)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "trailing_minutes": self.trailing_minutes,
            "start": self.start,
            "end": self.end,
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class AlarmCriteria:
    """Thresholds deciding whether the wind is good enough to sound the alarm."""

    min_average_speed: float = config.DEFAULT_MIN_AVERAGE_SPEED
    direction_consistency_threshold: float = config.DEFAULT_DIRECTION_CONSISTENCY
    min_consecutive_points: int = config.DEFAULT_MIN_CONSECUTIVE_POINTS
    direction_deviation_threshold: float = config.DEFAULT_DIRECTION_DEVIATION
    preferred_sector: Optional[DirectionSector] = None
    window: AnalysisWindow = field(default_factory=AnalysisWindow)
    use_wind_direction: bool = True
    consistency_method: str = config.CONSISTENCY_RESULTANT

    def __post_init__(self):
        validate_non_negative("min_average_speed", self.min_average_speed)
        validate_percentage(
            "direction_consistency_threshold", self.direction_consistency_threshold
        )
        validate_non_negative("min_consecutive_points", self.min_consecutive_points)
        if not 0 <= self.direction_deviation_threshold <= 180:
            raise ValueError("direction_deviation_threshold must be within [0, 180]")
        if self.consistency_method not in config.CONSISTENCY_METHODS:
            raise ValueError(
                f"Unknown consistency method {self.consistency_method!r}, "
                f"expected one of {config.CONSISTENCY_METHODS}"
            )

    @classmethod
    def from_dict(cls, data: Mapping) -> "AlarmCriteria":
        """
        Load criteria from a plain mapping (e.g. parsed JSON settings).

        :param data: Mapping with snake_case keys; ``preferred_sector`` and
                     ``window`` may be nested mappings.
        :return: Validated AlarmCriteria
        :raises ValueError: on invalid values
        """
        kwargs = filter_known_fields(cls, data)
        sector = kwargs.get("preferred_sector")
        if isinstance(sector, Mapping):
            kwargs["preferred_sector"] = DirectionSector(**filter_known_fields(DirectionSector, sector))
        window = kwargs.get("window")
        if isinstance(window, Mapping):
            kwargs["window"] = AnalysisWindow(**filter_known_fields(AnalysisWindow, window))
        return cls(**kwargs)


@dataclass(frozen=True)
class AlarmVerdict:
    """Result of one alarm analysis; never mutated after creation."""

    is_alarm_worthy: bool
    average_speed: float
    direction_consistency: float
    consecutive_good_points: int
    explanation: str
    mean_direction: Optional[float] = None
    sample_count: int = 0
    window_start: Optional[pd.Timestamp] = None
    window_end: Optional[pd.Timestamp] = None

    def to_dict(self) -> dict:
        return {
            "is_alarm_worthy": self.is_alarm_worthy,
            "average_speed": self.average_speed,
            "direction_consistency": self.direction_consistency,
            "consecutive_good_points": self.consecutive_good_points,
            "explanation": self.explanation,
            "mean_direction": self.mean_direction,
            "sample_count": self.sample_count,
            "window_start": to_iso(self.window_start),
            "window_end": to_iso(self.window_end),
        }


@dataclass(frozen=True)
class TransmissionGap:
    """Interval during which the station sent nothing or incomplete data."""

    gap_type: str
    start_time: pd.Timestamp
    end_time: pd.Timestamp
    duration_minutes: float
    affected_sensors: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "type": self.gap_type,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "duration_minutes": self.duration_minutes,
            "affected_sensors": sorted(self.affected_sensors),
        }


@dataclass(frozen=True)
class StationHealth:
    """
    Aggregate transmission health of a station.

    ``is_full_transmission`` and ``has_outdoor_sensors`` are OR flags over the
    whole series: they say the station *can* deliver, not that it currently
    does. ``current_transmission_status`` only looks at the latest sample, so
    a station can report ``is_full_transmission=True`` and ``offline`` at the
    same time.
    """

    is_full_transmission: bool
    has_outdoor_sensors: bool
    has_wind_data: bool
    has_complete_sensor_data: bool
    last_good_transmission_time: Optional[pd.Timestamp]
    transmission_gaps: List[TransmissionGap]
    current_transmission_status: str

    def to_dict(self) -> dict:
        return {
            "is_full_transmission": self.is_full_transmission,
            "has_outdoor_sensors": self.has_outdoor_sensors,
            "has_wind_data": self.has_wind_data,
            "has_complete_sensor_data": self.has_complete_sensor_data,
            "last_good_transmission_time": to_iso(self.last_good_transmission_time),
            "transmission_gaps": [g.to_dict() for g in self.transmission_gaps],
            "current_transmission_status": self.current_transmission_status,
        }
