"""
Sample normalization for station and forecast records.

Raw records arrive with speeds and directions as numbers or text, in mph or
m/s, with sensor fields that may be absent. Everything is coerced here so
the analyzers only ever see WindSample and WeatherSeries values.
"""

from typing import Iterable, List, Mapping, Optional

import numpy as np

from dawnpatrol import config
from dawnpatrol.core.transmission_quality import classify
from dawnpatrol.models.katabatic import (
    HistoricalDifferential,
    LocationForecast,
    WeatherPoint,
    WeatherSeries,
)
from dawnpatrol.models.wind import TransmissionQuality, WindSample
from dawnpatrol.utils.date_util import to_timestamp
from dawnpatrol.utils.log_util import app_logger
from dawnpatrol.utils.record_util import first_present, is_missing
from dawnpatrol.utils.weather_utils import normalize_direction

logger = app_logger(__name__)


def coerce_float(value, default: Optional[float] = 0.0) -> Optional[float]:
    """
    Convert a numeric or textual value to float.

    :param value: Raw value ("12.5", 12.5, None, "n/a", ...)
    :param default: Returned when the value is missing or not numeric
    :return: float, or ``default``
    """
    if is_missing(value) or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric value {value!r}, using {default}")
        return default
    if not np.isfinite(number):
        return default
    return number


def _speed_mph(record: Mapping, mph_key: str, ms_key: str) -> float:
    # Prefer the station's own mph value over re-deriving it from m/s
    mph = first_present(record, config.FIELD_ALIASES[mph_key])
    if mph is not None:
        return max(coerce_float(mph), 0.0)
    metric = first_present(record, config.FIELD_ALIASES[ms_key])
    if metric is not None:
        return max(coerce_float(metric) * config.MPS_TO_MPH, 0.0)
    return 0.0


def _quality(record: Mapping) -> TransmissionQuality:
    raw = first_present(record, config.FIELD_ALIASES["quality"])
    if isinstance(raw, TransmissionQuality):
        return raw
    if isinstance(raw, Mapping):
        return TransmissionQuality.from_dict(raw)
    return classify(record)


def normalize_sample(record) -> Optional[WindSample]:
    """
    Coerce one raw station record into a WindSample.

    Non-numeric speed, gust or direction become 0. Temperature and humidity
    stay None when absent. Records without a usable timestamp are dropped.

    :param record: Mapping (raw JSON record) or an existing WindSample
    :return: WindSample, or None when the record is not a mapping or its
             timestamp cannot be parsed
    """
    if isinstance(record, WindSample):
        return record
    if not isinstance(record, Mapping):
        logger.warning(f"Dropping sample that is not a record: {type(record).__name__}")
        return None

    raw_time = first_present(record, config.FIELD_ALIASES["timestamp"])
    timestamp = to_timestamp(raw_time)
    if timestamp is None:
        logger.warning(f"Dropping sample with unparseable timestamp: {raw_time!r}")
        return None

    speed = _speed_mph(record, "speed_mph", "speed_ms")
    gust = max(_speed_mph(record, "gust_mph", "gust_ms"), speed)
    direction = normalize_direction(
        coerce_float(first_present(record, config.FIELD_ALIASES["direction"]))
    )

    return WindSample(
        timestamp=timestamp,
        speed=speed,
        gust=gust,
        direction=direction,
        temperature=coerce_float(
            first_present(record, config.FIELD_ALIASES["temperature"]), None
        ),
        humidity=coerce_float(
            first_present(record, config.FIELD_ALIASES["humidity"]), None
        ),
        quality=_quality(record),
    )


def normalize_samples(records: Iterable) -> List[WindSample]:
    """Normalize a batch of records, dropping unusable ones, sorted by time."""
    samples = []
    dropped = 0
    for record in records or []:
        sample = normalize_sample(record)
        if sample is None:
            dropped += 1
        else:
            samples.append(sample)

    samples.sort(key=lambda s: s.timestamp)
    logger.debug(f"Normalized {len(samples)} samples ({dropped} dropped)")
    return samples


# ========================================
# Forecast series
# ========================================
def normalize_weather_point(record) -> Optional[WeatherPoint]:
    if isinstance(record, WeatherPoint):
        return record
    if not isinstance(record, Mapping):
        return None

    aliases = config.WEATHER_FIELD_ALIASES
    timestamp = to_timestamp(first_present(record, aliases["timestamp"]))
    if timestamp is None:
        logger.warning("Dropping forecast point without a usable timestamp")
        return None

    values = {}
    for name, keys in aliases.items():
        if name == "timestamp":
            continue
        raw = first_present(record, keys)
        # absent stays None (missing signal); present but garbled becomes 0
        values[name] = None if raw is None else coerce_float(raw)

    for name in ("wind_direction", "transport_wind_direction"):
        if values[name] is not None:
            values[name] = normalize_direction(values[name])

    return WeatherPoint(timestamp=timestamp, **values)


def _normalize_location(raw, default_name: str) -> LocationForecast:
    if isinstance(raw, LocationForecast):
        return raw
    if not isinstance(raw, Mapping):
        raw = {}
    hourly = [
        p for p in (normalize_weather_point(r) for r in raw.get("hourly") or []) if p
    ]
    hourly.sort(key=lambda p: p.timestamp)
    current = raw.get("current")
    return LocationForecast(
        name=str(raw.get("name") or default_name),
        current=normalize_weather_point(current) if current else None,
        hourly=hourly,
    )


def normalize_weather_series(raw) -> WeatherSeries:
    """
    Coerce the katabatic input into a WeatherSeries.

    :param raw: Mapping with ``valley`` and ``mountain`` locations (each with
                ``current`` and ``hourly``) and an optional
                ``historical_differential`` {value, confidence, valid}.
    :return: WeatherSeries; missing parts become empty forecasts
    """
    if isinstance(raw, WeatherSeries):
        return raw
    if not isinstance(raw, Mapping):
        if raw:
            logger.warning(f"Ignoring forecast input of type {type(raw).__name__}")
        raw = {}

    historical = None
    hist_raw = raw.get("historical_differential")
    if isinstance(hist_raw, HistoricalDifferential):
        historical = hist_raw
    elif isinstance(hist_raw, Mapping) and not is_missing(hist_raw.get("value")):
        historical = HistoricalDifferential(
            value=coerce_float(hist_raw.get("value")),
            confidence=min(max(coerce_float(hist_raw.get("confidence")), 0.0), 100.0),
            valid=bool(hist_raw.get("valid", True)),
        )

    return WeatherSeries(
        valley=_normalize_location(raw.get("valley"), "valley"),
        mountain=_normalize_location(raw.get("mountain"), "mountain"),
        historical_differential=historical,
    )
