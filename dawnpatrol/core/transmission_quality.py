"""
Transmission quality analysis for sensor stations.

Classifies each report by which expected sensor fields it carried, finds
intervals where the station went silent or sent incomplete data, and rolls
everything up into a StationHealth summary.

Note the two kinds of flags on StationHealth: the "ever" flags are ORed over
the whole series, the current status only looks at the newest sample.
"""

from typing import Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from dawnpatrol import config
from dawnpatrol.models.wind import (
    StationHealth,
    TransmissionGap,
    TransmissionQuality,
    WindSample,
)
from dawnpatrol.utils.log_util import app_logger
from dawnpatrol.utils.record_util import first_present

logger = app_logger(__name__)

WIND_KEYS = config.FIELD_ALIASES["speed_mph"] + config.FIELD_ALIASES["speed_ms"]
SENSOR_KEYS = {
    config.FIELD_WIND: WIND_KEYS,
    config.FIELD_OUTDOOR_TEMPERATURE: config.FIELD_ALIASES["temperature"],
    config.FIELD_OUTDOOR_HUMIDITY: config.FIELD_ALIASES["humidity"],
}


def quality_from_missing(missing: Iterable[str]) -> TransmissionQuality:
    missing = frozenset(missing)
    return TransmissionQuality(
        is_full_transmission=not missing,
        has_outdoor_sensors=config.FIELD_OUTDOOR_TEMPERATURE not in missing
        and config.FIELD_OUTDOOR_HUMIDITY not in missing,
        missing_data_fields=missing,
    )


def classify(record) -> TransmissionQuality:
    """
    Classify a single report by which expected fields are present.

    An explicit transmission quality on the record wins; otherwise the wind,
    outdoor temperature and outdoor humidity fields are checked for null-ness.
    A WindSample without an attached quality cannot report missing wind,
    since its speed is already coerced to a number; only hand-built samples
    lack one, the normalizer always attaches it.

    :param record: Raw mapping or WindSample
    :return: TransmissionQuality
    """
    if isinstance(record, WindSample):
        if record.quality is not None:
            return record.quality
        missing = set()
        if record.temperature is None:
            missing.add(config.FIELD_OUTDOOR_TEMPERATURE)
        if record.humidity is None:
            missing.add(config.FIELD_OUTDOOR_HUMIDITY)
        return quality_from_missing(missing)

    if not isinstance(record, Mapping):
        return quality_from_missing(config.EXPECTED_FIELDS)

    explicit = first_present(record, config.FIELD_ALIASES["quality"])
    if isinstance(explicit, TransmissionQuality):
        return explicit
    if isinstance(explicit, Mapping):
        return TransmissionQuality.from_dict(explicit)

    missing = [
        name for name, keys in SENSOR_KEYS.items() if first_present(record, keys) is None
    ]
    return quality_from_missing(missing)


def _frame(samples: Sequence[WindSample]) -> pd.DataFrame:
    rows = []
    for s in samples:
        quality = classify(s)
        rows.append(
            {
                "timestamp": s.timestamp,
                "missing": quality.missing_data_fields,
                "degraded": not quality.is_full_transmission,
            }
        )
    return pd.DataFrame(rows).sort_values("timestamp").reset_index(drop=True)


def _temporal_gaps(df: pd.DataFrame, threshold_minutes: float) -> List[TransmissionGap]:
    time_diffs = df["timestamp"].diff().dt.total_seconds().div(60).astype(float)
    gap_mask = time_diffs.gt(float(threshold_minutes))

    starts = df["timestamp"].shift(1)[gap_mask]
    ends = df["timestamp"][gap_mask]
    durations = time_diffs[gap_mask]

    return [
        TransmissionGap(
            gap_type=config.GAP_FULL_OUTAGE,
            start_time=start,
            end_time=end,
            duration_minutes=float(duration),
            affected_sensors=frozenset(config.EXPECTED_FIELDS),
        )
        for start, end, duration in zip(starts, ends, durations)
    ]


def _degraded_gaps(df: pd.DataFrame, threshold_minutes: float) -> List[TransmissionGap]:
    gaps = []
    run_start = None
    run_missing = []

    def close_run(end_time):
        duration = (end_time - df.at[run_start, "timestamp"]).total_seconds() / 60
        if duration < threshold_minutes:
            return
        all_missing = all(
            set(config.EXPECTED_FIELDS) <= set(m) for m in run_missing
        )
        gaps.append(
            TransmissionGap(
                gap_type=config.GAP_FULL_OUTAGE
                if all_missing
                else config.GAP_PARTIAL_DEGRADATION,
                start_time=df.at[run_start, "timestamp"],
                end_time=end_time,
                duration_minutes=duration,
                affected_sensors=frozenset().union(*run_missing),
            )
        )

    for i, row in df.iterrows():
        if row["degraded"]:
            if run_start is None:
                run_start = i
                run_missing = []
            run_missing.append(row["missing"])
        elif run_start is not None:
            # the run lasts until the station reports complete data again
            close_run(row["timestamp"])
            run_start = None

    if run_start is not None:
        close_run(df["timestamp"].iloc[-1])
    return gaps


def merge_gaps(gaps: Iterable[TransmissionGap]) -> List[TransmissionGap]:
    """Merge overlapping or touching gaps. Full outage wins, sensors are unioned."""
    merged = []
    for gap in sorted(gaps, key=lambda g: (g.start_time, g.end_time)):
        if merged and gap.start_time <= merged[-1].end_time:
            last = merged[-1]
            end = max(last.end_time, gap.end_time)
            merged[-1] = TransmissionGap(
                gap_type=config.GAP_FULL_OUTAGE
                if config.GAP_FULL_OUTAGE in (last.gap_type, gap.gap_type)
                else config.GAP_PARTIAL_DEGRADATION,
                start_time=last.start_time,
                end_time=end,
                duration_minutes=(end - last.start_time).total_seconds() / 60,
                affected_sensors=last.affected_sensors | gap.affected_sensors,
            )
        else:
            merged.append(gap)
    return merged


def detect_transmission_gaps(
    samples: Sequence[WindSample],
    threshold_minutes: float = config.GAP_THRESHOLD_MINUTES,
) -> List[TransmissionGap]:
    """
    Find transmission gaps in a station series.

    Two sources are combined: silences between consecutive reports longer
    than the threshold (full outages), and runs of incomplete reports lasting
    at least the threshold.

    :param samples: WindSamples in any order
    :param threshold_minutes: Minimum gap length in minutes
    :return: Merged gaps ordered by start time
    """
    if len(samples) == 0:
        return []

    df = _frame(samples)
    gaps = merge_gaps(
        _temporal_gaps(df, threshold_minutes) + _degraded_gaps(df, threshold_minutes)
    )
    if gaps:
        logger.debug(
            f"Detected {len(gaps)} transmission gaps, "
            f"longest {max(g.duration_minutes for g in gaps):.0f} min"
        )
    return gaps


def current_status(quality: Optional[TransmissionQuality]) -> str:
    if quality is None or config.FIELD_WIND in quality.missing_data_fields:
        return config.STATUS_OFFLINE
    if quality.is_full_transmission:
        return config.STATUS_GOOD
    return config.STATUS_PARTIAL


def summarize(
    samples: Sequence[WindSample],
    threshold_minutes: float = config.GAP_THRESHOLD_MINUTES,
) -> StationHealth:
    """
    Summarize station health over a series.

    ``current_transmission_status`` is derived from the latest sample only:
    one perfect report an hour ago followed by an empty one now is "offline"
    even though ``is_full_transmission`` is True for the series.

    :param samples: WindSamples in any order
    :param threshold_minutes: Gap threshold in minutes
    :return: StationHealth; an empty series is offline with all flags False
    """
    if len(samples) == 0:
        return StationHealth(
            is_full_transmission=False,
            has_outdoor_sensors=False,
            has_wind_data=False,
            has_complete_sensor_data=False,
            last_good_transmission_time=None,
            transmission_gaps=[],
            current_transmission_status=config.STATUS_OFFLINE,
        )

    ordered = sorted(samples, key=lambda s: s.timestamp)
    qualities = [classify(s) for s in ordered]

    good_times = [
        s.timestamp for s, q in zip(ordered, qualities) if q.is_full_transmission
    ]
    status = current_status(qualities[-1])
    if status != config.STATUS_GOOD:
        logger.warning(
            f"Station transmission {status}: latest sample missing "
            f"{sorted(qualities[-1].missing_data_fields)}"
        )

    return StationHealth(
        is_full_transmission=any(q.is_full_transmission for q in qualities),
        has_outdoor_sensors=any(q.has_outdoor_sensors for q in qualities),
        has_wind_data=any(config.FIELD_WIND not in q.missing_data_fields for q in qualities),
        has_complete_sensor_data=all(q.is_full_transmission for q in qualities),
        last_good_transmission_time=good_times[-1] if good_times else None,
        transmission_gaps=detect_transmission_gaps(ordered, threshold_minutes),
        current_transmission_status=status,
    )
