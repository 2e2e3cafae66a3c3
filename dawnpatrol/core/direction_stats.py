"""
Circular statistics for wind directions.

Directions are angles, so 350 and 10 degrees are 20 degrees apart, not 340.
The canonical consistency score is the length of the mean resultant vector;
the modal policy (share of samples near the most common bucket) is kept as a
named alternative.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from dawnpatrol import config
from dawnpatrol.utils.weather_utils import angular_difference, normalize_direction


@dataclass(frozen=True)
class DirectionSummary:
    mean_direction: Optional[float]
    consistency: float
    modal_direction: Optional[float]
    method: str
    sample_count: int


def _resultant(directions: Sequence[float]):
    radians = np.radians(np.asarray(directions, dtype=float))
    return np.mean(np.sin(radians)), np.mean(np.cos(radians))


def circular_mean(directions: Sequence[float]) -> Optional[float]:
    """
    Mean direction from the resultant of unit vectors.

    :param directions: Directions in degrees
    :return: Mean in [0, 360), or None for empty input or a zero resultant
    """
    if len(directions) == 0:
        return None
    sin_mean, cos_mean = _resultant(directions)
    if np.hypot(sin_mean, cos_mean) < 1e-9:
        return None
    return normalize_direction(float(np.degrees(np.arctan2(sin_mean, cos_mean))))


def resultant_consistency(directions: Sequence[float]) -> float:
    """
    Consistency as resultant vector length x 100.

    Fewer than two samples give 0: one reading is no evidence of a steady
    direction.
    """
    if len(directions) < 2:
        return 0.0
    sin_mean, cos_mean = _resultant(directions)
    return float(min(np.hypot(sin_mean, cos_mean), 1.0) * 100)


def _bucket(direction: float, bucket_size: float) -> int:
    # buckets are centred on 0, so 350-10 share bucket 0 for a size of 20
    return int(((normalize_direction(direction) + bucket_size / 2) % 360) // bucket_size)


def modal_direction(
    directions: Sequence[float], bucket_size: float = config.DIRECTION_BUCKET_SIZE
) -> Optional[float]:
    """
    Most frequent direction, bucketed.

    Ties go to the lowest bucket index. The value returned is the circular
    mean of the samples in the winning bucket.
    """
    if len(directions) == 0:
        return None
    buckets = {}
    for d in directions:
        buckets.setdefault(_bucket(d, bucket_size), []).append(d)
    top = max(len(members) for members in buckets.values())
    winner = min(b for b, members in buckets.items() if len(members) == top)
    members = buckets[winner]
    mean = circular_mean(members)
    return mean if mean is not None else normalize_direction(members[0])


def modal_consistency(
    directions: Sequence[float],
    deviation: float = config.DEFAULT_DIRECTION_DEVIATION,
    bucket_size: float = config.DIRECTION_BUCKET_SIZE,
) -> float:
    """Percentage of samples within ``deviation`` degrees of the modal direction."""
    if len(directions) < 2:
        return 0.0
    mode = modal_direction(directions, bucket_size)
    within = sum(1 for d in directions if angular_difference(d, mode) <= deviation)
    return within / len(directions) * 100


def direction_consistency(
    directions: Sequence[float],
    method: str = config.CONSISTENCY_RESULTANT,
    deviation: float = config.DEFAULT_DIRECTION_DEVIATION,
    bucket_size: float = config.DIRECTION_BUCKET_SIZE,
) -> float:
    if method == config.CONSISTENCY_RESULTANT:
        return resultant_consistency(directions)
    if method == config.CONSISTENCY_MODAL:
        return modal_consistency(directions, deviation, bucket_size)
    raise ValueError(f"Unknown consistency method {method!r}")


def summarize_directions(
    directions: Sequence[float],
    method: str = config.CONSISTENCY_RESULTANT,
    deviation: float = config.DEFAULT_DIRECTION_DEVIATION,
    bucket_size: float = config.DIRECTION_BUCKET_SIZE,
) -> DirectionSummary:
    return DirectionSummary(
        mean_direction=circular_mean(directions),
        consistency=direction_consistency(directions, method, deviation, bucket_size),
        modal_direction=modal_direction(directions, bucket_size),
        method=method,
        sample_count=len(directions),
    )
