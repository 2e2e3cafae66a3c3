"""
Katabatic prediction.

Aggregates the six factor results into a probability, a confidence and a
go / maybe / no recommendation using the caller's weight table, then looks
for the best time window inside the dawn prediction window.
"""

from dataclasses import replace
from typing import Dict, Optional, Tuple

from dawnpatrol import config
from dawnpatrol.core.katabatic_factors import (
    evaluate_all,
    evaluate_temperature_differential,
    points_between,
    prediction_window,
    target_dawn,
)
from dawnpatrol.core.sample_normalizer import normalize_weather_series
from dawnpatrol.core.streak import longest_run
from dawnpatrol.models.katabatic import (
    FactorResult,
    KatabaticCriteria,
    KatabaticPrediction,
    TimeWindow,
    WeatherSeries,
)
from dawnpatrol.utils.date_util import to_timestamp
from dawnpatrol.utils.log_util import app_logger

logger = app_logger(__name__)


def normalized_score(result: FactorResult) -> float:
    """A factor contributes its confidence only when it meets its threshold."""
    return result.confidence if result.meets else 0.0


def aggregate(
    factors: Dict[str, FactorResult], criteria: KatabaticCriteria
) -> Tuple[float, float]:
    """
    Weighted probability and confidence.

    Confidence is the weighted blend of factor confidences, reduced by
    ``low_confidence_penalty`` for every low-confidence factor beyond the
    first.

    :return: (probability, confidence), both within [0, 100]
    """
    weights = criteria.weights.as_dict()
    probability = sum(weights[n] * normalized_score(f) for n, f in factors.items()) / 100
    confidence = sum(weights[n] * f.confidence for n, f in factors.items()) / 100

    low = sum(
        1 for f in factors.values() if f.confidence < criteria.low_confidence_threshold
    )
    if low > 1:
        confidence *= max(0.0, 1 - criteria.low_confidence_penalty * (low - 1))
        logger.debug(f"{low} low-confidence factors, blended confidence {confidence:.1f}")

    return min(max(probability, 0.0), 100.0), min(max(confidence, 0.0), 100.0)


def confidence_label(confidence: float) -> str:
    if confidence >= config.HIGH_CONFIDENCE_LABEL:
        return "high"
    if confidence >= config.MEDIUM_CONFIDENCE_LABEL:
        return "medium"
    return "low"


def recommendation(probability: float, confidence: float, criteria: KatabaticCriteria) -> str:
    if probability >= criteria.go_probability and confidence >= criteria.minimum_confidence:
        return "go"
    if probability >= criteria.maybe_probability:
        return "maybe"
    return "no"


def best_time_window(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> Optional[TimeWindow]:
    """
    Longest stretch of consecutive valley hours in the prediction window where
    precipitation and cloud cover stay favorable.
    """
    day = target_dawn(now, criteria)
    start, end = prediction_window(criteria, day)
    points = points_between(series.valley.hourly, start, end)

    def favorable(p) -> bool:
        if p.precipitation_probability is None or p.cloud_cover is None:
            return False
        return (
            p.precipitation_probability <= criteria.max_precipitation_probability
            and 100 - p.cloud_cover >= criteria.min_clear_sky
        )

    run = longest_run(points, favorable)
    if run is None:
        return None
    first, last = run
    return TimeWindow(start=points[first].timestamp, end=points[last].timestamp)


def _explanation(factors: Dict[str, FactorResult], enhancement_applied: bool) -> str:
    favorable = [name.replace("_", " ") for name, f in factors.items() if f.meets]
    estimated = [
        name.replace("_", " ")
        for name, f in factors.items()
        if f.data_source == config.DATA_ESTIMATED
    ]
    parts = [
        f"Favorable: {', '.join(favorable)}" if favorable else "No favorable factors"
    ]
    if estimated:
        parts.append(f"estimated: {', '.join(estimated)}")
    if enhancement_applied:
        parts.append("historical temperature data upgraded the differential")
    return "; ".join(parts)


def predict(series, criteria: Optional[KatabaticCriteria] = None, now=None) -> KatabaticPrediction:
    """
    Predict the chance of a katabatic wind at the next dawn.

    :param series: WeatherSeries or its raw mapping form
    :param criteria: KatabaticCriteria, defaults when None
    :param now: Injected current time; the output is fully determined by the
                inputs and this value
    :return: KatabaticPrediction
    :raises ValueError: when ``now`` is missing or unparseable
    """
    criteria = criteria or KatabaticCriteria()
    now = to_timestamp(now)
    if now is None:
        raise ValueError("predict() needs an explicit 'now' timestamp")
    series = normalize_weather_series(series)

    factors = evaluate_all(series, criteria, now)
    probability, confidence = aggregate(factors, criteria)

    enhancement_applied = False
    probability_bonus = confidence_bonus = 0.0
    temperature = factors["temperature_differential"]
    if (
        temperature.data_source == config.DATA_HISTORICAL_HYBRID
        and temperature.meets
    ):
        baseline = evaluate_temperature_differential(
            replace(series, historical_differential=None), criteria, now
        )
        if not baseline.meets:
            policy = criteria.enhancement
            enhancement_applied = True
            new_probability = min(100.0, probability + policy.probability_bonus)
            new_confidence = min(100.0, confidence + policy.confidence_bonus)
            probability_bonus = new_probability - probability
            confidence_bonus = new_confidence - confidence
            probability, confidence = new_probability, new_confidence
            logger.info(
                f"Historical differential enhancement applied "
                f"(+{probability_bonus:.1f} probability, +{confidence_bonus:.1f} confidence)"
            )

    label = confidence_label(confidence)
    advice = recommendation(probability, confidence, criteria)
    target = target_dawn(now, criteria)

    logger.debug(
        f"Katabatic prediction for {target}: {probability:.1f}% "
        f"({label} confidence {confidence:.1f}) -> {advice}"
    )

    return KatabaticPrediction(
        probability=probability,
        confidence=confidence,
        confidence_label=label,
        recommendation=advice,
        factors=factors,
        best_time_window=best_time_window(series, criteria, now),
        generated_at=now,
        target_date=target,
        explanation=_explanation(factors, enhancement_applied),
        enhancement_applied=enhancement_applied,
        probability_bonus=probability_bonus,
        confidence_bonus=confidence_bonus,
    )
