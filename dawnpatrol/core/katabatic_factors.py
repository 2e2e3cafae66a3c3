"""
Katabatic factor evaluators.

Six independent evaluators score the conditions for a dawn drainage wind:
precipitation, sky clearness, pressure trend, valley/mountain temperature
differential, and two proxies (wave pattern, atmospheric stability) that
stand in for upper-air physics consumer forecasts do not provide.

Every evaluator has the signature ``(series, criteria, now) -> FactorResult``
and never raises on missing data: it reports ``meets=False`` with zero
confidence instead.
"""

from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from dawnpatrol import config
from dawnpatrol.core.direction_stats import circular_mean
from dawnpatrol.models.katabatic import (
    FACTOR_NAMES,
    FactorResult,
    KatabaticCriteria,
    WeatherPoint,
    WeatherSeries,
)
from dawnpatrol.utils.date_util import clock_window_bounds, to_local, to_timestamp
from dawnpatrol.utils.log_util import app_logger
from dawnpatrol.utils.trend_utils import calculate_pressure_trend
from dawnpatrol.utils.weather_utils import angular_difference

logger = app_logger(__name__)


# ========================================
# Windows
# ========================================
def target_dawn(now, criteria: KatabaticCriteria) -> date:
    """Local date of the next prediction window that has not ended yet."""
    local_now = to_local(to_timestamp(now), criteria.timezone)
    today = local_now.date()
    _, end = clock_window_bounds(
        today, criteria.prediction_start, criteria.prediction_end, criteria.timezone
    )
    return today if local_now < end else today + timedelta(days=1)


def prediction_window(criteria: KatabaticCriteria, day: date) -> Tuple[pd.Timestamp, pd.Timestamp]:
    return clock_window_bounds(
        day, criteria.prediction_start, criteria.prediction_end, criteria.timezone
    )


def clear_sky_window(criteria: KatabaticCriteria, day: date) -> Tuple[pd.Timestamp, pd.Timestamp]:
    return clock_window_bounds(
        day, criteria.clear_sky_start, criteria.clear_sky_end, criteria.timezone
    )


def points_between(
    points: List[WeatherPoint], start: pd.Timestamp, end: pd.Timestamp
) -> List[WeatherPoint]:
    return [p for p in points if start <= p.timestamp <= end]


def _values(points: List[WeatherPoint], attr: str) -> List[float]:
    return [getattr(p, attr) for p in points if getattr(p, attr) is not None]


# ========================================
# Scoring helpers
# ========================================
def margin_confidence(value: float, threshold: float) -> float:
    """
    Confidence from the distance between a value and its threshold.

    Sitting on the threshold gives 50; a margin of a full threshold or more
    on either side gives 100.
    """
    if threshold <= 0:
        return 50.0 if value == threshold else 100.0
    return 50.0 + 50.0 * min(1.0, abs(value - threshold) / threshold)


def linear_score(value: float, good: float, bad: float) -> float:
    """100 at ``good``, 0 at ``bad``, linear in between and clamped."""
    if good == bad:
        return 100.0 if value == good else 0.0
    fraction = (value - bad) / (good - bad)
    return float(np.clip(fraction, 0.0, 1.0) * 100)


def missing_factor(rationale: str, threshold: Optional[float] = None) -> FactorResult:
    logger.warning(f"Factor degraded: {rationale}")
    return FactorResult(
        meets=False,
        confidence=config.MISSING_SIGNAL_CONFIDENCE,
        value=None,
        data_source=config.DATA_ESTIMATED,
        rationale=rationale,
        threshold=threshold,
    )


def _hourly(series: WeatherSeries) -> List[WeatherPoint]:
    return list(series.valley.hourly) + list(series.mountain.hourly)


# ========================================
# Evaluators
# ========================================
def evaluate_precipitation(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> FactorResult:
    """Maximum precipitation probability over the clear-sky and prediction windows."""
    day = target_dawn(now, criteria)
    clear_start, clear_end = clear_sky_window(criteria, day)
    pred_start, pred_end = prediction_window(criteria, day)

    points = [
        p
        for p in _hourly(series)
        if clear_start <= p.timestamp <= clear_end or pred_start <= p.timestamp <= pred_end
    ]
    values = _values(points, "precipitation_probability")
    threshold = criteria.max_precipitation_probability
    if not values:
        return missing_factor("No precipitation forecast for the dawn windows", threshold)

    maximum = float(max(values))
    meets = maximum <= threshold
    return FactorResult(
        meets=meets,
        confidence=margin_confidence(maximum, threshold),
        value=maximum,
        data_source=config.DATA_MEASURED,
        rationale=f"Max precipitation chance {maximum:.0f}% "
        f"{'within' if meets else 'above'} {threshold:.0f}% limit",
        threshold=threshold,
        details={"average": float(np.mean(values)), "sample_count": len(values)},
    )


def evaluate_sky_conditions(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> FactorResult:
    """Clear-sky percentage (100 - cloud cover) over the clear-sky window."""
    day = target_dawn(now, criteria)
    start, end = clear_sky_window(criteria, day)
    values = _values(points_between(_hourly(series), start, end), "cloud_cover")
    threshold = criteria.min_clear_sky
    if not values:
        return missing_factor("No cloud cover forecast for the clear-sky window", threshold)

    cloud_cover = float(np.mean(values))
    clear_sky = 100.0 - cloud_cover
    meets = clear_sky >= threshold
    return FactorResult(
        meets=meets,
        confidence=margin_confidence(clear_sky, threshold),
        value=clear_sky,
        data_source=config.DATA_MEASURED,
        rationale=f"{clear_sky:.0f}% clear sky overnight vs {threshold:.0f}% needed",
        threshold=threshold,
        details={"average_cloud_cover": cloud_cover, "sample_count": len(values)},
    )


def evaluate_pressure_change(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> FactorResult:
    """Valley pressure trend over the hours leading into the prediction window."""
    day = target_dawn(now, criteria)
    pred_start, _ = prediction_window(criteria, day)
    start = pred_start - timedelta(hours=criteria.pressure_window_hours)
    readings = [
        (p.timestamp, p.pressure)
        for p in points_between(series.valley.hourly, start, pred_start)
        if p.pressure is not None
    ]
    threshold = criteria.min_pressure_change
    trend = calculate_pressure_trend(readings, config.PRESSURE_STABLE_EPSILON)
    if trend is None:
        return missing_factor("Not enough valley pressure readings for a trend", threshold)

    change = trend["change"]
    if criteria.pressure_trend == "rising":
        directional = change
    elif criteria.pressure_trend == "falling":
        directional = -change
    else:
        directional = abs(change)

    meets = directional >= threshold
    return FactorResult(
        meets=meets,
        confidence=margin_confidence(directional, threshold),
        value=change,
        data_source=config.DATA_MEASURED,
        rationale=f"Pressure {trend['trend']} {change:+.1f} hPa over "
        f"{criteria.pressure_window_hours:g}h ({criteria.pressure_trend} "
        f"{threshold:.1f} hPa needed)",
        threshold=threshold,
        details={"trend": trend["trend"], "rate_per_hour": trend["rate_per_hour"]},
    )


def _current_temperature(location, fallback: List[WeatherPoint]) -> Optional[float]:
    if location.current is not None and location.current.temperature is not None:
        return location.current.temperature
    values = _values(fallback, "temperature")
    return values[0] if values else None


def evaluate_temperature_differential(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> FactorResult:
    """
    Valley minus mountain temperature.

    A valid historical differential replaces the forecast value and is tagged
    historical-hybrid. The predictor decides whether that earns a bonus.
    """
    day = target_dawn(now, criteria)
    pred_start, pred_end = prediction_window(criteria, day)
    valley = _current_temperature(
        series.valley, points_between(series.valley.hourly, pred_start, pred_end)
    )
    mountain = _current_temperature(
        series.mountain, points_between(series.mountain.hourly, pred_start, pred_end)
    )
    forecast = valley - mountain if valley is not None and mountain is not None else None
    threshold = criteria.min_temperature_differential

    historical = series.historical_differential
    if historical is not None and historical.valid:
        meets = historical.value >= threshold
        return FactorResult(
            meets=meets,
            confidence=historical.confidence,
            value=historical.value,
            data_source=config.DATA_HISTORICAL_HYBRID,
            rationale=f"Historical differential {historical.value:.1f}C vs "
            f"{threshold:.1f}C needed",
            threshold=threshold,
            details={"forecast_value": forecast},
        )

    if forecast is None:
        return missing_factor("Missing valley or mountain temperature", threshold)

    meets = forecast >= threshold
    return FactorResult(
        meets=meets,
        confidence=margin_confidence(forecast, threshold),
        value=forecast,
        data_source=config.DATA_MEASURED,
        rationale=f"Valley {valley:.1f}C minus mountain {mountain:.1f}C = "
        f"{forecast:.1f}C vs {threshold:.1f}C needed",
        threshold=threshold,
        details={"valley": valley, "mountain": mountain},
    )


def _proxy_window(criteria: KatabaticCriteria, now) -> Tuple[pd.Timestamp, pd.Timestamp]:
    day = target_dawn(now, criteria)
    start, _ = clear_sky_window(criteria, day)
    _, end = prediction_window(criteria, day)
    return start, end


def _proxy_result(
    name: str,
    components: Dict[str, Optional[float]],
    threshold: float,
) -> FactorResult:
    available = {k: v for k, v in components.items() if v is not None}
    if not available:
        return missing_factor(f"No upper-air signals available for {name}", threshold)

    score = float(np.mean(list(available.values())))
    confidence = config.PROXY_CONFIDENCE_CAP * len(available) / len(components)
    meets = score >= threshold
    return FactorResult(
        meets=meets,
        confidence=min(confidence, config.PROXY_CONFIDENCE_CAP),
        value=score,
        data_source=config.DATA_ESTIMATED,
        rationale=f"Estimated {name} score {score:.0f} vs {threshold:.0f} "
        f"from {', '.join(sorted(available))}",
        threshold=threshold,
        details={k: round(v, 1) for k, v in available.items()},
    )


def evaluate_wave_pattern(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> FactorResult:
    """
    Mountain wave proxy from transport winds.

    Moderate westerly transport flow favors waves that help drainage winds
    reach the valley floor. This is an estimate, not a Froude number.
    """
    start, end = _proxy_window(criteria, now)
    points = points_between(_hourly(series), start, end)
    speeds = _values(points, "transport_wind_speed")
    directions = _values(points, "transport_wind_direction")

    speed_score = None
    if speeds:
        low, high = config.TRANSPORT_WIND_FAVORABLE
        speed = float(np.mean(speeds))
        outside = max(low - speed, speed - high, 0.0)
        speed_score = max(0.0, 100.0 - outside * config.TRANSPORT_WIND_FALLOFF)

    direction_score = None
    mean_direction = circular_mean(directions) if directions else None
    if mean_direction is not None:
        off = angular_difference(mean_direction, config.WAVE_SECTOR["center"])
        half = config.WAVE_SECTOR["half_width"]
        direction_score = linear_score(off, half, 180.0) if off > half else 100.0

    surface_score = None
    if speed_score is not None or direction_score is not None:
        surface = _values(
            points_between(series.mountain.hourly, start, end), "wind_speed"
        )
        if surface:
            surface_score = linear_score(
                float(np.mean(surface)),
                config.SURFACE_WIND_CALM,
                config.SURFACE_WIND_BREEZY,
            )

    return _proxy_result(
        "wave pattern",
        {
            "transport_speed": speed_score,
            "transport_direction": direction_score,
            "surface_wind": surface_score,
        },
        criteria.min_wave_score,
    )


def evaluate_atmospheric_stability(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> FactorResult:
    """
    Stability proxy from mixing height and dispersion.

    A shallow, poorly mixed boundary layer keeps cold air pooled and draining.
    """
    start, end = _proxy_window(criteria, now)
    points = points_between(_hourly(series), start, end)
    heights = _values(points, "mixing_height")
    dispersion = _values(points, "dispersion_index")

    height_score = (
        linear_score(float(np.mean(heights)), config.MIXING_HEIGHT_SHALLOW, config.MIXING_HEIGHT_DEEP)
        if heights
        else None
    )
    dispersion_score = (
        linear_score(float(np.mean(dispersion)), config.DISPERSION_LOW, config.DISPERSION_HIGH)
        if dispersion
        else None
    )

    surface_score = None
    if height_score is not None or dispersion_score is not None:
        surface = _values(
            points_between(series.valley.hourly, start, end), "wind_speed"
        )
        if surface:
            surface_score = linear_score(
                float(np.mean(surface)),
                config.SURFACE_WIND_CALM,
                config.SURFACE_WIND_BREEZY,
            )

    return _proxy_result(
        "atmospheric stability",
        {
            "mixing_height": height_score,
            "dispersion_index": dispersion_score,
            "surface_wind": surface_score,
        },
        criteria.min_stability_score,
    )


EVALUATORS: Dict[str, Callable[[WeatherSeries, KatabaticCriteria, object], FactorResult]] = {
    "precipitation": evaluate_precipitation,
    "sky_conditions": evaluate_sky_conditions,
    "pressure_change": evaluate_pressure_change,
    "temperature_differential": evaluate_temperature_differential,
    "wave_pattern": evaluate_wave_pattern,
    "atmospheric_stability": evaluate_atmospheric_stability,
}


def evaluate_all(
    series: WeatherSeries, criteria: KatabaticCriteria, now
) -> Dict[str, FactorResult]:
    """Run all six evaluators, keyed by factor name in weight-table order."""
    results = {}
    for name in FACTOR_NAMES:
        results[name] = EVALUATORS[name](series, criteria, now)
        logger.debug(
            f"{name}: meets={results[name].meets} "
            f"confidence={results[name].confidence:.0f} ({results[name].data_source})"
        )
    return results
