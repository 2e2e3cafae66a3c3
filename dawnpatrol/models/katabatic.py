"""
Katabatic forecast inputs, criteria and prediction records.

The forecast side of the engine works on two locations (valley and mountain),
each with a current reading and an hourly series, and produces a
KatabaticPrediction built from six FactorResults.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional

import pandas as pd

from dawnpatrol import config
from dawnpatrol.models.wind import (
    filter_known_fields,
    validate_finite,
    validate_non_negative,
    validate_percentage,
    validate_timezone,
)
from dawnpatrol.utils.date_util import parse_clock, to_iso, to_timestamp

FACTOR_NAMES = tuple(config.FACTOR_WEIGHTS)


@dataclass(frozen=True)
class WeatherPoint:
    """
    One forecast or observed weather reading.

    Core fields are None when the provider did not send them. The transport
    wind, mixing height and dispersion fields are optional upper-level
    signals only some providers expose.
    """

    timestamp: pd.Timestamp
    temperature: Optional[float] = None  # C
    pressure: Optional[float] = None  # hPa
    precipitation_probability: Optional[float] = None  # percent
    cloud_cover: Optional[float] = None  # percent
    wind_speed: Optional[float] = None  # m/s
    wind_direction: Optional[float] = None
    humidity: Optional[float] = None
    transport_wind_speed: Optional[float] = None  # m/s
    transport_wind_direction: Optional[float] = None
    mixing_height: Optional[float] = None  # m
    dispersion_index: Optional[float] = None


@dataclass(frozen=True)
class LocationForecast:
    name: str
    current: Optional[WeatherPoint] = None
    hourly: List[WeatherPoint] = field(default_factory=list)


@dataclass(frozen=True)
class HistoricalDifferential:
    """Temperature differential derived from historical station data."""

    value: float
    confidence: float
    valid: bool = True

    def __post_init__(self):
        validate_percentage("historical differential confidence", self.confidence)


@dataclass(frozen=True)
class WeatherSeries:
    """Complete katabatic input: valley and mountain forecasts."""

    valley: LocationForecast
    mountain: LocationForecast
    historical_differential: Optional[HistoricalDifferential] = None


@dataclass(frozen=True)
class FactorWeights:
    """Per-factor weights in percent. Must sum to 100."""

    precipitation: float = config.FACTOR_WEIGHTS["precipitation"]
    sky_conditions: float = config.FACTOR_WEIGHTS["sky_conditions"]
    pressure_change: float = config.FACTOR_WEIGHTS["pressure_change"]
    temperature_differential: float = config.FACTOR_WEIGHTS["temperature_differential"]
    wave_pattern: float = config.FACTOR_WEIGHTS["wave_pattern"]
    atmospheric_stability: float = config.FACTOR_WEIGHTS["atmospheric_stability"]

    def __post_init__(self):
        weights = self.as_dict()
        for name, weight in weights.items():
            validate_non_negative(f"{name} weight", weight)
        total = sum(weights.values())
        if abs(total - 100.0) > config.WEIGHT_TOLERANCE:
            raise ValueError(f"Factor weights must sum to 100, got {total:.2f}")

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in FACTOR_NAMES}


@dataclass(frozen=True)
class EnhancementPolicy:
    """
    Bonus applied when a historical differential turns a failing temperature
    factor into a passing one.
    """

    probability_bonus: float = config.ENHANCEMENT_PROBABILITY_BONUS
    confidence_bonus: float = config.ENHANCEMENT_CONFIDENCE_BONUS
    max_bonus: float = config.ENHANCEMENT_MAX_BONUS

    def __post_init__(self):
        validate_percentage("max_bonus", self.max_bonus)
        for name in ("probability_bonus", "confidence_bonus"):
            value = getattr(self, name)
            validate_finite(name, value)
            if not 0 <= value <= self.max_bonus:
                raise ValueError(
                    f"{name} must be within [0, {self.max_bonus}], got {value}"
                )


@dataclass(frozen=True)
class KatabaticCriteria:
    """Thresholds, windows and aggregation policy for the katabatic prediction."""

    max_precipitation_probability: float = config.DEFAULT_MAX_PRECIPITATION_PROBABILITY
    min_clear_sky: float = config.DEFAULT_MIN_CLEAR_SKY
    min_pressure_change: float = config.DEFAULT_MIN_PRESSURE_CHANGE
    min_temperature_differential: float = config.DEFAULT_MIN_TEMPERATURE_DIFFERENTIAL
    min_wave_score: float = config.DEFAULT_MIN_WAVE_SCORE
    min_stability_score: float = config.DEFAULT_MIN_STABILITY_SCORE
    minimum_confidence: float = config.DEFAULT_MINIMUM_CONFIDENCE
    clear_sky_start: str = config.CLEAR_SKY_WINDOW["start"]
    clear_sky_end: str = config.CLEAR_SKY_WINDOW["end"]
    prediction_start: str = config.PREDICTION_WINDOW["start"]
    prediction_end: str = config.PREDICTION_WINDOW["end"]
    pressure_window_hours: float = config.DEFAULT_PRESSURE_WINDOW_HOURS
    pressure_trend: str = config.DEFAULT_PRESSURE_TREND
    timezone: str = config.DEFAULT_TIMEZONE
    weights: FactorWeights = field(default_factory=FactorWeights)
    enhancement: EnhancementPolicy = field(default_factory=EnhancementPolicy)
    low_confidence_threshold: float = config.LOW_CONFIDENCE_THRESHOLD
    low_confidence_penalty: float = config.LOW_CONFIDENCE_PENALTY
    go_probability: float = config.GO_PROBABILITY
    maybe_probability: float = config.MAYBE_PROBABILITY

    def __post_init__(self):
        for name in (
            "max_precipitation_probability",
            "min_clear_sky",
            "min_wave_score",
            "min_stability_score",
            "minimum_confidence",
            "low_confidence_threshold",
            "go_probability",
            "maybe_probability",
        ):
            validate_percentage(name, getattr(self, name))
        validate_non_negative("min_pressure_change", self.min_pressure_change)
        validate_finite("min_temperature_differential", self.min_temperature_differential)
        validate_finite("pressure_window_hours", self.pressure_window_hours)
        if self.pressure_window_hours <= 0:
            raise ValueError("pressure_window_hours must be positive")
        if self.pressure_trend not in config.PRESSURE_TRENDS:
            raise ValueError(
                f"Unknown pressure trend {self.pressure_trend!r}, "
                f"expected one of {config.PRESSURE_TRENDS}"
            )
        validate_finite("low_confidence_penalty", self.low_confidence_penalty)
        if not 0 <= self.low_confidence_penalty <= 1:
            raise ValueError("low_confidence_penalty must be within [0, 1]")
        if self.maybe_probability > self.go_probability:
            raise ValueError("maybe_probability cannot exceed go_probability")
        for name in ("clear_sky_start", "clear_sky_end", "prediction_start", "prediction_end"):
            parse_clock(getattr(self, name))
        validate_timezone(self.timezone)

    @classmethod
    def from_dict(cls, data: Mapping) -> "KatabaticCriteria":
        """
        Load criteria from a plain mapping.

        :param data: snake_case keys; ``weights`` and ``enhancement`` may be
                     nested mappings.
        :raises ValueError: when weights do not sum to 100 or a value is out of range
        """
        kwargs = filter_known_fields(cls, data)
        if isinstance(kwargs.get("weights"), Mapping):
            kwargs["weights"] = FactorWeights(
                **filter_known_fields(FactorWeights, kwargs["weights"])
            )
        if isinstance(kwargs.get("enhancement"), Mapping):
            kwargs["enhancement"] = EnhancementPolicy(
                **filter_known_fields(EnhancementPolicy, kwargs["enhancement"])
            )
        return cls(**kwargs)


@dataclass(frozen=True)
class FactorResult:
    """Outcome of one factor evaluator."""

    meets: bool
    confidence: float
    value: Optional[float]
    data_source: str
    rationale: str
    threshold: Optional[float] = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "meets": self.meets,
            "confidence": self.confidence,
            "value": self.value,
            "data_source": self.data_source,
            "rationale": self.rationale,
            "threshold": self.threshold,
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "FactorResult":
        return cls(
            meets=bool(data["meets"]),
            confidence=float(data["confidence"]),
            value=data.get("value"),
            data_source=data["data_source"],
            rationale=data.get("rationale", ""),
            threshold=data.get("threshold"),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class TimeWindow:
    start: pd.Timestamp
    end: pd.Timestamp

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def to_dict(self) -> dict:
        return {
            "start": to_iso(self.start),
            "end": to_iso(self.end),
            "duration_minutes": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "TimeWindow":
        return cls(start=to_timestamp(data["start"]), end=to_timestamp(data["end"]))


@dataclass(frozen=True)
class KatabaticPrediction:
    """Aggregated katabatic forecast for one dawn."""

    probability: float
    confidence: float
    confidence_label: str
    recommendation: str
    factors: Dict[str, FactorResult]
    best_time_window: Optional[TimeWindow]
    generated_at: pd.Timestamp
    target_date: date
    explanation: str = ""
    enhancement_applied: bool = False
    probability_bonus: float = 0.0
    confidence_bonus: float = 0.0

    def to_dict(self) -> dict:
        return {
            "probability": self.probability,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label,
            "recommendation": self.recommendation,
            "factors": {name: f.to_dict() for name, f in self.factors.items()},
            "best_time_window": self.best_time_window.to_dict()
            if self.best_time_window
            else None,
            "generated_at": to_iso(self.generated_at),
            "target_date": self.target_date.isoformat(),
            "explanation": self.explanation,
            "enhancement_applied": self.enhancement_applied,
            "probability_bonus": self.probability_bonus,
            "confidence_bonus": self.confidence_bonus,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "KatabaticPrediction":
        window = data.get("best_time_window")
        return cls(
            probability=float(data["probability"]),
            confidence=float(data["confidence"]),
            confidence_label=data["confidence_label"],
            recommendation=data["recommendation"],
            factors={
                name: FactorResult.from_dict(f) for name, f in data["factors"].items()
            },
            best_time_window=TimeWindow.from_dict(window) if window else None,
            generated_at=to_timestamp(data["generated_at"]),
            target_date=date.fromisoformat(data["target_date"]),
            explanation=data.get("explanation", ""),
            enhancement_applied=bool(data.get("enhancement_applied", False)),
            probability_bonus=float(data.get("probability_bonus", 0.0)),
            confidence_bonus=float(data.get("confidence_bonus", 0.0)),
        )


@dataclass(frozen=True)
class VerificationRecord:
    """Comparison of a verification-phase prediction with an earlier active one."""

    recorded_at: pd.Timestamp
    compared_to: pd.Timestamp
    live_probability: float
    earlier_probability: float
    probability_delta: float
    recommendation_changed: bool

    def to_dict(self) -> dict:
        return {
            "recorded_at": to_iso(self.recorded_at),
            "compared_to": to_iso(self.compared_to),
            "live_probability": self.live_probability,
            "earlier_probability": self.earlier_probability,
            "probability_delta": self.probability_delta,
            "recommendation_changed": self.recommendation_changed,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "VerificationRecord":
        return cls(
            recorded_at=to_timestamp(data["recorded_at"]),
            compared_to=to_timestamp(data["compared_to"]),
            live_probability=float(data["live_probability"]),
            earlier_probability=float(data["earlier_probability"]),
            probability_delta=float(data["probability_delta"]),
            recommendation_changed=bool(data["recommendation_changed"]),
        )


@dataclass
class PredictionLockState:
    """
    Persistable state of the prediction lock.

    The owner of the lock manager saves ``to_dict()`` and hands
    ``from_dict()`` back after a restart.
    """

    phase: str = config.PHASE_PENDING
    current_date: Optional[date] = None
    lock_date: Optional[date] = None
    last_prediction: Optional[KatabaticPrediction] = None
    last_computed_at: Optional[pd.Timestamp] = None
    locked_prediction: Optional[KatabaticPrediction] = None
    active_predictions: List[KatabaticPrediction] = field(default_factory=list)
    verifications: List[VerificationRecord] = field(default_factory=list)
    observed_alarm_worthy: Optional[bool] = None
    accuracy: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "current_date": self.current_date.isoformat() if self.current_date else None,
            "lock_date": self.lock_date.isoformat() if self.lock_date else None,
            "last_prediction": self.last_prediction.to_dict()
            if self.last_prediction
            else None,
            "last_computed_at": to_iso(self.last_computed_at),
            "locked_prediction": self.locked_prediction.to_dict()
            if self.locked_prediction
            else None,
            "active_predictions": [p.to_dict() for p in self.active_predictions],
            "verifications": [v.to_dict() for v in self.verifications],
            "observed_alarm_worthy": self.observed_alarm_worthy,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "PredictionLockState":
        def _date(key):
            value = data.get(key)
            return date.fromisoformat(value) if value else None

        def _prediction(key):
            value = data.get(key)
            return KatabaticPrediction.from_dict(value) if value else None

        phase = data.get("phase", config.PHASE_PENDING)
        if phase not in config.LOCK_PHASES:
            raise ValueError(f"Unknown lock phase {phase!r}")

        return cls(
            phase=phase,
            current_date=_date("current_date"),
            lock_date=_date("lock_date"),
            last_prediction=_prediction("last_prediction"),
            last_computed_at=to_timestamp(data.get("last_computed_at")),
            locked_prediction=_prediction("locked_prediction"),
            active_predictions=[
                KatabaticPrediction.from_dict(p) for p in data.get("active_predictions", [])
            ],
            verifications=[
                VerificationRecord.from_dict(v) for v in data.get("verifications", [])
            ],
            observed_alarm_worthy=data.get("observed_alarm_worthy"),
            accuracy=data.get("accuracy"),
        )


@dataclass(frozen=True)
class CalibrationBucket:
    """Observed success rate for predictions within one confidence range."""

    predicted: float
    actual: float
    count: int

    def to_dict(self) -> dict:
        return {"predicted": self.predicted, "actual": self.actual, "count": self.count}


@dataclass(frozen=True)
class PredictionAccuracy:
    """Prediction record over many scored mornings."""

    total_predictions: int = 0
    correct_predictions: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    accuracy: float = 0.0
    confidence_calibration: Dict[str, CalibrationBucket] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_predictions": self.total_predictions,
            "correct_predictions": self.correct_predictions,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "accuracy": self.accuracy,
            "confidence_calibration": {
                key: bucket.to_dict() for key, bucket in self.confidence_calibration.items()
            },
        }
