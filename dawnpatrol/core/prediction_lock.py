"""
Time-of-day lock for the daily katabatic prediction.

Before the decision window closes the prediction can be recomputed freely.
From ``lock_start`` until midnight the manager hands back the snapshot taken
when the lock engaged, so the morning's call can be compared with what
actually happened. The current time is always passed in by the caller.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from dawnpatrol import config
from dawnpatrol.core import events as ev
from dawnpatrol.core.events import EventChannel
from dawnpatrol.models.katabatic import (
    CalibrationBucket,
    KatabaticPrediction,
    PredictionAccuracy,
    PredictionLockState,
    VerificationRecord,
)
from dawnpatrol.models.wind import AlarmVerdict, validate_timezone
from dawnpatrol.utils.date_util import clock_minutes, minutes_of_day, to_local, to_timestamp
from dawnpatrol.utils.log_util import app_logger

logger = app_logger(__name__)


@dataclass(frozen=True)
class LockSchedule:
    active_start: str = config.LOCK_SCHEDULE["active_start"]
    verification_start: str = config.LOCK_SCHEDULE["verification_start"]
    lock_start: str = config.LOCK_SCHEDULE["lock_start"]
    timezone: str = config.DEFAULT_TIMEZONE

    def __post_init__(self):
        active = clock_minutes(self.active_start)
        verification = clock_minutes(self.verification_start)
        lock = clock_minutes(self.lock_start)
        if not active <= verification <= lock:
            raise ValueError(
                "Lock schedule must satisfy active_start <= verification_start <= lock_start"
            )
        validate_timezone(self.timezone)

    def phase_at(self, now) -> str:
        """Phase for a moment in time, from its local clock time."""
        minutes = minutes_of_day(to_local(to_timestamp(now), self.timezone))
        if minutes >= clock_minutes(self.lock_start):
            return config.PHASE_LOCKED
        if minutes >= clock_minutes(self.verification_start):
            return config.PHASE_VERIFICATION
        if minutes >= clock_minutes(self.active_start):
            return config.PHASE_ACTIVE
        return config.PHASE_PENDING


class PredictionLockManager:
    """
    Single-writer state machine: pending -> active -> verification -> locked,
    back to pending when the local calendar date changes.

    Callers serialize access themselves and persist ``state.to_dict()``
    across restarts.
    """

    def __init__(
        self,
        schedule: Optional[LockSchedule] = None,
        state: Optional[PredictionLockState] = None,
        events: Optional[EventChannel] = None,
    ):
        self.schedule = schedule or LockSchedule()
        self._state = state or PredictionLockState()
        self.events = events

    @property
    def state(self) -> PredictionLockState:
        """Copy of the current state, safe to persist."""
        return replace(
            self._state,
            active_predictions=list(self._state.active_predictions),
            verifications=list(self._state.verifications),
        )

    @property
    def phase(self) -> str:
        return self._state.phase

    def _sync(self, now: pd.Timestamp) -> None:
        today = to_local(now, self.schedule.timezone).date()
        if self._state.current_date != today:
            if self._state.current_date is not None:
                logger.info(f"New day {today}, prediction lock reset")
            previous = self._state.phase
            self._state = PredictionLockState(current_date=today)
            if previous != config.PHASE_PENDING:
                self._announce(previous, config.PHASE_PENDING, now)

        phase = self.schedule.phase_at(now)
        if phase != self._state.phase:
            previous = self._state.phase
            self._state.phase = phase
            self._announce(previous, phase, now)

    def _announce(self, previous: str, phase: str, now: pd.Timestamp) -> None:
        logger.debug(f"Prediction lock phase {previous} -> {phase}")
        if self.events is not None:
            self.events.publish(
                {"type": ev.PHASE_CHANGED, "from": previous, "to": phase, "at": now}
            )

    def _store(self, prediction: KatabaticPrediction, now: pd.Timestamp) -> None:
        self._state.last_prediction = prediction
        self._state.last_computed_at = now

    def phase_at(self, now) -> str:
        return self.schedule.phase_at(now)

    def get_prediction(
        self, now, compute: Callable[[], KatabaticPrediction]
    ) -> KatabaticPrediction:
        """
        Return the prediction to show at ``now``.

        Refreshable phases call ``compute()`` every time. Once locked, the
        day's last computed prediction is frozen and returned unchanged;
        ``compute()`` runs at most once more if nothing was computed today.

        :param now: Injected current time
        :param compute: Zero-argument callable producing a fresh prediction
        """
        now = to_timestamp(now)
        if now is None:
            raise ValueError("get_prediction() needs an explicit 'now' timestamp")
        self._sync(now)
        state = self._state

        if state.phase == config.PHASE_LOCKED:
            if state.locked_prediction is None:
                if state.last_prediction is None:
                    logger.info("Locking without an earlier prediction, computing once")
                    self._store(compute(), now)
                state.locked_prediction = state.last_prediction
                state.lock_date = state.current_date
                logger.info(
                    f"Prediction locked for {state.lock_date}: "
                    f"{state.locked_prediction.probability:.0f}% "
                    f"{state.locked_prediction.recommendation}"
                )
            return state.locked_prediction

        prediction = compute()
        self._store(prediction, now)

        if state.phase == config.PHASE_ACTIVE:
            state.active_predictions.append(prediction)
        elif state.phase == config.PHASE_VERIFICATION:
            for earlier in state.active_predictions:
                state.verifications.append(
                    VerificationRecord(
                        recorded_at=now,
                        compared_to=earlier.generated_at,
                        live_probability=prediction.probability,
                        earlier_probability=earlier.probability,
                        probability_delta=prediction.probability - earlier.probability,
                        recommendation_changed=prediction.recommendation
                        != earlier.recommendation,
                    )
                )
        return prediction

    def record_observation(self, verdict: AlarmVerdict, now) -> Optional[float]:
        """
        Score today's prediction against what the wind actually did.

        :param verdict: Observed wind verdict, usually from the verification window
        :return: Accuracy 0-100, or None when there is nothing to score
        """
        now = to_timestamp(now)
        if now is None:
            raise ValueError("record_observation() needs an explicit 'now' timestamp")
        self._sync(now)
        prediction = self._state.locked_prediction or self._state.last_prediction
        if prediction is None:
            logger.warning("No prediction for today, observation not scored")
            return None

        observed = 100.0 if verdict.is_alarm_worthy else 0.0
        accuracy = 100.0 - abs(prediction.probability - observed)
        self._state.observed_alarm_worthy = verdict.is_alarm_worthy
        self._state.accuracy = accuracy
        logger.info(
            f"Observed {'good' if verdict.is_alarm_worthy else 'no'} wind, "
            f"predicted {prediction.probability:.0f}%, accuracy {accuracy:.0f}"
        )
        return accuracy


def _calibration_key(confidence: float) -> str:
    size = config.CALIBRATION_BUCKET_SIZE
    low = int(confidence // size) * size
    return f"{low}-{low + size - 1}"


def prediction_accuracy(
    days: Iterable,
    good_call_probability: float = config.GOOD_CALL_PROBABILITY,
) -> PredictionAccuracy:
    """
    Score persisted lock states from many mornings.

    A day counts when it has both a prediction (the locked one, else the last
    computed) and an observed outcome. A prediction at or above
    ``good_call_probability`` calls the morning good; it is correct when that
    matches whether the observed wind was alarm worthy.

    :param days: PredictionLockState objects or their ``to_dict()`` form
    :param good_call_probability: Probability threshold for a "good" call
    :return: PredictionAccuracy, all zero when no day was scored
    """
    scored = 0
    correct = false_positives = false_negatives = 0
    buckets: Dict[str, List[tuple]] = {}

    for day in days:
        state = PredictionLockState.from_dict(day) if isinstance(day, Mapping) else day
        prediction = state.locked_prediction or state.last_prediction
        if prediction is None or state.observed_alarm_worthy is None:
            continue

        scored += 1
        predicted_good = prediction.probability >= good_call_probability
        actual_good = bool(state.observed_alarm_worthy)
        if predicted_good == actual_good:
            correct += 1
        elif predicted_good:
            false_positives += 1
        else:
            false_negatives += 1

        buckets.setdefault(_calibration_key(prediction.confidence), []).append(
            (prediction.confidence, 100.0 if actual_good else 0.0)
        )

    if scored == 0:
        return PredictionAccuracy()

    calibration = {
        key: CalibrationBucket(
            predicted=sum(c for c, _ in entries) / len(entries),
            actual=sum(a for _, a in entries) / len(entries),
            count=len(entries),
        )
        for key, entries in sorted(buckets.items(), key=lambda item: int(item[0].split("-")[0]))
    }
    result = PredictionAccuracy(
        total_predictions=scored,
        correct_predictions=correct,
        false_positives=false_positives,
        false_negatives=false_negatives,
        accuracy=correct / scored * 100,
        confidence_calibration=calibration,
    )
    logger.debug(
        f"Prediction accuracy over {scored} mornings: {result.accuracy:.0f}% "
        f"({false_positives} false positives, {false_negatives} false negatives)"
    )
    return result
