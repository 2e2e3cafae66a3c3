"""
Unit tests for the prediction lock state machine.

All times are July in Denver (UTC-6): 06:00 local is 12:00Z, 08:00 local is
14:00Z.
"""

import json
from dataclasses import replace
from datetime import date
from unittest.mock import Mock

import pandas as pd
import pytest

from dawnpatrol.core.events import EventChannel
from dawnpatrol.core.prediction_lock import (
    LockSchedule,
    PredictionLockManager,
    prediction_accuracy,
)
from dawnpatrol.models.katabatic import KatabaticPrediction, PredictionLockState
from dawnpatrol.models.wind import AlarmVerdict


def make_prediction(probability, recommendation="maybe", at="2025-07-05T12:30:00Z"):
    return KatabaticPrediction(
        probability=probability,
        confidence=70.0,
        confidence_label="medium",
        recommendation=recommendation,
        factors={},
        best_time_window=None,
        generated_at=pd.Timestamp(at),
        target_date=date(2025, 7, 5),
    )


def make_verdict(worthy):
    return AlarmVerdict(
        is_alarm_worthy=worthy,
        average_speed=15.0 if worthy else 3.0,
        direction_consistency=90.0,
        consecutive_good_points=5 if worthy else 0,
        explanation="",
    )


@pytest.fixture
def manager():
    return PredictionLockManager(LockSchedule(timezone="America/Denver"))


class TestLockSchedule:
    @pytest.mark.parametrize(
        "now,phase",
        [
            ("2025-07-05T11:00:00Z", "pending"),
            ("2025-07-05T12:30:00Z", "active"),
            ("2025-07-05T13:30:00Z", "verification"),
            ("2025-07-05T14:00:00Z", "locked"),
            ("2025-07-06T05:00:00Z", "locked"),  # 23:00 local
        ],
    )
    def test_phase_at(self, now, phase):
        assert LockSchedule().phase_at(now) == phase

    def test_out_of_order_schedule_rejected(self):
        with pytest.raises(ValueError):
            LockSchedule(active_start="07:00", verification_start="06:00")


class TestGetPrediction:
    """Refresh, verification and lock behavior."""

    def test_refreshes_before_lock(self, manager):
        compute = Mock(side_effect=[make_prediction(40), make_prediction(55)])

        assert manager.get_prediction("2025-07-05T10:00:00Z", compute).probability == 40
        assert manager.get_prediction("2025-07-05T11:00:00Z", compute).probability == 55
        assert compute.call_count == 2
        assert manager.phase == "pending"
        assert manager.state.last_computed_at == pd.Timestamp("2025-07-05T11:00:00Z")

    def test_locked_prediction_is_frozen(self, manager):
        compute = Mock(side_effect=[make_prediction(72, "go"), make_prediction(10, "no")])

        manager.get_prediction("2025-07-05T13:45:00Z", compute)
        locked = manager.get_prediction("2025-07-05T15:00:00Z", compute)
        again = manager.get_prediction("2025-07-05T20:00:00Z", compute)

        assert locked.probability == 72
        assert again is locked
        assert compute.call_count == 1
        assert manager.phase == "locked"
        assert manager.state.lock_date == date(2025, 7, 5)

    def test_lock_without_earlier_prediction_computes_once(self, manager):
        compute = Mock(return_value=make_prediction(30, "no"))

        manager.get_prediction("2025-07-05T16:00:00Z", compute)
        manager.get_prediction("2025-07-05T17:00:00Z", compute)
        assert compute.call_count == 1

    def test_new_day_resets_to_pending(self, manager):
        manager.get_prediction("2025-07-05T15:00:00Z", Mock(return_value=make_prediction(72, "go")))
        fresh = manager.get_prediction(
            "2025-07-06T10:00:00Z", Mock(return_value=make_prediction(20, "no"))
        )

        state = manager.state
        assert fresh.probability == 20
        assert state.phase == "pending"
        assert state.locked_prediction is None
        assert state.current_date == date(2025, 7, 6)

    def test_verification_compares_with_active_predictions(self, manager):
        manager.get_prediction("2025-07-05T12:30:00Z", Mock(return_value=make_prediction(60, "maybe")))
        manager.get_prediction(
            "2025-07-05T13:30:00Z",
            Mock(return_value=make_prediction(75, "go", at="2025-07-05T13:30:00Z")),
        )

        records = manager.state.verifications
        assert len(records) == 1
        assert records[0].probability_delta == pytest.approx(15.0)
        assert records[0].recommendation_changed
        assert records[0].compared_to == pd.Timestamp("2025-07-05T12:30:00Z")

    def test_requires_injected_now(self, manager):
        with pytest.raises(ValueError):
            manager.get_prediction(None, Mock())


class TestObservation:
    def test_accuracy_for_good_morning(self, manager):
        manager.get_prediction("2025-07-05T15:00:00Z", Mock(return_value=make_prediction(75, "go")))
        assert manager.record_observation(make_verdict(True), "2025-07-05T15:05:00Z") == 75.0
        assert manager.state.observed_alarm_worthy is True

    def test_accuracy_for_flat_morning(self, manager):
        manager.get_prediction("2025-07-05T15:00:00Z", Mock(return_value=make_prediction(75, "go")))
        assert manager.record_observation(make_verdict(False), "2025-07-05T15:05:00Z") == 25.0

    def test_nothing_to_score(self, manager):
        assert manager.record_observation(make_verdict(True), "2025-07-05T15:05:00Z") is None

    def test_observation_requires_injected_now(self, manager):
        with pytest.raises(ValueError):
            manager.record_observation(make_verdict(True), None)


class TestPersistence:
    """State survives a restart through plain dicts."""

    def test_round_trip(self, manager):
        manager.get_prediction("2025-07-05T12:30:00Z", Mock(return_value=make_prediction(60)))
        manager.get_prediction("2025-07-05T13:30:00Z", Mock(return_value=make_prediction(75, "go")))
        manager.get_prediction("2025-07-05T14:30:00Z", Mock())

        data = json.loads(json.dumps(manager.state.to_dict()))
        restored = PredictionLockState.from_dict(data)
        assert restored.to_dict() == manager.state.to_dict()

    def test_restored_lock_stays_locked(self, manager):
        manager.get_prediction("2025-07-05T15:00:00Z", Mock(return_value=make_prediction(72, "go")))
        state = PredictionLockState.from_dict(manager.state.to_dict())

        restarted = PredictionLockManager(LockSchedule(), state=state)
        compute = Mock()
        assert restarted.get_prediction("2025-07-05T18:00:00Z", compute).probability == 72
        compute.assert_not_called()

    def test_unknown_phase_rejected(self):
        with pytest.raises(ValueError):
            PredictionLockState.from_dict({"phase": "snoozing"})


class TestPhaseEvents:
    def test_transitions_published(self):
        channel = EventChannel()
        seen = []
        channel.subscribe(seen.append)
        manager = PredictionLockManager(events=channel)

        compute = Mock(return_value=make_prediction(50))
        manager.get_prediction("2025-07-05T11:00:00Z", compute)
        manager.get_prediction("2025-07-05T12:30:00Z", compute)
        manager.get_prediction("2025-07-05T14:30:00Z", compute)

        assert [(e["from"], e["to"]) for e in seen] == [
            ("pending", "active"),
            ("active", "locked"),
        ]
        assert all(e["type"] == "phase_changed" for e in seen)


def scored_day(day, probability, confidence, observed):
    prediction = replace(make_prediction(probability), confidence=confidence)
    return PredictionLockState(
        phase="locked",
        current_date=date(2025, 7, day),
        lock_date=date(2025, 7, day),
        locked_prediction=prediction,
        observed_alarm_worthy=observed,
    )


class TestPredictionAccuracy:
    """Track record over many mornings."""

    @pytest.fixture
    def days(self):
        return [
            scored_day(1, 75, 70, True),
            scored_day(2, 60, 72, False),
            scored_day(3, 30, 45, True),
            scored_day(4, 20, 48, False),
            scored_day(5, 80, 90, None),
            PredictionLockState(current_date=date(2025, 7, 6), observed_alarm_worthy=True),
        ]

    def test_counts(self, days):
        result = prediction_accuracy(days)

        assert result.total_predictions == 4
        assert result.correct_predictions == 2
        assert result.false_positives == 1
        assert result.false_negatives == 1
        assert result.accuracy == pytest.approx(50.0)

    def test_confidence_calibration(self, days):
        calibration = prediction_accuracy(days).confidence_calibration

        assert list(calibration) == ["40-49", "70-79"]
        assert calibration["40-49"].predicted == pytest.approx(46.5)
        assert calibration["40-49"].actual == pytest.approx(50.0)
        assert calibration["70-79"].count == 2

    def test_accepts_persisted_dicts(self, days):
        persisted = json.loads(json.dumps([d.to_dict() for d in days]))
        assert prediction_accuracy(persisted).to_dict() == prediction_accuracy(days).to_dict()

    def test_custom_good_call_threshold(self, days):
        result = prediction_accuracy(days, good_call_probability=65)
        assert result.correct_predictions == 3
        assert result.false_positives == 0

    def test_nothing_scored(self):
        result = prediction_accuracy([])
        assert result.total_predictions == 0
        assert result.accuracy == 0.0
        assert result.confidence_calibration == {}

    def test_scores_manager_state(self, manager):
        manager.get_prediction("2025-07-05T15:00:00Z", Mock(return_value=make_prediction(75, "go")))
        manager.record_observation(make_verdict(True), "2025-07-05T15:05:00Z")

        result = prediction_accuracy([manager.state])
        assert result.correct_predictions == 1
        assert result.accuracy == 100.0
