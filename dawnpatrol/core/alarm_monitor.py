"""
Alarm state holder.

Owns the current AlarmCriteria and the last verdict, and announces criteria
changes and alarm on/off transitions on an EventChannel.
"""

from dataclasses import replace
from typing import Iterable, Optional

from dawnpatrol.core import events as ev
from dawnpatrol.core.events import EventChannel
from dawnpatrol.core.wind_analysis import analyze
from dawnpatrol.models.wind import AlarmCriteria, AlarmVerdict
from dawnpatrol.utils.log_util import app_logger

logger = app_logger(__name__)


class AlarmMonitor:
    def __init__(
        self,
        criteria: Optional[AlarmCriteria] = None,
        events: Optional[EventChannel] = None,
    ):
        self.criteria = criteria or AlarmCriteria()
        self.events = events
        self.last_verdict: Optional[AlarmVerdict] = None

    @property
    def is_alarm_active(self) -> bool:
        return bool(self.last_verdict and self.last_verdict.is_alarm_worthy)

    def _publish(self, event: dict) -> None:
        if self.events is not None:
            self.events.publish(event)

    def update_criteria(self, **changes) -> AlarmCriteria:
        """
        Replace criteria fields; validation runs on the new criteria.

        :raises ValueError: when the updated criteria are invalid
        """
        self.criteria = replace(self.criteria, **changes)
        logger.info(f"Alarm criteria updated: {sorted(changes)}")
        self._publish({"type": ev.CRITERIA_CHANGED, "criteria": self.criteria, "changes": changes})
        return self.criteria

    def evaluate(self, samples: Iterable, reference_time=None) -> AlarmVerdict:
        """Analyze samples and publish alarm_triggered / alarm_cleared on transitions."""
        was_active = self.is_alarm_active
        verdict = analyze(samples, self.criteria, reference_time)
        self.last_verdict = verdict

        if verdict.is_alarm_worthy and not was_active:
            logger.info(f"Alarm triggered: {verdict.explanation}")
            self._publish({"type": ev.ALARM_TRIGGERED, "verdict": verdict})
        elif was_active and not verdict.is_alarm_worthy:
            logger.info("Alarm cleared")
            self._publish({"type": ev.ALARM_CLEARED, "verdict": verdict})
        return verdict
