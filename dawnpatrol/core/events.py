"""
Caller-owned event channel.

Components that change state (alarm monitor, prediction lock) publish plain
event dicts here instead of keeping their own global subscriber lists.
"""

from typing import Callable, List

from dawnpatrol.utils.log_util import app_logger

logger = app_logger(__name__)

ALARM_TRIGGERED = "alarm_triggered"
ALARM_CLEARED = "alarm_cleared"
CRITERIA_CHANGED = "criteria_changed"
PHASE_CHANGED = "phase_changed"


class EventChannel:
    def __init__(self):
        self._subscribers: List[Callable[[dict], None]] = []

    def subscribe(self, callback: Callable[[dict], None]) -> Callable[[], None]:
        """
        Register a callback for every published event.

        :return: Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: dict) -> None:
        """Deliver an event to all subscribers; one failing callback does not stop the rest."""
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event subscriber failed on {event.get('type')}: {e}")

    def __len__(self):
        return len(self._subscribers)
