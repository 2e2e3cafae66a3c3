"""
Unit tests for the event channel and the alarm monitor.
"""

import pandas as pd
import pytest

from dawnpatrol.core.alarm_monitor import AlarmMonitor
from dawnpatrol.core.events import EventChannel


def records(speeds, direction=315, start="2025-07-04T12:00:00Z"):
    base = pd.Timestamp(start)
    return [
        {
            "time": (base + pd.Timedelta(minutes=5 * i)).isoformat(),
            "windSpeedMph": speed,
            "windDirection": direction,
        }
        for i, speed in enumerate(speeds)
    ]


class TestEventChannel:
    def test_subscribe_and_unsubscribe(self):
        channel = EventChannel()
        seen = []
        unsubscribe = channel.subscribe(seen.append)

        channel.publish({"type": "ping"})
        unsubscribe()
        channel.publish({"type": "pong"})

        assert seen == [{"type": "ping"}]
        assert len(channel) == 0

    def test_failing_subscriber_does_not_block_others(self, caplog):
        channel = EventChannel()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)
        channel.publish({"type": "ping"})

        assert seen == [{"type": "ping"}]
        assert "boom" in caplog.text


class TestAlarmMonitor:
    """Alarm transitions and criteria updates."""

    @pytest.fixture
    def channel_and_events(self):
        channel = EventChannel()
        seen = []
        channel.subscribe(seen.append)
        return channel, seen

    def test_trigger_then_clear(self, channel_and_events):
        channel, seen = channel_and_events
        monitor = AlarmMonitor(events=channel)

        monitor.evaluate(records([18, 20, 22, 19, 21]), "2025-07-04T12:20:00Z")
        assert monitor.is_alarm_active
        monitor.evaluate(records([18, 20, 22, 19, 21]), "2025-07-04T12:25:00Z")
        monitor.evaluate(records([2, 3, 1, 2]), "2025-07-04T12:15:00Z")

        assert [e["type"] for e in seen] == ["alarm_triggered", "alarm_cleared"]
        assert not monitor.is_alarm_active

    def test_quiet_wind_publishes_nothing(self, channel_and_events):
        channel, seen = channel_and_events
        monitor = AlarmMonitor(events=channel)

        verdict = monitor.evaluate(records([2, 3, 1, 2]), "2025-07-04T12:15:00Z")
        assert not verdict.is_alarm_worthy
        assert seen == []

    def test_update_criteria(self, channel_and_events):
        channel, seen = channel_and_events
        monitor = AlarmMonitor(events=channel)

        criteria = monitor.update_criteria(min_average_speed=25)
        assert criteria.min_average_speed == 25
        assert seen[0]["type"] == "criteria_changed"
        assert seen[0]["changes"] == {"min_average_speed": 25}

        verdict = monitor.evaluate(records([18, 20, 22, 19, 21]), "2025-07-04T12:20:00Z")
        assert not verdict.is_alarm_worthy

    def test_invalid_update_rejected(self):
        monitor = AlarmMonitor()
        with pytest.raises(ValueError):
            monitor.update_criteria(direction_consistency_threshold=-1)
        assert monitor.criteria.direction_consistency_threshold == 70.0

    def test_works_without_channel(self):
        monitor = AlarmMonitor()
        verdict = monitor.evaluate(records([18, 20, 22, 19, 21]))
        assert verdict.is_alarm_worthy
