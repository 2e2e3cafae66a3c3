"""
Unit tests for the station report CLI.
"""

import json

import pytest

from dawnpatrol.cli.station_report import load_records, main


def write_json(path, data):
    path.write_text(json.dumps(data))
    return str(path)


@pytest.fixture
def samples_file(tmp_path):
    records = [
        {
            "time": f"2025-07-04T12:{minute:02d}:00Z",
            "windSpeedMph": speed,
            "windDirection": 315,
            "tempf": 60,
            "humidity": 50,
        }
        for minute, speed in zip(range(0, 25, 5), [18, 20, 22, 19, 21])
    ]
    records.append({"time": "2025-07-04T12:45:00Z", "windSpeedMph": None})
    return write_json(tmp_path / "samples.json", {"samples": records})


@pytest.fixture
def weather_file(tmp_path):
    hourly = [
        {
            "time": f"2025-07-05T{hour:02d}:00:00Z",
            "precipitation_probability": 5,
            "cloud_cover": 5,
            "pressure_msl": 1010 + 0.25 * hour,
        }
        for hour in range(0, 15)
    ]
    return write_json(
        tmp_path / "weather.json",
        {
            "valley": {"current": {"time": "2025-07-04T20:00:00Z", "temperature": 20}, "hourly": hourly},
            "mountain": {"current": {"time": "2025-07-04T20:00:00Z", "temperature": 12}, "hourly": hourly},
        },
    )


class TestLoadRecords:
    def test_bare_list_and_wrapped(self, tmp_path):
        bare = write_json(tmp_path / "bare.json", [{"time": 1}])
        wrapped = write_json(tmp_path / "wrapped.json", {"data": [{"time": 1}]})
        assert load_records(bare) == [{"time": 1}]
        assert load_records(wrapped) == [{"time": 1}]


class TestCommands:
    def test_health_report(self, samples_file, capsys):
        main(["health", samples_file])
        out = capsys.readouterr().out

        assert "offline" in out
        assert "full-outage" in out

    def test_health_json(self, samples_file, capsys):
        main(["--json", "health", samples_file])
        data = json.loads(capsys.readouterr().out)
        assert data["current_transmission_status"] == "offline"
        assert len(data["transmission_gaps"]) == 1

    def test_alarm_report(self, samples_file, capsys):
        main(["alarm", samples_file, "--now", "2025-07-04T12:20:00Z"])
        out = capsys.readouterr().out

        assert "Wake up" in out
        assert "NW" in out

    def test_alarm_with_criteria_file(self, samples_file, tmp_path, capsys):
        criteria = write_json(tmp_path / "alarm.json", {"min_average_speed": 30})
        main(["--json", "alarm", samples_file, "--criteria", criteria, "--now", "2025-07-04T12:20:00Z"])
        assert json.loads(capsys.readouterr().out)["is_alarm_worthy"] is False

    def test_predict_with_state_file(self, weather_file, tmp_path, capsys):
        state_file = tmp_path / "lock.json"
        main(["predict", weather_file, "--now", "2025-07-04T20:00:00Z", "--state", str(state_file)])
        out = capsys.readouterr().out

        assert "Dawn patrol 2025-07-05" in out
        assert "Lock phase: locked" in out
        state = json.loads(state_file.read_text())
        assert state["phase"] == "locked"
        assert state["locked_prediction"]["target_date"] == "2025-07-05"

    def test_predict_json(self, weather_file, capsys):
        main(["--json", "predict", weather_file, "--now", "2025-07-04T20:00:00Z"])
        data = json.loads(capsys.readouterr().out)

        assert data["factors"]["wave_pattern"]["data_source"] == "estimated"
        assert data["generated_at"] == "2025-07-04T20:00:00+00:00"

    def test_bad_now_exits(self, weather_file):
        with pytest.raises(SystemExit):
            main(["predict", weather_file, "--now", "someday"])

    def test_no_command_prints_help(self, capsys):
        main([])
        assert "usage" in capsys.readouterr().out.lower()
