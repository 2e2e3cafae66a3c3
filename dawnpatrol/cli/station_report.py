#!/usr/bin/env python3
"""
station_report.py: Station health, wind alarm and katabatic prediction reports.

Reads JSON exported from a station or forecast provider and prints a
readable report. All file access lives here; the engine only sees plain data.

Usage:
    python station_report.py health samples.json [--threshold 15]
    python station_report.py alarm samples.json [--criteria alarm.json] [--now ISO] [--verify]
    python station_report.py predict weather.json [--criteria katabatic.json] [--now ISO] [--state lock.json]
"""

import argparse
import json
from pathlib import Path

import pandas as pd

import dawnpatrol.core.katabatic_predictor as dp_predict
import dawnpatrol.core.transmission_quality as dp_tq
import dawnpatrol.core.wind_analysis as dp_wind
from dawnpatrol import config
from dawnpatrol.core.prediction_lock import LockSchedule, PredictionLockManager
from dawnpatrol.core.sample_normalizer import normalize_samples
from dawnpatrol.models.katabatic import KatabaticCriteria, PredictionLockState
from dawnpatrol.models.wind import AlarmCriteria
from dawnpatrol.utils.date_util import to_local, to_timestamp
from dawnpatrol.utils.log_util import app_logger
from dawnpatrol.utils.trend_utils import TREND_ARROWS
from dawnpatrol.utils.weather_utils import format_duration_minutes, format_wind_direction

logger = app_logger(__name__)

STATUS_ICONS = {
    config.STATUS_GOOD: "✅",
    config.STATUS_PARTIAL: "⚠️",
    config.STATUS_OFFLINE: "❌",
}
RECOMMENDATION_ICONS = {"go": "🟢", "maybe": "🟡", "no": "🔴"}


def load_json(path):
    with open(Path(path), "r", encoding="utf-8") as f:
        return json.load(f)


def load_records(path) -> list:
    """Station exports are either a bare list or {"samples": [...]}."""
    data = load_json(path)
    if isinstance(data, dict):
        return data.get("samples") or data.get("data") or []
    return data


def parse_now(value):
    if value is None:
        return None
    now = to_timestamp(value)
    if now is None:
        raise SystemExit(f"❌ Could not parse --now value: {value}")
    return now


def handle_health(args):
    samples = normalize_samples(load_records(args.samples))
    if not samples:
        print("❌ No usable samples found.")
        return

    health = dp_tq.summarize(samples, args.threshold)
    if args.json:
        print(json.dumps(health.to_dict(), indent=2))
        return

    status = health.current_transmission_status
    print(f"📡 Station status: {STATUS_ICONS[status]} {status}")
    print(f"   Samples: {len(samples)}  ({samples[0].timestamp} → {samples[-1].timestamp})")
    print(f"   Ever full transmission: {'yes' if health.is_full_transmission else 'no'}")
    print(f"   Outdoor sensors seen:   {'yes' if health.has_outdoor_sensors else 'no'}")
    print(f"   Wind data seen:         {'yes' if health.has_wind_data else 'no'}")
    print(f"   All samples complete:   {'yes' if health.has_complete_sensor_data else 'no'}")
    print(f"   Last good transmission: {health.last_good_transmission_time or '--'}")

    if not health.transmission_gaps:
        print("\n✅ No transmission gaps detected.")
        return

    print(f"\n🚨 Found {len(health.transmission_gaps)} transmission gap(s):\n")
    for gap in health.transmission_gaps:
        print(f"  🕳️ {gap.gap_type}: {format_duration_minutes(gap.duration_minutes)}")
        print(f"     {gap.start_time} → {gap.end_time}")
        print(f"     Sensors: {', '.join(sorted(gap.affected_sensors)) or '--'}")


def handle_alarm(args):
    criteria = AlarmCriteria.from_dict(load_json(args.criteria)) if args.criteria else AlarmCriteria()
    records = load_records(args.samples)
    now = parse_now(args.now)

    if args.verify:
        verdict = dp_wind.verify_wind_conditions(records, criteria, now)
    else:
        verdict = dp_wind.analyze(records, criteria, now)

    if args.json:
        print(json.dumps(verdict.to_dict(), indent=2))
        return

    icon = "🚨" if verdict.is_alarm_worthy else "😴"
    print(f"{icon} {'Wake up, the wind is on!' if verdict.is_alarm_worthy else 'Not alarm worthy.'}")
    print(f"   Samples in window: {verdict.sample_count}")
    print(f"   Average speed: {verdict.average_speed:.1f} mph")
    print(
        f"   Direction: {format_wind_direction(verdict.mean_direction)} "
        f"({verdict.direction_consistency:.0f}% consistent)"
    )
    print(f"   Consecutive good samples: {verdict.consecutive_good_points}")
    print(f"\n{verdict.explanation}")


def _load_state(path):
    if path and Path(path).exists():
        return PredictionLockState.from_dict(load_json(path))
    return None


def handle_predict(args):
    criteria = (
        KatabaticCriteria.from_dict(load_json(args.criteria))
        if args.criteria
        else KatabaticCriteria()
    )
    weather = load_json(args.weather)
    now = parse_now(args.now) or pd.Timestamp.now(tz="UTC")

    def compute():
        return dp_predict.predict(weather, criteria, now)

    if args.state:
        manager = PredictionLockManager(
            schedule=LockSchedule(timezone=criteria.timezone),
            state=_load_state(args.state),
        )
        prediction = manager.get_prediction(now, compute)
        with open(Path(args.state), "w", encoding="utf-8") as f:
            json.dump(manager.state.to_dict(), f, indent=2)
        phase = manager.phase
    else:
        prediction = compute()
        phase = None

    if args.json:
        print(json.dumps(prediction.to_dict(), indent=2))
        return

    print(
        f"{RECOMMENDATION_ICONS[prediction.recommendation]} Dawn patrol "
        f"{prediction.target_date}: {prediction.recommendation.upper()}"
    )
    print(
        f"   Probability {prediction.probability:.0f}%, "
        f"{prediction.confidence_label} confidence ({prediction.confidence:.0f})"
    )
    if phase:
        print(f"   Lock phase: {phase}{' 🔒' if phase == config.PHASE_LOCKED else ''}")
    if prediction.enhancement_applied:
        print(
            f"   📈 Historical enhancement +{prediction.probability_bonus:.0f}% probability"
        )

    print("\nFactors:")
    for name, factor in prediction.factors.items():
        mark = "✅" if factor.meets else "❌"
        label = name.replace("_", " ").title()
        trend = factor.details.get("trend")
        arrow = f" {TREND_ARROWS[trend]}" if trend in TREND_ARROWS else ""
        print(f"  {mark} {label}{arrow}: {factor.rationale} [{factor.data_source}]")

    window = prediction.best_time_window
    if window:
        start = to_local(window.start, criteria.timezone).strftime("%H:%M")
        end = to_local(window.end, criteria.timezone).strftime("%H:%M")
        print(f"\n⏰ Best window: {start} → {end}")
    print(f"\n{prediction.explanation}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Dawn patrol station and forecast reports")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a report")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    health_parser = subparsers.add_parser("health", help="Transmission health of a station export")
    health_parser.add_argument("samples", help="JSON file with station samples")
    health_parser.add_argument(
        "--threshold",
        type=float,
        default=config.GAP_THRESHOLD_MINUTES,
        help="Gap threshold in minutes",
    )

    alarm_parser = subparsers.add_parser("alarm", help="Decide whether the wind is alarm worthy")
    alarm_parser.add_argument("samples", help="JSON file with station samples")
    alarm_parser.add_argument("--criteria", help="JSON file with alarm criteria")
    alarm_parser.add_argument("--now", help="Reference time (ISO or epoch ms)")
    alarm_parser.add_argument(
        "--verify", action="store_true", help="Use the 06:00-08:00 verification window"
    )

    predict_parser = subparsers.add_parser("predict", help="Katabatic prediction for the next dawn")
    predict_parser.add_argument("weather", help="JSON file with valley/mountain forecasts")
    predict_parser.add_argument("--criteria", help="JSON file with katabatic criteria")
    predict_parser.add_argument("--now", help="Reference time (ISO or epoch ms)")
    predict_parser.add_argument("--state", help="JSON file holding the prediction lock state")

    args = parser.parse_args(argv)

    if args.command == "health":
        handle_health(args)
    elif args.command == "alarm":
        handle_alarm(args)
    elif args.command == "predict":
        handle_predict(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
