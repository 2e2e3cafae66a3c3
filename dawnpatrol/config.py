# config.py
"""
Configurations for the Dawn Patrol wind analysis engine.

This module holds the documented defaults for alarm and katabatic criteria,
the factor weight table, the prediction lock schedule and the field maps used
to read raw sample records coming from station and forecast providers.
"""

# --- Units ---
MPS_TO_MPH = 2.23694  # 1 m/s in mph

# --- Time ---
DEFAULT_TIMEZONE = "America/Denver"

# --- Wind alarm defaults ---
DEFAULT_MIN_AVERAGE_SPEED = 10.0  # mph
DEFAULT_DIRECTION_CONSISTENCY = 70.0  # percent
DEFAULT_MIN_CONSECUTIVE_POINTS = 4
DEFAULT_DIRECTION_DEVIATION = 45.0  # degrees
DEFAULT_TRAILING_MINUTES = 60
DIRECTION_BUCKET_SIZE = 30  # degrees per bucket when finding the modal direction

CONSISTENCY_RESULTANT = "resultant"
CONSISTENCY_MODAL = "modal"
CONSISTENCY_METHODS = (CONSISTENCY_RESULTANT, CONSISTENCY_MODAL)

WINDOW_TRAILING = "trailing"
WINDOW_CLOCK = "clock"
WINDOW_MODES = (WINDOW_TRAILING, WINDOW_CLOCK)

# Dawn patrol verification window (local clock)
VERIFICATION_WINDOW = {"start": "06:00", "end": "08:00"}

# --- Transmission quality ---
GAP_THRESHOLD_MINUTES = 15

FIELD_WIND = "wind"
FIELD_OUTDOOR_TEMPERATURE = "outdoor_temperature"
FIELD_OUTDOOR_HUMIDITY = "outdoor_humidity"
EXPECTED_FIELDS = (FIELD_WIND, FIELD_OUTDOOR_TEMPERATURE, FIELD_OUTDOOR_HUMIDITY)

STATUS_GOOD = "good"
STATUS_PARTIAL = "partial"
STATUS_OFFLINE = "offline"

GAP_FULL_OUTAGE = "full-outage"
GAP_PARTIAL_DEGRADATION = "partial-degradation"

# Raw record aliases, first match wins
FIELD_ALIASES = {
    "timestamp": ("timestamp", "time", "dateutc", "date"),
    "speed_mph": ("windSpeedMph", "windspeedmph", "speed_mph"),
    "speed_ms": ("windSpeedMs", "windSpeed", "windspeed", "speed_ms"),
    "gust_mph": ("windGustMph", "windgustmph", "gust_mph"),
    "gust_ms": ("windGustMs", "windGust", "windgust", "gust_ms"),
    "direction": ("windDirection", "winddir", "direction"),
    "temperature": ("temperature", "tempf", "temp"),
    "humidity": ("humidity",),
    "quality": ("transmissionQuality", "transmission_quality"),
}

# Forecast record aliases (open-meteo style names included), first match wins
WEATHER_FIELD_ALIASES = {
    "timestamp": ("timestamp", "time"),
    "temperature": ("temperature", "temperature_2m", "temp"),
    "pressure": ("pressure", "pressure_msl", "surface_pressure"),
    "precipitation_probability": (
        "precipitation_probability",
        "precipitationProbability",
    ),
    "cloud_cover": ("cloud_cover", "cloudcover", "cloudCover"),
    "wind_speed": ("wind_speed", "wind_speed_10m", "windSpeed"),
    "wind_direction": ("wind_direction", "wind_direction_10m", "windDirection"),
    "humidity": ("humidity", "relative_humidity_2m"),
    "transport_wind_speed": ("transport_wind_speed", "transportWindSpeed"),
    "transport_wind_direction": (
        "transport_wind_direction",
        "transportWindDirection",
    ),
    "mixing_height": ("mixing_height", "mixingHeight"),
    "dispersion_index": ("dispersion_index", "dispersionIndex"),
}

# --- Katabatic defaults ---
DEFAULT_MAX_PRECIPITATION_PROBABILITY = 25.0  # percent
DEFAULT_MIN_CLEAR_SKY = 70.0  # percent of sky clear
DEFAULT_MIN_PRESSURE_CHANGE = 1.0  # hPa
DEFAULT_MIN_TEMPERATURE_DIFFERENTIAL = 3.5  # degrees C, valley minus mountain
DEFAULT_MIN_WAVE_SCORE = 60.0
DEFAULT_MIN_STABILITY_SCORE = 60.0
DEFAULT_MINIMUM_CONFIDENCE = 60.0
DEFAULT_PRESSURE_WINDOW_HOURS = 12
PRESSURE_STABLE_EPSILON = 1.0  # hPa
DEFAULT_PRESSURE_TREND = "rising"
PRESSURE_TRENDS = ("rising", "falling", "either")

CLEAR_SKY_WINDOW = {"start": "02:00", "end": "05:00"}
PREDICTION_WINDOW = {"start": "06:00", "end": "08:00"}

# Weights in percent; must sum to 100
FACTOR_WEIGHTS = {
    "precipitation": 25.0,
    "sky_conditions": 20.0,
    "pressure_change": 15.0,
    "temperature_differential": 20.0,
    "wave_pattern": 10.0,
    "atmospheric_stability": 10.0,
}
WEIGHT_TOLERANCE = 0.01

# Aggregation policy
LOW_CONFIDENCE_THRESHOLD = 40.0
LOW_CONFIDENCE_PENALTY = 0.10  # per low-confidence factor beyond the first
GO_PROBABILITY = 70.0
MAYBE_PROBABILITY = 40.0
HIGH_CONFIDENCE_LABEL = 75.0
MEDIUM_CONFIDENCE_LABEL = 50.0

# Historical temperature differential enhancement
ENHANCEMENT_PROBABILITY_BONUS = 10.0
ENHANCEMENT_CONFIDENCE_BONUS = 10.0
ENHANCEMENT_MAX_BONUS = 25.0

# Proxy bands for the wave pattern and stability estimates
TRANSPORT_WIND_FAVORABLE = (5.0, 15.0)  # m/s
TRANSPORT_WIND_FALLOFF = 10.0  # score lost per m/s outside the band
WAVE_SECTOR = {"center": 270.0, "half_width": 45.0}  # westerly flow over the ridge
MIXING_HEIGHT_SHALLOW = 500.0  # m
MIXING_HEIGHT_DEEP = 1500.0  # m
DISPERSION_LOW = 20.0
DISPERSION_HIGH = 60.0
SURFACE_WIND_CALM = 2.0  # m/s
SURFACE_WIND_BREEZY = 6.0  # m/s

# Proxy factors never claim more than this confidence
PROXY_CONFIDENCE_CAP = 60.0
MISSING_SIGNAL_CONFIDENCE = 0.0

DATA_MEASURED = "measured"
DATA_ESTIMATED = "estimated"
DATA_HISTORICAL_HYBRID = "historical-hybrid"

# --- Prediction lock schedule (local clock) ---
LOCK_SCHEDULE = {
    "active_start": "06:00",
    "verification_start": "07:00",
    "lock_start": "08:00",
}

PHASE_PENDING = "pending"
PHASE_ACTIVE = "active"
PHASE_VERIFICATION = "verification"
PHASE_LOCKED = "locked"
LOCK_PHASES = (PHASE_PENDING, PHASE_ACTIVE, PHASE_VERIFICATION, PHASE_LOCKED)

# --- Multi-day accuracy tracking ---
GOOD_CALL_PROBABILITY = 50.0  # predictions at or above this call the morning good
CALIBRATION_BUCKET_SIZE = 10  # confidence bucket width in percent
