"""
Central configuration for the intelsuite SITREP engine.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Load .env file if present (must happen before reading env vars)
load_dotenv(BASE_DIR / ".env")

DATA_DIR = BASE_DIR / "data"
EXPORT_DIR = DATA_DIR / "exports"

# Database
DATABASE_URL = os.getenv("INTELSUITE_DB_URL", f"sqlite:///{BASE_DIR / 'intelsuite.db'}")

# app_settings key holding the editable lookup tables
CONFIG_SETTING_KEY = "engine_configuration"

# Analysis record defaults
UNKNOWN_ACTOR = "Unknown Ts"
BASELINE_ACTION = "raid"
CLAIMED_ACTION = "claimed attk"
DEFAULT_SOURCE = "@X"
SOCIAL_MEDIA_FALLBACK_GROUP = "FAH"

# Text openers that name an unidentified actor
GENERIC_ACTOR_NOUNS = ["militants", "terrorists", "unknown ts"]

# Action categories -> keyword synonyms. Order matters: first match wins.
DEFAULT_ACTION_MAP = {
    "ambush": ["ambush", "ambushed"],
    "sb attk": ["suicide bomber", "sb attk", "sb"],
    "fire raid": ["sniper", "laser", "gl", "fire raid", "shot", "gunmen", "motorcyclist", "sniper fire"],
    "blast": ["mine", "ied", "blast"],
    "strike": ["missile", "drone"],
    "raid": ["raid", "cp attack", "post attack", "attacked", "attk on", "hideout"],
    "tgt attk": ["targeted", "target attk", "shot dead", "martyred"],
    "repulse": ["repulse"],
    "claimed attk": ["claimed"],
}

# Target categories -> keyword synonyms. Order matters: first match wins.
DEFAULT_TARGET_MAP = {
    "SFs cny": ["convoy", "cny", "military convoy"],
    "SFs Post/CP": ["post", "cp", "checkpost", "observation post", "bungalow", "bungla"],
    "LEAs": ["police", "policeman", "police station", "ps"],
    "Army": ["army", "military"],
    "SFs": ["sfs", "security forces", "sf", "mil"],
    "CTD": ["ctd"],
    "FC": ["fc"],
    "PC": ["police constable", "constable"],
    "ASI": ["asi"],
}

DEFAULT_LOCATION_CODES = {
    "Bannu": {"code": "Bxu", "lat": 32.98, "lon": 70.6},
    "North Waziristan": {"code": "NWD", "lat": 32.96, "lon": 69.84},
    "South Waziristan": {"code": "SWD", "lat": 32.42, "lon": 69.79},
    "Kurram": {"code": "Krm", "lat": 33.8, "lon": 70.1},
    "Bajaur": {"code": "Bjr", "lat": 34.7, "lon": 71.1},
    "Khyber": {"code": "Khy", "lat": 34.0, "lon": 71.1},
    "Lakki Marwat": {"code": "Lki", "lat": 32.6, "lon": 70.9},
    "Karachi": {"code": "Kci", "lat": 24.86, "lon": 67.01},
    "Mardan": {"code": "Mdx", "lat": 34.2, "lon": 72.0},
    "Dir Lower": {"code": "DIL", "lat": 35.2, "lon": 71.9},
    "Dir Upper": {"code": "DIU", "lat": 35.8, "lon": 72.0},
    "Dera Ismail Khan": {"code": "DIK", "lat": 31.8, "lon": 70.9},
    "Panjgur": {"code": "Pjr", "lat": 26.97, "lon": 64.10},
    "Balochistan": {"code": "Bln", "lat": 28.4, "lon": 65.0},
}

DEFAULT_MILITANT_GROUPS = ["FAK", "IMP", "BLA", "BLF", "FAH", "TTP"]

# Common misspellings of place names in field reporting (not user-editable)
LOCATION_CORRECTIONS = {
    "Jhao": "Jhalo",
    "Dosli": "Dosali",
    "Patnr": "Patne",
    "Spinwam": "Spenwam",
}

# Threat scoring
THREAT_WEIGHTS = {
    "actions": {
        "sb attk": 10,
        "strike": 9,
        "ambush": 8,
        "blast": 7,
        "fire raid": 6,
        "raid": 5,
    },
    "targets": {
        "SFs cny": 8,
        "SFs Post/CP": 7,
        "LEAs": 6,
        "Army": 7,
        "SFs": 5,
    },
    "casualties": {
        "sh": 5,
        "inj": 2,
        "Ts killed": -1,
    },
}
DEFAULT_ACTION_WEIGHT = 3
DEFAULT_TARGET_WEIGHT = 2

# (exclusive upper bound, level, display width)
THREAT_BANDS = [
    (8, "Low", "25%"),
    (15, "Medium", "50%"),
    (25, "High", "75%"),
    (None, "Severe", "100%"),
]

# Suggestion and dashboard windows
PATTERN_WINDOW_DAYS = 14
FORECAST_WINDOW_DAYS = 7
FORECAST_MIN_REPORTS = 3
ACTIVITY_WINDOWS = {
    "last_24h": 1,      # days
    "last_7d": 7,       # days
    "last_30d": 30,     # days
}
