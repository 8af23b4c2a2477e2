"""
Default configuration settings.
These are the base settings that can be overridden by local.py
"""

import dotenv
import os
from pathlib import Path

dotenv.load_dotenv(override=True)

# Project root, overridable from the environment (or .env)
PROJECT_ROOT = Path(os.getenv("PROJECT_ROOT", Path.cwd()))

# Remote endpoints
ROUTE_LIST_URL = os.getenv(
    "RTD_ROUTE_LIST_URL",
    "http://www3.rtd-denver.com/schedules/ajax/getAjaxRouteMenu.action",
)
SCHEDULE_URL = os.getenv(
    "RTD_SCHEDULE_URL",
    "http://www3.rtd-denver.com/schedules/getSchedule.action",
)
HTTP_TIMEOUT = float(os.getenv("RTD_HTTP_TIMEOUT", 30.0))  # seconds

# Freshness probe: fetched once a day to learn the "valid as of" date.
# The Denver-Boulder route is used because it runs every day of the year.
PROBE_ROUTE = "B"
PROBE_ROUTE_KEY = "routeId=B"

# Service days are decided in Denver local time
TIMEZONE = "America/Denver"

# Cache Configuration
CACHE_DIR = Path(os.getenv("RTD_CACHE_DIR", PROJECT_ROOT / "cache" / "rtd"))
CACHE_VERSION = 3  # Bump to discard every persisted record on the next load

# Logging Configuration
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
        "simple": {"format": "%(levelname)s - %(message)s"},
    },
    "handlers": {
        "rtd_schedule": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str((PROJECT_ROOT / "logs" / "rtd_schedule.log").absolute()),
            "maxBytes": 1024 * 1024,  # 1MB
            "backupCount": 3,
            "formatter": "standard",
            "level": "DEBUG",
            "mode": "a",
        },
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
            "level": "INFO",
        },
    },
    "loggers": {
        "": {"handlers": ["console"], "level": "INFO"},  # Root logger
        "rtd_schedule": {
            "handlers": ["rtd_schedule", "console"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
    "log_dir": PROJECT_ROOT / "logs",
}
