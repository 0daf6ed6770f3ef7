# backend/config.py

import os
import logging
from datetime import timedelta

FETCH_INTERVAL_SECONDS = int(os.getenv("FETCH_INTERVAL_SECONDS", "300"))  # 5 minutes
UTILIZATION_WINDOW_SECONDS = 300  # 5 minutes history

# Scaling thresholds used when the request payload omits them
DEFAULT_SCALE_UP_THRESHOLD = 50.0
DEFAULT_SCALE_DOWN_THRESHOLD = 30.0

# Cooldown between scale-downs of the same instance
DEFAULT_RESIZE_INTERVAL_MINUTES = 30

# Whole request budget (reads + update operation), and per HTTP call
REQUEST_DEADLINE_SECONDS = float(os.getenv("REQUEST_DEADLINE_SECONDS", "600"))
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
OPERATION_POLL_SECONDS = float(os.getenv("OPERATION_POLL_SECONDS", "5"))

# Dry-run mode (set to True to log updates instead of applying them)
DRY_RUN = os.getenv("DRY_RUN", "False").lower() == "true"

LOG_FILE = os.getenv("LOG_FILE", "logs/autoscaler.log")

# Scheduler daemon target
AUTOSCALE_URL = os.getenv("AUTOSCALE_URL", "http://localhost:8000/autoscale")


def get_resize_interval() -> timedelta:
    """
    Cooldown interval from RESIZE_INTERVAL_MINUTES, read on every call.

    Falls back to DEFAULT_RESIZE_INTERVAL_MINUTES when unset, not an integer
    or negative.
    """
    raw = os.getenv("RESIZE_INTERVAL_MINUTES", "")
    if not raw:
        return timedelta(minutes=DEFAULT_RESIZE_INTERVAL_MINUTES)
    try:
        minutes = int(raw)
    except ValueError:
        logging.warning(f"Invalid RESIZE_INTERVAL_MINUTES={raw!r}, using {DEFAULT_RESIZE_INTERVAL_MINUTES}")
        return timedelta(minutes=DEFAULT_RESIZE_INTERVAL_MINUTES)
    if minutes < 0:
        logging.warning(f"Negative RESIZE_INTERVAL_MINUTES={minutes}, using {DEFAULT_RESIZE_INTERVAL_MINUTES}")
        return timedelta(minutes=DEFAULT_RESIZE_INTERVAL_MINUTES)
    return timedelta(minutes=minutes)
