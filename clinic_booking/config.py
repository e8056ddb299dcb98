"""Runtime configuration loaded from the environment (and an optional .env file)."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)

DB_PATH = Path(
    os.environ.get(
        "CLINIC_DB_PATH",
        Path(__file__).parent / "clinic_data" / "clinic.db",
    )
)

# Seconds a connection waits on the database write lock before giving up
BUSY_TIMEOUT = float(os.environ.get("CLINIC_BUSY_TIMEOUT", "5.0"))

DEFAULT_DURATION_MINUTES = int(os.environ.get("CLINIC_DEFAULT_DURATION", "30"))
DEFAULT_MAX_PATIENTS_PER_HOUR = int(os.environ.get("CLINIC_DEFAULT_MAX_PER_HOUR", "4"))

LOG_LEVEL = os.environ.get("CLINIC_LOG_LEVEL", "INFO").upper()
