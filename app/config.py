import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Local SQLite file unless a hosted database is configured
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./photo_ops.db")

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))

# Warn about queries slower than the threshold (seconds)
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Frontend base URL (dashboard)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# CORS - comma separated list of origins allowed to call the API
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    f"{FRONTEND_URL},http://localhost:3000",
).split(",")

# Calendar grid settings
# Slot granularity for week/day views (minutes)
SCHEDULING_SLOT_MINUTES = int(os.getenv("SCHEDULING_SLOT_MINUTES", "30"))
# Visible day window for week/day views (24h clock)
SCHEDULING_DAY_START_HOUR = int(os.getenv("SCHEDULING_DAY_START_HOUR", "8"))
SCHEDULING_DAY_END_HOUR = int(os.getenv("SCHEDULING_DAY_END_HOUR", "20"))
# Events rendered per month cell before collapsing into "+N more"
MONTH_VISIBLE_EVENTS = int(os.getenv("MONTH_VISIBLE_EVENTS", "3"))
# How far ahead the agenda view looks (days)
AGENDA_HORIZON_DAYS = int(os.getenv("AGENDA_HORIZON_DAYS", "30"))

# Jobs without a usable duration are booked for this long
DEFAULT_JOB_DURATION_MINUTES = int(os.getenv("DEFAULT_JOB_DURATION_MINUTES", "60"))

# Straight-line travel heuristic: average city driving speed.
# Placeholder until a routing provider is plugged in (30 km/h = 2 min/km)
TRAVEL_AVERAGE_SPEED_KMH = float(os.getenv("TRAVEL_AVERAGE_SPEED_KMH", "30"))

# Max number of slot suggestions returned for a new booking
SUGGESTION_LIMIT = int(os.getenv("SUGGESTION_LIMIT", "5"))
