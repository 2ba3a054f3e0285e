import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent

# -----------------------------
# Remote tables (one worksheet per table)
# -----------------------------
CLIENTS_TAB = "clients"
CLIENTS_HEADERS = [
    "id",
    "name",
    "total_hours",            # float, running sum of session hours
    "sessions",               # JSON list[{id, date, hours, description}]
    "created_at",
    "updated_at",
]
CLIENTS_ORDER_BY = "created_at"

EVENTS_TAB = "calendar_events"
EVENTS_HEADERS = [
    "id",
    "date",                   # YYYY-MM-DD
    "client_id",
    "client_name",            # copy of the client name at creation time
    "hours",
    "description",
    "start_time",             # free text HH:MM
    "end_time",
    "type",                   # session/meeting/task/other
    "created_at",
    "updated_at",
]
EVENTS_ORDER_BY = "date"

EVENT_TYPES = ["session", "meeting", "task", "other"]

# -----------------------------
# Local cache
# -----------------------------
LOCAL_CACHE_PATH = Path(
    os.environ.get("TIMETRACK_CACHE_PATH", PROJECT_ROOT / "data" / "local_cache.json")
)
CLIENTS_CACHE_KEY = "timeTrackingClients"
EVENTS_CACHE_KEY = "timeTrackingEvents"

# -----------------------------
# Runtime
# -----------------------------
REMOTE_WORKERS = int(os.environ.get("TIMETRACK_REMOTE_WORKERS", "4"))
TICK_INTERVAL_SECONDS = 1.0

LOG_LEVEL = os.environ.get("TIMETRACK_LOG_LEVEL", "INFO")
LOG_FILE = os.environ.get("TIMETRACK_LOG_FILE") or None
