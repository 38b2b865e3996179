import os
from datetime import datetime, timezone
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

ENV = os.getenv("ENV", "TEST").upper()

DEFAULTS = {
    "TEST": {
        "API_URL": "http://localhost:5000",
        "PAGE_LIMIT": "20",
        "LOG_LEVEL": "DEBUG",
    },
    "LIVE": {
        "API_URL": "https://tiffsy-backend.onrender.com",
        "PAGE_LIMIT": "20",
        "LOG_LEVEL": "INFO",
    }
}

cfg = DEFAULTS["LIVE"] if ENV == "LIVE" else DEFAULTS["TEST"]

API_URL    = os.getenv("OPS_API_URL", cfg["API_URL"]).rstrip("/")
AUTH_TOKEN = os.getenv("AUTH_TOKEN", "")
LOG_LEVEL  = os.getenv("LOG_LEVEL", cfg["LOG_LEVEL"]).upper()

# Transport default; this layer adds no timeout of its own
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "60"))

# Fetch behavior
FETCH_MIN_INTERVAL_SECONDS = float(os.getenv("FETCH_MIN_INTERVAL_SECONDS", "0.5"))
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", cfg["PAGE_LIMIT"]))

# Cache TTLs (seconds). 0 disables caching for that read.
ORDER_LIST_TTL_SECONDS   = float(os.getenv("ORDER_LIST_TTL_SECONDS", "30"))
ORDER_DETAIL_TTL_SECONDS = float(os.getenv("ORDER_DETAIL_TTL_SECONDS", "30"))
ORDER_STATS_TTL_SECONDS  = float(os.getenv("ORDER_STATS_TTL_SECONDS", "60"))
DEFAULT_CACHE_TTL_SECONDS = float(os.getenv("DEFAULT_CACHE_TTL_SECONDS", "30"))

# ---------------- Paths (stable, absolute) ----------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Logging
LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
LOG_FILE = os.getenv("LOG_FILE", "ops_console.log")

# Local settings DB (SQLite). The acting role is persisted here by the login flow.
SETTINGS_DB_PATH = os.getenv("SETTINGS_DB_PATH", os.path.join(BASE_DIR, "settings.db"))
ROLE_SETTING_KEY = "user_role"


# -------------- HTTP Session --------------
# Retries are pinned to zero: every failure goes back to the operator.
SESSION = requests.Session()
retries = Retry(
    total=0,
    raise_on_status=False,
)
SESSION.mount("http://", HTTPAdapter(max_retries=retries))
SESSION.mount("https://", HTTPAdapter(max_retries=retries))
SESSION.headers.update({"Accept": "application/json"})
if AUTH_TOKEN:
    SESSION.headers["Authorization"] = f"Bearer {AUTH_TOKEN}"

def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
