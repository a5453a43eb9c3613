"""Configuration module for the Sequence Embedding Dashboard backend."""
import os
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()


APP_NAME = "Sequence Embedding Dashboard"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Development server
DEV_HOST = os.environ.get("DEV_HOST", "127.0.0.1")
DEV_PORT = int(os.environ.get("DEV_PORT", "8000"))

# Upstream analysis API
PATHTRACK_API_BASE_URL = os.environ.get("PATHTRACK_API_BASE_URL", "http://localhost:8080/api/v1")
PATHTRACK_API_KEY = os.environ.get("PATHTRACK_API_KEY", "")
PATHTRACK_TIMEOUT_SEC = float(os.environ.get("PATHTRACK_TIMEOUT_SEC", "30.0"))
DEFAULT_EMBEDDING_MODEL = os.environ.get("DEFAULT_EMBEDDING_MODEL", "DNABERT-S")

# Job polling
JOB_POLL_INTERVAL_MS = int(os.environ.get("JOB_POLL_INTERVAL_MS", "2000"))
JOB_SIMULATED_DELAY_SEC = float(os.environ.get("JOB_SIMULATED_DELAY_SEC", "0"))

# Reference cache fallback chain
CACHE_PRIMARY_RETRIES = int(os.environ.get("CACHE_PRIMARY_RETRIES", "3"))
CACHE_PRIMARY_RETRY_DELAY_SEC = float(os.environ.get("CACHE_PRIMARY_RETRY_DELAY_SEC", "1.0"))
SYNTHETIC_RECORD_COUNT = int(os.environ.get("SYNTHETIC_RECORD_COUNT", "100"))

# Accession matching
ACCESSION_PREFIXES: Tuple[str, ...] = tuple(
    p.strip() for p in os.environ.get("ACCESSION_PREFIXES", "NZ_").split(",") if p.strip()
)

# Similar-sequence query and result assembly
SIMILAR_N_RESULTS = int(os.environ.get("SIMILAR_N_RESULTS", "100"))
SIMILAR_MIN_DISTANCE = float(os.environ.get("SIMILAR_MIN_DISTANCE", "-1"))
SIMILAR_MAX_YEAR = int(os.environ.get("SIMILAR_MAX_YEAR", "0"))
SIMILAR_INCLUDE_UNKNOWN_DATES = os.environ.get("SIMILAR_INCLUDE_UNKNOWN_DATES", "true").lower() == "true"
TOP_N_SIMILAR = int(os.environ.get("TOP_N_SIMILAR", "10"))
MAP_SUBSET_SIZE = int(os.environ.get("MAP_SUBSET_SIZE", "50"))
YEAR_RANGE_FALLBACK_SPAN = int(os.environ.get("YEAR_RANGE_FALLBACK_SPAN", "10"))

CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]


def get_settings() -> dict:
    """Get application settings as a dictionary."""
    return {
        "app_name": APP_NAME,
        "log_level": LOG_LEVEL,
        "api_base_url": PATHTRACK_API_BASE_URL,
        "embedding_model": DEFAULT_EMBEDDING_MODEL,
        "poll_interval_ms": JOB_POLL_INTERVAL_MS,
        "simulated_delay_sec": JOB_SIMULATED_DELAY_SEC,
    }
