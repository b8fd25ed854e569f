"""
Central settings for the review scraper.

Module-level constants; most can be overridden through environment variables
so the Streamlit app and the CLI share one source of defaults.
"""

import os
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


PROJECT_ROOT = Path(__file__).parent.parent
LOGS_DIR = Path(os.getenv("REVIEWS_LOGS_DIR", str(PROJECT_ROOT / "logs")))

# Extraction
MIN_REVIEW_TEXT_LENGTH = 5          # text must be strictly longer than this
HEURISTIC_MIN_TEXT_LENGTH = 50
HEURISTIC_LIMIT = 5
# "unknown" keeps undetermined ratings explicit; "5" restores the old coercion
DEFAULT_RATING = os.getenv("REVIEWS_DEFAULT_RATING", "unknown")
DEFAULT_LOCALE = os.getenv("REVIEWS_DEFAULT_LOCALE", "uk")

# Pagination
DEFAULT_MAX_REVIEWS = int(os.getenv("REVIEWS_MAX_REVIEWS", "50"))
STALL_LIMIT = 2
SETTLE_TIMEOUT_MS = int(os.getenv("REVIEWS_SETTLE_TIMEOUT_MS", "2000"))

# Browser
DEFAULT_TIMEOUT_MS = 15000
NAVIGATION_TIMEOUT_MS = int(os.getenv("REVIEWS_NAVIGATION_TIMEOUT_MS", "60000"))
HEADLESS = _env_bool("REVIEWS_HEADLESS", True)
USER_AGENT = os.getenv(
    "REVIEWS_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)
RESPECT_ROBOTS = _env_bool("REVIEWS_RESPECT_ROBOTS", True)
ROBOTS_TIMEOUT_SECONDS = 6.0

# Logging
LOG_LEVEL = os.getenv("REVIEWS_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
