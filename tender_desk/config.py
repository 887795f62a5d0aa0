"""Configuration for the Tender Desk workspace."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Paths
BASE_DIR = Path(__file__).parent
PROJECT_ROOT = BASE_DIR.parent


def load_env() -> None:
    """Load environment variables from ``.env`` files.

    Searches in the following order:
    1. ``.env`` in the project root
    2. ``.env`` in the current working directory
    """
    root_env = PROJECT_ROOT / ".env"
    cwd_env = Path.cwd() / ".env"

    if root_env.exists():
        load_dotenv(root_env, override=False)
    if cwd_env.exists() and cwd_env != root_env:
        load_dotenv(cwd_env, override=False)


load_env()

DATA_DIR = Path(os.getenv("TENDER_DESK_DATA_DIR", str(Path.home() / ".tender_desk")))

# Feed fetching
CORS_PROXY_URL = os.getenv("CORS_PROXY_URL", "https://corsproxy.io/?")
FEED_TIMEOUT_SECONDS = float(os.getenv("FEED_TIMEOUT_SECONDS", "30"))
REFRESH_DEBOUNCE_SECONDS = int(os.getenv("REFRESH_DEBOUNCE_SECONDS", "300"))
ISOLATE_SOURCE_FAILURES = os.getenv("ISOLATE_SOURCE_FAILURES", "false").lower() in ("1", "true", "yes")
USER_AGENT = "Mozilla/5.0 (TenderDesk)"

DEFAULT_SOURCES: list[dict] = [
    {"id": "sudanbid-json", "url": "https://rss.app/feeds/v1.1/5hvMa0JIXJnG0baI.json"},
]

# Feed normalisation
SUMMARY_MAX_CHARS = 200
SUMMARY_SUFFIX = "..."
MISSING_TITLE = "No Title"
MISSING_SUMMARY = "No Summary"
MISSING_LINK = "#"

# Closing-date inference
# More specific phrases must come before the generic ones.
CLOSING_DATE_KEYWORDS: tuple[str, ...] = (
    "closing date:",
    "closing date",
    "deadline",
    "closes at",
    "submission deadline",
    "closing:",
)
CLOSING_DATE_WINDOW_CHARS = 100
CLOSING_DATE_FALLBACK_DAYS = 30
CLOSING_DATE_MAX_AGE_YEARS = 1

# Source-name substring (lower case) -> override policy name.
# "published_date": the feed's publish date *is* the closing date.
CLOSING_DATE_SOURCE_OVERRIDES: dict[str, str] = {
    "africa cdc": "published_date",
}

# Dashboard windows
UPCOMING_DEADLINE_DAYS = 7
PRIORITY_TASK_DAYS = 3
DASHBOARD_LIST_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10

# Invoicing
INVOICE_DUE_DAYS = 30

# AI defaults
AI_PROVIDER = os.getenv("AI_PROVIDER", "Google Gemini")
AI_API_KEY = os.getenv("AI_API_KEY", "")
AI_MODEL = os.getenv("AI_MODEL", "gemini-2.5-flash")
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "4096"))
AI_PROMPT_TEXT_LIMIT = 15000

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
