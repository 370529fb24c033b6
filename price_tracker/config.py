"""Configuration loader.

Reads environment variables and `.env` to configure the tracker.
"""

from __future__ import annotations

import os
import re
from typing import Optional, List
from pathlib import Path

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _get_list(name: str) -> list[str]:
    raw = _get_env(name, "") or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


# ---- Core scraping config ----------------------------------------------------

# Product pages live at BASE_URL + product code.
BASE_URL: str = _get_env("BASE_URL", "https://www.bellemaison.jp/shop/commodity/0000/")

USER_AGENT: str = _get_env(
    "USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/98.0.4758.102 Safari/537.36",
)

REQUEST_TIMEOUT_SECONDS: int = _parse_int(_get_env("REQUEST_TIMEOUT_SECONDS"), 60)

# Used when a variant has no colour swatch image; {prefix} is the 7-char SKU prefix.
IMAGE_URL_TEMPLATE: str = _get_env(
    "IMAGE_URL_TEMPLATE",
    "https://pic2.bellemaison.jp/shop/cms/images/0000/catalog/{prefix}/{prefix}_h1_001.jpg",
)

# Upper bound on simultaneous fetch+parse tasks per scrape batch.
SCRAPE_MAX_WORKERS: int = _parse_int(_get_env("SCRAPE_MAX_WORKERS"), 8)

# "In stock" carries no count on the site; this stands in for it.
IN_STOCK_QUANTITY: int = _parse_int(_get_env("IN_STOCK_QUANTITY"), 99)

# Path to SQLite database.
SQLITE_DB_PATH: str = _get_env("SQLITE_DB_PATH", "tracker.db")

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# ---- Report ------------------------------------------------------------------

# Stock at or below this is reported as low.
LOW_STOCK_THRESHOLD: int = _parse_int(_get_env("LOW_STOCK_THRESHOLD"), 9)

REPORT_SUBJECT: str = _get_env("REPORT_SUBJECT", "Belle Maison Price Tracker")

# ---- Schedule (UTC, HH:MM) ---------------------------------------------------

CLEAN_JOBS_AT: str = _get_env("CLEAN_JOBS_AT", "23:59")
ASSIGN_JOBS_AT: str = _get_env("ASSIGN_JOBS_AT", "00:00")
DAILY_REPORT_AT: str = _get_env("DAILY_REPORT_AT", "04:00")

# Minute past every hour at which the job queue is drained.
SCRAPE_MINUTE: int = _parse_int(_get_env("SCRAPE_MINUTE"), 30)

# ---- Cache -------------------------------------------------------------------

# 0 disables the size bound.
CACHE_MAX_SIZE: int = _parse_int(_get_env("CACHE_MAX_SIZE"), 1024)
LOOKUP_CACHE_TTL_SECONDS: int = _parse_int(_get_env("LOOKUP_CACHE_TTL_SECONDS"), 60 * 60)
TARGETS_CACHE_TTL_SECONDS: int = _parse_int(_get_env("TARGETS_CACHE_TTL_SECONDS"), 24 * 60 * 60)

# ---- Email notifications -----------------------------------------------------

EMAIL_ENABLED: bool = _parse_bool(_get_env("EMAIL_ENABLED", "false"), False)
EMAIL_SMTP_HOST: str = _get_env("EMAIL_SMTP_HOST", "smtp.gmail.com")
EMAIL_SMTP_PORT: int = _parse_int(_get_env("EMAIL_SMTP_PORT"), 587)  # 587 (TLS) or 465 (SSL)
EMAIL_USE_TLS: bool = _parse_bool(_get_env("EMAIL_USE_TLS", "true"), True)  # if False and port=465, SSL will be used
EMAIL_USERNAME: str | None = _get_env("EMAIL_USERNAME")
EMAIL_PASSWORD: str | None = _get_env("EMAIL_PASSWORD")
EMAIL_FROM: str | None = _get_env("EMAIL_FROM")
EMAIL_TO: list[str] = _get_list("EMAIL_TO")  # comma-separated
EMAIL_SUBJECT_PREFIX: str = _get_env("EMAIL_SUBJECT_PREFIX", "[Tracker]")

# ---- Validation --------------------------------------------------------------

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_hhmm(value: str) -> tuple[int, int]:
    """Split an ``HH:MM`` string into (hour, minute)."""
    if not _HHMM.match(value or ""):
        raise RuntimeError(f"Invalid time of day {value!r}; expected HH:MM")
    hour, minute = value.split(":")
    return int(hour), int(minute)


def validate() -> None:
    """Validate required configuration parameters."""
    for name in ("CLEAN_JOBS_AT", "ASSIGN_JOBS_AT", "DAILY_REPORT_AT"):
        parse_hhmm(globals()[name])
    if not 0 <= SCRAPE_MINUTE <= 59:
        raise RuntimeError("SCRAPE_MINUTE must be between 0 and 59")
    if SCRAPE_MAX_WORKERS < 1:
        raise RuntimeError("SCRAPE_MAX_WORKERS must be at least 1")
    if EMAIL_ENABLED:
        missing = [
            n for n in ("EMAIL_USERNAME", "EMAIL_PASSWORD", "EMAIL_TO")
            if not globals()[n]
        ]
        if missing:
            raise RuntimeError(
                f"EMAIL_ENABLED is set but {', '.join(missing)} missing. See .env.example for details."
            )


__all__ = [
    # Core
    "BASE_URL",
    "USER_AGENT",
    "REQUEST_TIMEOUT_SECONDS",
    "IMAGE_URL_TEMPLATE",
    "SCRAPE_MAX_WORKERS",
    "IN_STOCK_QUANTITY",
    "SQLITE_DB_PATH",
    "LOG_LEVEL",
    # Report
    "LOW_STOCK_THRESHOLD",
    "REPORT_SUBJECT",
    # Schedule
    "CLEAN_JOBS_AT",
    "ASSIGN_JOBS_AT",
    "DAILY_REPORT_AT",
    "SCRAPE_MINUTE",
    # Cache
    "CACHE_MAX_SIZE",
    "LOOKUP_CACHE_TTL_SECONDS",
    "TARGETS_CACHE_TTL_SECONDS",
    # Helpers
    "parse_hhmm",
    "validate",
    "EMAIL_ENABLED", "EMAIL_SMTP_HOST", "EMAIL_SMTP_PORT", "EMAIL_USE_TLS",
    "EMAIL_USERNAME", "EMAIL_PASSWORD", "EMAIL_FROM", "EMAIL_TO", "EMAIL_SUBJECT_PREFIX",
]
