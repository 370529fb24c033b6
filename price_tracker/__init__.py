"""Price and stock tracker package.

This package contains modules for scraping product pages, merging the
readings into an append-only price history, draining the hourly job
queue and emailing a daily digest of targets.  See README.md for details.
"""

__all__ = [
    "cache",
    "config",
    "db",
    "emailer",
    "jobs",
    "main",
    "reconciler",
    "report",
    "scheduler",
    "scraper",
    "tracker",
    "utils",
]
