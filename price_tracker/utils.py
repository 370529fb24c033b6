"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session and applying retry policies to storage calls.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Optional, TypeVar

import requests
from tenacity import (after_log, retry, retry_if_exception,
                      stop_after_attempt, wait_exponential)

from . import config


logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def get_http_session() -> requests.Session:
    """Return a new HTTP session with sensible defaults.

    The session identifies itself with the configured User-Agent.
    Caller is responsible for closing the session or letting it be
    garbage collected.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": config.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
    )
    return session


class TransportError(Exception):
    """Raised when a product page cannot be retrieved.

    ``status`` is the HTTP status code, or None when no response arrived.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


def retry_when_locked(func: F) -> F:
    """Retry a storage call while SQLite reports the database as locked.

    The scheduler and any request-serving process share one database file,
    so short write contention is expected.  A maximum of 5 attempts are
    made with exponential back-off between 0.2 and 5 seconds; any other
    error is raised immediately.
    """
    return retry(
        reraise=True,
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=5),
        retry=retry_if_exception(_is_locked),
        after=after_log(logger, logging.WARNING),
    )(func)


__all__ = ["get_http_session", "retry_when_locked", "TransportError"]
