"""Pending scrape work, reseeded daily and drained hourly.

Only scheduled job callbacks touch the queue and the scheduler runs them
one at a time, so there is no locking here.
"""

from __future__ import annotations

import enum
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List

from .db import Store
from .reconciler import MergeStatus, Reconciler
from .scraper import Scraper

logger = logging.getLogger(__name__)


class QueueState(enum.Enum):
    IDLE = "idle"
    POPULATED = "populated"
    DRAINING = "draining"
    CLEARED = "cleared"


@dataclass
class DrainSummary:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    retry: List[str] = field(default_factory=list)


class JobQueue:
    def __init__(self, store: Store, scraper: Scraper, reconciler: Reconciler) -> None:
        self._store = store
        self._scraper = scraper
        self._reconciler = reconciler
        self._pending: List[str] = []
        self.state = QueueState.IDLE

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def _settle(self) -> None:
        self.state = QueueState.POPULATED if self._pending else QueueState.IDLE

    def assign(self) -> None:
        """Replace the queue with every product code that has a target."""
        self._pending = list(self._store.get_target_codes())
        logger.info("Assigned %d product codes for today", len(self._pending))
        self._settle()

    def clear(self) -> None:
        dropped = len(self._pending)
        self._pending = []
        self.state = QueueState.CLEARED
        logger.info("Cleared job queue (%d codes dropped)", dropped)

    def drain(self) -> DrainSummary:
        """Scrape and reconcile every queued code.

        Codes that failed to fetch or parse, or whose merge raised, go back
        on the queue for the next run.  A product the site no longer lists
        is final and is not retried.
        """
        summary = DrainSummary()
        if not self._pending:
            logger.info("No job, nothing to scrape")
            self._settle()
            return summary

        codes, self._pending = self._pending, []
        self.state = QueueState.DRAINING
        logger.info("Draining %d queued codes", len(codes))

        for result in self._scraper.scrape(codes):
            if result.retryable:
                logger.warning("Scrape of %s failed, will retry: %s", result.product_code, result.error)
                summary.retry.append(result.product_code)
                continue
            try:
                status = self._reconciler.merge(result)
            except sqlite3.Error:
                logger.exception("Failed to store %s, will retry", result.product_code)
                summary.retry.append(result.product_code)
                continue
            except Exception:
                logger.exception("Unexpected error merging %s, will retry", result.product_code)
                summary.retry.append(result.product_code)
                continue

            if status is MergeStatus.CREATED:
                summary.created += 1
            elif status is MergeStatus.UPDATED:
                summary.updated += 1
            else:
                summary.skipped += 1

        self._pending.extend(summary.retry)
        self._settle()
        logger.info(
            "Drain done: %d created, %d updated, %d skipped, %d queued for retry",
            summary.created, summary.updated, summary.skipped, len(summary.retry),
        )
        return summary


__all__ = ["JobQueue", "QueueState", "DrainSummary"]
