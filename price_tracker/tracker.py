"""Tracker: the one object scheduled jobs and request handlers share.

It owns the store, scraper, reconciler, job queue and cache, and exposes
the operations callers outside the scrape pipeline need.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from . import config
from .cache import TTLCache
from .db import PriceObservation, Store, StyleNotFound, Target, TargetInfo
from .jobs import DrainSummary, JobQueue
from .reconciler import MergeStatus, Reconciler
from .report import ReportGenerator
from .scraper import ScrapeResult, Scraper

logger = logging.getLogger(__name__)

TARGETS_CACHE_KEY = "target"
LOOKUP_CACHE_PREFIX = "scraper_result_"


class Tracker:
    def __init__(
        self,
        store: Store,
        scraper: Scraper,
        *,
        cache: Optional[TTLCache] = None,
        report: Optional[ReportGenerator] = None,
    ) -> None:
        self.store = store
        self.scraper = scraper
        self.reconciler = Reconciler(store)
        self.queue = JobQueue(store, scraper, self.reconciler)
        self.cache = cache if cache is not None else TTLCache(max_size=config.CACHE_MAX_SIZE)
        self.report = report or ReportGenerator(store)

    @classmethod
    def from_config(cls) -> "Tracker":
        """Build a tracker from the environment and make sure the schema exists."""
        store = Store(config.SQLITE_DB_PATH)
        store.init_db()
        return cls(store, Scraper())

    # ---- scheduled work ------------------------------------------------------

    def reseed_jobs(self) -> None:
        self.queue.assign()

    def clear_jobs(self) -> None:
        self.queue.clear()

    def run_cycle(self) -> DrainSummary:
        summary = self.queue.drain()
        if summary.created or summary.updated:
            self.cache.delete(TARGETS_CACHE_KEY)
        return summary

    def reconcile(self, result: ScrapeResult) -> MergeStatus:
        """Merge a result obtained outside the schedule, e.g. by lookup()."""
        status = self.reconciler.merge(result)
        if status is not MergeStatus.SKIPPED:
            self.cache.delete(TARGETS_CACHE_KEY)
        return status

    def send_daily_report(self) -> Optional[str]:
        return self.report.send_daily_report()

    # ---- on-demand lookups ---------------------------------------------------

    def lookup(self, code: str) -> ScrapeResult:
        """Scrape one product, reusing a recent result for the same code."""
        key = LOOKUP_CACHE_PREFIX + code
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        result = self.scraper.scrape_one(code)
        if result.error is None:
            self.cache.add(key, result, config.LOOKUP_CACHE_TTL_SECONDS)
        return result

    def add_target(self, code: str, colour: str, size: str, target_price: int) -> Target:
        """Start tracking one variant of a product.

        Scrapes the product when it has never been stored.  Raises the
        scrape error when the product cannot be retrieved, StyleNotFound
        for an unknown variant and TargetExistsError when the variant is
        already tracked.
        """
        product = self.store.get_product_by_code(code)
        if product is None:
            result = self.lookup(code)
            if result.error is not None:
                raise result.error
            self.reconcile(result)
            product = self.store.get_product_by_code(code)

        style = self.store.get_style(product.id, colour, size)
        if style is None:
            raise StyleNotFound(f"{code} has no variant {colour}/{size}")

        target = self.store.add_target(code, product.id, style.id, target_price)
        self.cache.delete(TARGETS_CACHE_KEY)
        logger.info("Tracking %s %s/%s at %d", code, colour, size, target_price)
        return target

    def list_targets(self, page: int = 1, size: int = 0) -> List[TargetInfo]:
        """Targets with their latest price, newest first; ``size`` 0 returns all."""
        targets = self.cache.get(TARGETS_CACHE_KEY)
        if targets is None:
            targets = self.store.get_targets()
            self.cache.add(TARGETS_CACHE_KEY, targets, config.TARGETS_CACHE_TTL_SECONDS)
        if size <= 0:
            return list(targets)
        start = size * (max(page, 1) - 1)
        return list(targets[start:start + size])

    def update_target(self, target_id: int, target_price: int) -> None:
        if not self.store.update_target_price(target_id, target_price):
            raise LookupError(f"target {target_id} not found")
        self.cache.delete(TARGETS_CACHE_KEY)

    def delete_target(self, target_id: int) -> None:
        if not self.store.delete_target(target_id):
            raise LookupError(f"target {target_id} not found")
        self.cache.delete(TARGETS_CACHE_KEY)

    def delete_product(self, code: str) -> None:
        product = self.store.get_product_by_code(code)
        if product is None:
            raise LookupError(f"product {code} not found")
        self.store.delete_product(product.id)
        self.cache.delete(TARGETS_CACHE_KEY)
        self.cache.delete(LOOKUP_CACHE_PREFIX + code)
        logger.info("Deleted product %s", code)

    def price_history(self, style_id: int) -> List[PriceObservation]:
        return self.store.get_price_history(style_id)

    def close(self) -> None:
        self.scraper.close()


__all__ = ["Tracker", "TARGETS_CACHE_KEY", "LOOKUP_CACHE_PREFIX"]
