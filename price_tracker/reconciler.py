"""Merge scrape results into the store.

Price history is append-only: every merge that touches a style adds one
row to ``prices`` and nothing is ever overwritten.  A product that has
disappeared from the site keeps its history and gets a zero price/stock
reading on each of its styles.
"""

from __future__ import annotations

import enum
import logging
from typing import Dict, List, Protocol, Tuple

from .db import Store, utcnow
from .scraper import ScrapedStyle, ScrapeResult

logger = logging.getLogger(__name__)


class MergeStatus(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class _HasVariant(Protocol):
    colour: str
    size: str


def style_key(style: _HasVariant) -> Tuple[str, str]:
    """Identity of a variant within its product."""
    return (style.colour, style.size)


def _distinct(styles: List[ScrapedStyle]) -> List[ScrapedStyle]:
    seen: Dict[Tuple[str, str], ScrapedStyle] = {}
    for s in styles:
        key = style_key(s)
        if key in seen:
            logger.debug("Duplicate variant %s on page; keeping the first", key)
            continue
        seen[key] = s
    return list(seen.values())


class Reconciler:
    def __init__(self, store: Store) -> None:
        self.store = store

    def merge(self, result: ScrapeResult) -> MergeStatus:
        """Persist one scrape result.

        Transport and parse errors are not persisted; retrying them is the
        caller's business.  Storage errors propagate.
        """
        if result.retryable:
            logger.debug("Not merging %s: %s", result.product_code, result.error)
            return MergeStatus.SKIPPED

        code = result.product_code
        observed_at = utcnow()
        product = self.store.get_product_by_code(code)

        if product is None:
            if result.product is None:
                logger.info("Product %s not found and never stored; nothing to create", code)
                return MergeStatus.SKIPPED
            styles = _distinct(result.product.styles)
            self.store.create_product(code, result.product.name, styles, observed_at)
            logger.info("Created product %s (%s) with %d styles", code, result.product.name, len(styles))
            return MergeStatus.CREATED

        stored = self.store.get_styles(product.id)

        if result.not_found:
            self.store.add_observations([(s.id, 0, 0) for s in stored], observed_at)
            logger.info("Product %s delisted; zeroed %d styles", code, len(stored))
            return MergeStatus.UPDATED

        scraped = result.product
        if scraped.name and scraped.name != product.name:
            self.store.rename_product(product.id, scraped.name)
            logger.info("Product %s renamed %r -> %r", code, product.name, scraped.name)

        by_key = {style_key(s): s for s in stored}
        observations = []
        new_styles = []
        for s in _distinct(scraped.styles):
            match = by_key.get(style_key(s))
            if match is not None:
                observations.append((match.id, s.price, s.stock))
            else:
                new_styles.append(s)

        self.store.add_styles(product.id, new_styles, observed_at)
        self.store.add_observations(observations, observed_at)
        logger.info(
            "Updated product %s: %d observations, %d new styles",
            code, len(observations), len(new_styles),
        )
        return MergeStatus.UPDATED


__all__ = ["MergeStatus", "Reconciler", "style_key"]
