"""Daily digest of targets that reached their price or are running out."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from . import config
from .db import Store, TargetInfo
from .emailer import send_email

logger = logging.getLogger(__name__)

TARGET_MET_HEADING = "The following products have achieved your target price:"
LOW_STOCK_HEADING = "The following products have not achieved your target price but the stock is low now:"


def _describe(t: TargetInfo) -> str:
    variant = " / ".join(v for v in (t.colour, t.size) if v)
    label = f"{t.name} ({variant})" if variant else f"{t.name}"
    return f"{label}: target price: {t.target_price}, current price: {t.price}, stock: {t.stock}"


def classify(targets: Iterable[TargetInfo], low_stock_threshold: int) -> tuple[List[TargetInfo], List[TargetInfo]]:
    """Split targets into (target met, low stock).

    A target whose price equals its target price is only reported as met,
    even when its stock is also low.  Targets without any observation are
    ignored.
    """
    met: List[TargetInfo] = []
    low: List[TargetInfo] = []
    for t in targets:
        if t.price is None:
            continue
        if t.price <= t.target_price:
            met.append(t)
        elif t.stock is not None and t.stock <= low_stock_threshold:
            low.append(t)
    return met, low


def build_digest(targets: Sequence[TargetInfo], low_stock_threshold: Optional[int] = None) -> Optional[str]:
    """Compose the digest body, or None when nothing qualifies."""
    threshold = config.LOW_STOCK_THRESHOLD if low_stock_threshold is None else low_stock_threshold
    met, low = classify(targets, threshold)
    if not (met or low):
        return None

    sections = []
    if met:
        sections.append("\n".join([TARGET_MET_HEADING] + [_describe(t) for t in met]))
    if low:
        sections.append("\n".join([LOW_STOCK_HEADING] + [_describe(t) for t in low]))
    return "\n\n".join(sections) + "\n"


class ReportGenerator:
    def __init__(
        self,
        store: Store,
        *,
        low_stock_threshold: Optional[int] = None,
        send: Callable[[str, str], bool] = send_email,
    ) -> None:
        self._store = store
        self._threshold = config.LOW_STOCK_THRESHOLD if low_stock_threshold is None else low_stock_threshold
        self._send = send

    def generate(self) -> Optional[str]:
        return build_digest(self._store.get_targets(), self._threshold)

    def send_daily_report(self) -> Optional[str]:
        """Build today's digest and email it; returns the body that was sent."""
        logger.info("Generating daily report...")
        body = self.generate()
        if body is None:
            logger.info("Nothing to report today")
            return None
        self._send(config.REPORT_SUBJECT, body)
        return body


__all__ = ["ReportGenerator", "build_digest", "classify", "TARGET_MET_HEADING", "LOW_STOCK_HEADING"]
