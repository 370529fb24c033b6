from __future__ import annotations

import pytest

from price_tracker.db import TargetInfo
from price_tracker.reconciler import Reconciler
from price_tracker.report import (LOW_STOCK_HEADING, TARGET_MET_HEADING,
                                  ReportGenerator, build_digest, classify)

from conftest import style, success


def _info(price, stock, target_price=1000, name="Linen Shirt"):
    return TargetInfo(
        id=1, product_code="P1", target_price=target_price, name=name,
        colour="Navy", size="M", image_url="", price=price, stock=stock,
    )


@pytest.mark.parametrize(
    "price, stock, expected",
    [
        (900, 5, "met"),
        (1100, 5, "low"),
        (1000, 20, "met"),
        (1100, 20, None),
        (1000, 5, "met"),
        (1100, 9, "low"),
        (1100, 10, None),
    ],
)
def test_classify(price, stock, expected) -> None:
    met, low = classify([_info(price, stock)], low_stock_threshold=9)
    got = "met" if met else "low" if low else None
    assert got == expected
    assert len(met) + len(low) <= 1


def test_digest_groups_lines_under_headings() -> None:
    body = build_digest(
        [
            _info(900, 50, name="Shirt"),
            _info(1500, 2, name="Coat"),
            _info(2000, 50, name="Scarf"),
        ],
        low_stock_threshold=9,
    )

    assert body.index(TARGET_MET_HEADING) < body.index("Shirt (Navy / M)") < body.index(LOW_STOCK_HEADING)
    assert body.index(LOW_STOCK_HEADING) < body.index("Coat (Navy / M)")
    assert "Scarf" not in body
    assert "target price: 1000, current price: 900" in body


def test_digest_is_none_when_nothing_qualifies() -> None:
    assert build_digest([_info(2000, 50), _info(None, None)], low_stock_threshold=9) is None
    assert build_digest([], low_stock_threshold=9) is None


def test_send_daily_report_uses_latest_observation(store) -> None:
    reconciler = Reconciler(store)
    reconciler.merge(success("P1", "Linen Shirt", style("Navy", "M", 3990, 99)))
    product = store.get_product_by_code("P1")
    s = store.get_style(product.id, "Navy", "M")
    store.add_target("P1", product.id, s.id, 3000)

    sent = []
    report = ReportGenerator(store, low_stock_threshold=9, send=lambda subject, body: sent.append((subject, body)))

    assert report.send_daily_report() is None
    assert sent == []

    reconciler.merge(success("P1", "Linen Shirt", style("Navy", "M", 2990, 99)))
    body = report.send_daily_report()

    assert len(sent) == 1
    assert sent[0][1] == body
    assert "current price: 2990" in body
