from __future__ import annotations

import threading
from typing import Dict, List, Union

import pytest
import requests

from price_tracker.db import Store
from price_tracker.scraper import ScrapedProduct, ScrapedStyle, ScrapeResult, Scraper

BASE_URL = "https://shop.example.com/commodity/0000/"

PRODUCT_PAGE = """
<html><head><meta charset="utf-8"></head><body>
<h1 class="product-name text-weight-bold">Linen Shirt</h1>
<div class="standard-area">
  <div id="commodityStandardAreaMessage"></div>
  <div class="standard-info" data-standard-detail1="M" data-standard-detail2="Navy"
       data-price="3,990" data-stock-status="在庫あり" data-nucleus-sku-code="1234567001"></div>
  <div class="standard-info" data-standard-detail1="L" data-standard-detail2="Navy"
       data-standard-detail12="Long" data-price="4,290" data-stock-status="在庫：3"
       data-nucleus-sku-code="1234567002"></div>
  <div class="standard-info" data-standard-detail1="-" data-standard-detail2="Beige"
       data-standard-detail12="-" data-price="1,290" data-stock-status="入荷予定"
       data-nucleus-sku-code="1234567003"></div>
  <div class="standard-info" data-standard-detail1="S" data-standard-detail2="White"
       data-price="abc" data-stock-status="売り切れ" data-nucleus-sku-code="1234567004"></div>
  <ul class="variations">
    <li class="variation-list_item"><input name="color" data-name="Navy" data-img="https://img.example.com/navy.jpg"></li>
  </ul>
  <div class="radios">
    <span class="variation-check-radio"><input name="color" data-name="Beige" data-img="https://img.example.com/beige.jpg"></span>
  </div>
</div>
</body></html>
"""

NOT_FOUND_PAGE = """
<html><head><meta charset="utf-8"></head><body><h1 class="title">お探しの商品が見つかりません</h1></body></html>
"""

BROKEN_PAGE = "<html><body><h1>Maintenance</h1></body></html>"


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", reason: str = "OK") -> None:
        self.status_code = status_code
        self.content = text.encode("utf-8")
        self.reason = reason


Page = Union[FakeResponse, Exception]


class FakeSession:
    """Serves canned responses keyed by the last path segment of the URL."""

    def __init__(self, pages: Dict[str, Page]) -> None:
        self.pages = pages
        self.calls: List[str] = []
        self._lock = threading.Lock()
        self.closed = False

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        with self._lock:
            self.calls.append(url)
        code = url.rstrip("/").rsplit("/", 1)[-1]
        page = self.pages.get(code, FakeResponse(404, "", "Not Found"))
        if isinstance(page, Exception):
            raise page
        return page

    def close(self) -> None:
        self.closed = True


def ok(text: str = PRODUCT_PAGE) -> FakeResponse:
    return FakeResponse(200, text)


def make_scraper(pages: Dict[str, Page]) -> Scraper:
    return Scraper(FakeSession(pages), base_url=BASE_URL, timeout=5, max_workers=4)


def style(colour: str, size: str, price: int, stock: int, code: str = "001") -> ScrapedStyle:
    return ScrapedStyle(
        style_code=code,
        image_url=f"https://img.example.com/{colour.lower()}.jpg",
        colour=colour,
        size=size,
        price=price,
        stock=stock,
    )


def success(code: str, name: str, *styles: ScrapedStyle) -> ScrapeResult:
    return ScrapeResult(product_code=code, product=ScrapedProduct(name=name, styles=list(styles)))


@pytest.fixture()
def store(tmp_path) -> Store:
    s = Store(str(tmp_path / "tracker.db"))
    s.init_db()
    return s


@pytest.fixture()
def connection_error() -> Exception:
    return requests.ConnectionError("connection refused")
