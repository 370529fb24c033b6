from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from . import config
from .utils import TransportError, get_http_session

logger = logging.getLogger(__name__)


class ProductNotFound(Exception):
    """The site answered, but the product is no longer listed."""


class ParseError(Exception):
    """The page did not have the structure of a product page."""


@dataclass
class ScrapedStyle:
    style_code: str
    image_url: str
    colour: str
    size: str
    price: int
    stock: int


@dataclass
class ScrapedProduct:
    name: str
    styles: List[ScrapedStyle] = field(default_factory=list)


@dataclass
class ScrapeResult:
    """Outcome of scraping one product code; exactly one of product/error is set."""

    product_code: str
    product: Optional[ScrapedProduct] = None
    error: Optional[Exception] = None

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, ProductNotFound)

    @property
    def retryable(self) -> bool:
        return self.error is not None and not self.not_found


# ---------------------------
# Page markers
# ---------------------------

# h1.title text shown in place of a removed product.
NOT_FOUND_TITLE = "お探しの商品が見つかりません"

# Placeholder the site uses for "no colour" / "no size".
_PLACEHOLDER = "-"
DEFAULT_LABEL = "Standard"

_IN_STOCK = "在庫あり"
_SOLD_OUT = frozenset({
    "売り切れ",                # sold out
    "販売停止",                # discontinued
    "売り切れ（再入荷なし）",  # sold out, no restock
})
_RESTOCK_EXPECTED = "入荷予定"
_STOCK_COUNT = re.compile(r"在庫：\s*(\d+)")

_SKU_PREFIX_LEN = 7


# ---------------------------
# Fetcher
# ---------------------------

def build_product_url(code: str, base_url: Optional[str] = None) -> str:
    base = base_url or config.BASE_URL
    return f"{base.rstrip('/')}/{code}"


def fetch(
    session: requests.Session,
    code: str,
    *,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """GET the product page for *code* and return the raw body.

    Raises TransportError for network failures and non-2xx responses.
    """
    url = build_product_url(code, base_url)
    try:
        resp = session.get(url, timeout=timeout or config.REQUEST_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise TransportError(f"GET {url} failed: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise TransportError(f"{resp.status_code}: {resp.reason}", status=resp.status_code)
    return resp.content


# ---------------------------
# Parser
# ---------------------------

def parse_price(text: Optional[str]) -> int:
    """Parse a price such as ``"12,990"``; anything unparsable yields 0."""
    t = (text or "").replace(",", "").strip()
    if not t.isdecimal():
        return 0
    return int(t)


def parse_stock(description: Optional[str]) -> int:
    """Map the stock status phrase of a variant to a quantity.

    Unknown phrases map to 0 so they surface as low stock.
    """
    text = (description or "").strip()
    if text == _IN_STOCK:
        return config.IN_STOCK_QUANTITY
    if text in _SOLD_OUT:
        return 0
    if _RESTOCK_EXPECTED in text:
        return 0
    m = _STOCK_COUNT.search(text)
    if m:
        return int(m.group(1))
    return 0


def _label(value: Optional[str]) -> str:
    if value is None or value == _PLACEHOLDER:
        return DEFAULT_LABEL
    return value


def _siblings(el: Tag) -> Iterable[Tag]:
    yield from reversed(el.find_previous_siblings())
    yield from el.find_next_siblings()


def _swatch_image(el: Tag, colour: str, container: str) -> str:
    # last matching swatch wins, even when its data-img is empty
    img = ""
    for sib in _siblings(el):
        for swatch in sib.select(f"{container} input[name='color']"):
            if swatch.get("data-name") == colour:
                img = swatch.get("data-img") or ""
    return img


def _image_url(el: Tag, colour: str, sku: str) -> str:
    img = _swatch_image(el, colour, ".variation-list_item")
    if not img:
        img = _swatch_image(el, colour, ".variation-check-radio")
    if not img and sku:
        img = config.IMAGE_URL_TEMPLATE.format(prefix=sku[:_SKU_PREFIX_LEN])
    return img


def _parse_style(el: Tag) -> ScrapedStyle:
    colour = _label(el.get("data-standard-detail2"))
    size = _label(el.get("data-standard-detail1"))

    # some items carry a second size qualifier, e.g. "M/Long"
    detail = el.get("data-standard-detail12")
    if detail is not None and detail != _PLACEHOLDER:
        size = f"{size}/{detail}"

    sku = el.get("data-nucleus-sku-code") or ""
    return ScrapedStyle(
        style_code=sku[_SKU_PREFIX_LEN:],
        image_url=_image_url(el, colour, sku),
        colour=colour,
        size=size,
        price=parse_price(el.get("data-price")),
        stock=parse_stock(el.get("data-stock-status")),
    )


def parse_html(html: bytes | str) -> ScrapedProduct:
    """Convert a product page into a ScrapedProduct.

    Raises ProductNotFound when the page is the site's "not found" page,
    and ParseError when the variant area is missing altogether.
    """
    soup = BeautifulSoup(html, "html.parser")

    for h1 in soup.select("h1.title"):
        if h1.get_text(strip=True) == NOT_FOUND_TITLE:
            raise ProductNotFound(NOT_FOUND_TITLE)

    name_el = soup.select_one("h1.product-name.text-weight-bold")
    name = name_el.get_text(strip=True) if name_el else ""

    anchor = soup.select_one("#commodityStandardAreaMessage")
    if anchor is None or anchor.parent is None:
        raise ParseError("variant area #commodityStandardAreaMessage not found")

    styles = [_parse_style(el) for el in anchor.parent.select(".standard-info")]
    return ScrapedProduct(name=name, styles=styles)


# ---------------------------
# Coordinator
# ---------------------------

class Scraper:
    """Fetches and parses many product codes on a bounded thread pool."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self._session = session or get_http_session()
        self._base_url = base_url or config.BASE_URL
        self._timeout = timeout or config.REQUEST_TIMEOUT_SECONDS
        self._max_workers = max_workers or config.SCRAPE_MAX_WORKERS

    def scrape_one(self, code: str) -> ScrapeResult:
        result = ScrapeResult(product_code=code)
        try:
            body = fetch(self._session, code, base_url=self._base_url, timeout=self._timeout)
            result.product = parse_html(body)
        except (TransportError, ProductNotFound, ParseError) as e:
            result.error = e
        except Exception as e:
            logger.exception("Unexpected error while scraping %s", code)
            result.error = ParseError(f"unexpected error: {e}")
        return result

    def scrape(self, codes: Sequence[str]) -> List[ScrapeResult]:
        """Scrape every code; returns one ScrapeResult per input code."""
        if not codes:
            return []

        workers = min(self._max_workers, len(codes))
        logger.debug("Scraping %d codes on %d workers", len(codes), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scrape") as pool:
            futures = [pool.submit(self.scrape_one, code) for code in codes]
            results = [f.result() for f in futures]

        failed = sum(1 for r in results if r.error is not None)
        logger.info("Scraped %d codes (%d failed)", len(results), failed)
        return results

    def close(self) -> None:
        self._session.close()


__all__ = [
    "ProductNotFound",
    "ParseError",
    "ScrapedStyle",
    "ScrapedProduct",
    "ScrapeResult",
    "build_product_url",
    "fetch",
    "parse_price",
    "parse_stock",
    "parse_html",
    "Scraper",
]
