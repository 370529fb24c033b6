"""SQLite persistence layer for the price tracker."""

from __future__ import annotations

import datetime as _dt
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from . import config
from .scraper import ScrapedStyle
from .utils import retry_when_locked


class TargetExistsError(Exception):
    """A target already exists for this style."""


class StyleNotFound(LookupError):
    """The product has no variant with the requested colour and size."""


@dataclass
class Product:
    id: int
    code: str
    name: str


@dataclass
class Style:
    id: int
    product_id: int
    style_code: str
    colour: str
    size: str
    image_url: str


@dataclass
class PriceObservation:
    id: int
    style_id: int
    price: int
    stock: int
    observed_at: str


@dataclass
class Target:
    id: int
    product_code: str
    product_id: int
    style_id: int
    target_price: int


@dataclass
class TargetInfo:
    """A target joined with its product, style and latest observation."""

    id: int
    product_code: str
    target_price: int
    name: Optional[str]
    colour: Optional[str]
    size: Optional[str]
    image_url: Optional[str]
    price: Optional[int]
    stock: Optional[int]


# (style_id, price, stock)
ObservationRow = Tuple[int, int, int]


def utcnow() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="microseconds")


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS products (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      code TEXT NOT NULL UNIQUE,
      name TEXT NOT NULL,
      created_at TEXT NOT NULL,
      updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS styles (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      product_id INTEGER NOT NULL REFERENCES products(id),
      style_code TEXT NOT NULL,
      colour TEXT NOT NULL,
      size TEXT NOT NULL,
      image_url TEXT NOT NULL,
      UNIQUE (product_id, colour, size)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS prices (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      style_id INTEGER NOT NULL REFERENCES styles(id),
      price INTEGER NOT NULL,
      stock INTEGER NOT NULL,
      observed_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS targets (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      product_code TEXT NOT NULL,
      product_id INTEGER NOT NULL REFERENCES products(id),
      style_id INTEGER NOT NULL UNIQUE REFERENCES styles(id),
      target_price INTEGER NOT NULL,
      created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_prices_style_observed ON prices(style_id, observed_at)",
    "CREATE INDEX IF NOT EXISTS idx_styles_product ON styles(product_id)",
)


class Store:
    """Products, styles, price history and targets in one SQLite file.

    Every public method opens its own connection and commits on success,
    so each call is atomic on its own.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or config.SQLITE_DB_PATH

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=30)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._connection() as conn:
            for stmt in _SCHEMA:
                conn.execute(stmt)

    # ---- products ------------------------------------------------------------

    def get_product_by_code(self, code: str) -> Optional[Product]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, code, name FROM products WHERE code = ? LIMIT 1",
                (code,),
            ).fetchone()
        return Product(*row) if row else None

    @retry_when_locked
    def create_product(
        self,
        code: str,
        name: str,
        styles: Sequence[ScrapedStyle],
        observed_at: Optional[str] = None,
    ) -> Product:
        """Insert a product with its styles, each seeded with one observation."""
        now = observed_at or utcnow()
        with self._connection() as conn:
            cur = conn.execute(
                "INSERT INTO products (code, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (code, name, now, now),
            )
            product = Product(id=cur.lastrowid, code=code, name=name)
            _insert_styles(conn, product.id, styles, now)
        return product

    @retry_when_locked
    def rename_product(self, product_id: int, name: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE products SET name = ?, updated_at = ? WHERE id = ?",
                (name, utcnow(), product_id),
            )

    @retry_when_locked
    def delete_product(self, product_id: int) -> None:
        """Delete a product, its styles, their price history and any targets on them.

        Runs as a single transaction.
        """
        with self._connection() as conn:
            conn.execute(
                """
                DELETE FROM targets
                 WHERE product_id = ?
                    OR style_id IN (SELECT id FROM styles WHERE product_id = ?)
                """,
                (product_id, product_id),
            )
            conn.execute(
                "DELETE FROM prices WHERE style_id IN (SELECT id FROM styles WHERE product_id = ?)",
                (product_id,),
            )
            conn.execute("DELETE FROM styles WHERE product_id = ?", (product_id,))
            conn.execute("DELETE FROM products WHERE id = ?", (product_id,))

    # ---- styles --------------------------------------------------------------

    def get_styles(self, product_id: int) -> List[Style]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, product_id, style_code, colour, size, image_url
                  FROM styles
                 WHERE product_id = ?
                 ORDER BY id
                """,
                (product_id,),
            ).fetchall()
        return [Style(*r) for r in rows]

    def get_style(self, product_id: int, colour: str, size: str) -> Optional[Style]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT id, product_id, style_code, colour, size, image_url
                  FROM styles
                 WHERE product_id = ? AND colour = ? AND size = ?
                 LIMIT 1
                """,
                (product_id, colour, size),
            ).fetchone()
        return Style(*row) if row else None

    @retry_when_locked
    def add_styles(
        self,
        product_id: int,
        styles: Sequence[ScrapedStyle],
        observed_at: Optional[str] = None,
    ) -> None:
        """Create new styles for an existing product, each with one observation."""
        if not styles:
            return
        with self._connection() as conn:
            _insert_styles(conn, product_id, styles, observed_at or utcnow())

    # ---- price history -------------------------------------------------------

    @retry_when_locked
    def add_observations(self, rows: Sequence[ObservationRow], observed_at: Optional[str] = None) -> None:
        if not rows:
            return
        now = observed_at or utcnow()
        with self._connection() as conn:
            conn.executemany(
                "INSERT INTO prices (style_id, price, stock, observed_at) VALUES (?, ?, ?, ?)",
                [(sid, int(price), int(stock), now) for sid, price, stock in rows],
            )

    def get_price_history(self, style_id: int) -> List[PriceObservation]:
        """Return every observation of a style, oldest first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, style_id, price, stock, observed_at
                  FROM prices
                 WHERE style_id = ?
                 ORDER BY observed_at, id
                """,
                (style_id,),
            ).fetchall()
        return [PriceObservation(*r) for r in rows]

    def get_latest_observation(self, style_id: int) -> Optional[PriceObservation]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT id, style_id, price, stock, observed_at
                  FROM prices
                 WHERE style_id = ?
                 ORDER BY observed_at DESC, id DESC
                 LIMIT 1
                """,
                (style_id,),
            ).fetchone()
        return PriceObservation(*row) if row else None

    # ---- targets -------------------------------------------------------------

    @retry_when_locked
    def add_target(self, product_code: str, product_id: int, style_id: int, target_price: int) -> Target:
        try:
            with self._connection() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO targets (product_code, product_id, style_id, target_price, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (product_code, product_id, style_id, int(target_price), utcnow()),
                )
        except sqlite3.IntegrityError as e:
            if "targets.style_id" in str(e):
                raise TargetExistsError(f"style {style_id} is already tracked") from e
            raise
        return Target(
            id=cur.lastrowid,
            product_code=product_code,
            product_id=product_id,
            style_id=style_id,
            target_price=int(target_price),
        )

    def get_target(self, target_id: int) -> Optional[Target]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, product_code, product_id, style_id, target_price FROM targets WHERE id = ?",
                (target_id,),
            ).fetchone()
        return Target(*row) if row else None

    def get_target_by_style_id(self, style_id: int) -> Optional[Target]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT id, product_code, product_id, style_id, target_price FROM targets WHERE style_id = ?",
                (style_id,),
            ).fetchone()
        return Target(*row) if row else None

    @retry_when_locked
    def update_target_price(self, target_id: int, target_price: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute(
                "UPDATE targets SET target_price = ? WHERE id = ?",
                (int(target_price), target_id),
            )
        return cur.rowcount > 0

    @retry_when_locked
    def delete_target(self, target_id: int) -> bool:
        with self._connection() as conn:
            cur = conn.execute("DELETE FROM targets WHERE id = ?", (target_id,))
        return cur.rowcount > 0

    def get_target_codes(self) -> List[str]:
        """Distinct product codes of all targets, oldest target first."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT product_code FROM targets GROUP BY product_code ORDER BY MIN(id)"
            ).fetchall()
        return [r[0] for r in rows]

    def get_targets(self) -> List[TargetInfo]:
        """All targets with product name, style details and latest price/stock."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT t.id, t.product_code, t.target_price,
                       p.name, s.colour, s.size, s.image_url,
                       pr.price, pr.stock
                  FROM targets t
                  LEFT JOIN styles s   ON s.id = t.style_id
                  LEFT JOIN products p ON p.id = s.product_id
                  LEFT JOIN prices pr  ON pr.id = (
                        SELECT id FROM prices
                         WHERE style_id = t.style_id
                         ORDER BY observed_at DESC, id DESC
                         LIMIT 1
                  )
                 ORDER BY t.id DESC
                """
            ).fetchall()
        return [TargetInfo(*r) for r in rows]


def _insert_styles(
    conn: sqlite3.Connection,
    product_id: int,
    styles: Sequence[ScrapedStyle],
    observed_at: str,
) -> None:
    for s in styles:
        cur = conn.execute(
            """
            INSERT INTO styles (product_id, style_code, colour, size, image_url)
            VALUES (?, ?, ?, ?, ?)
            """,
            (product_id, s.style_code, s.colour, s.size, s.image_url),
        )
        conn.execute(
            "INSERT INTO prices (style_id, price, stock, observed_at) VALUES (?, ?, ?, ?)",
            (cur.lastrowid, int(s.price), int(s.stock), observed_at),
        )


__all__ = [
    "Store",
    "Product",
    "Style",
    "PriceObservation",
    "Target",
    "TargetInfo",
    "TargetExistsError",
    "StyleNotFound",
    "utcnow",
]
