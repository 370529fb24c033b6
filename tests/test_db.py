from __future__ import annotations

import sqlite3

import pytest

from price_tracker.db import Store, TargetExistsError

from conftest import style


def _product(store, code="P1"):
    return store.create_product(code, "Linen Shirt", [style("Navy", "M", 3990, 99), style("Navy", "L", 4290, 3)])


def test_init_db_is_idempotent(tmp_path) -> None:
    store = Store(str(tmp_path / "nested" / "tracker.db"))
    store.init_db()
    store.init_db()
    assert store.get_targets() == []


def test_latest_observation_prefers_newest_then_last_inserted(store) -> None:
    product = _product(store)
    s = store.get_style(product.id, "Navy", "M")

    store.add_observations([(s.id, 100, 1)], "2030-01-01T00:00:00.000000+00:00")
    store.add_observations([(s.id, 200, 2)], "2030-01-01T00:00:00.000000+00:00")

    latest = store.get_latest_observation(s.id)
    assert (latest.price, latest.stock) == (200, 2)
    assert [o.price for o in store.get_price_history(s.id)] == [3990, 100, 200]


def test_get_targets_joins_latest_price(store) -> None:
    product = _product(store)
    navy_m = store.get_style(product.id, "Navy", "M")
    navy_l = store.get_style(product.id, "Navy", "L")
    store.add_target("P1", product.id, navy_m.id, 3000)
    store.add_target("P1", product.id, navy_l.id, 4000)
    store.add_observations([(navy_m.id, 2500, 7)])

    rows = store.get_targets()

    assert [(r.size, r.price, r.stock, r.target_price) for r in rows] == [
        ("L", 4290, 3, 4000),
        ("M", 2500, 7, 3000),
    ]
    assert all(r.name == "Linen Shirt" for r in rows)
    assert store.get_target_codes() == ["P1"]


def test_one_target_per_style(store) -> None:
    product = _product(store)
    s = store.get_style(product.id, "Navy", "M")
    store.add_target("P1", product.id, s.id, 3000)

    with pytest.raises(TargetExistsError):
        store.add_target("P1", product.id, s.id, 2000)

    assert store.get_target_by_style_id(s.id).target_price == 3000


def test_update_target_price(store) -> None:
    product = _product(store)
    s = store.get_style(product.id, "Navy", "M")
    target = store.add_target("P1", product.id, s.id, 3000)

    assert store.update_target_price(target.id, 2500) is True
    assert store.get_target(target.id).target_price == 2500
    assert store.update_target_price(9999, 1) is False


def test_delete_product_leaves_other_products(store) -> None:
    p1 = _product(store, "P1")
    p2 = _product(store, "P2")

    store.delete_product(p1.id)

    assert store.get_product_by_code("P1") is None
    assert store.get_styles(p1.id) == []
    assert len(store.get_styles(p2.id)) == 2


def test_delete_product_rolls_back_as_a_unit(store) -> None:
    product = _product(store)
    s = store.get_style(product.id, "Navy", "M")
    store.add_target("P1", product.id, s.id, 3000)
    # an extra reference makes the final products DELETE fail its foreign key
    with sqlite3.connect(store.path) as conn:
        conn.execute("CREATE TABLE pins (product_id INTEGER NOT NULL REFERENCES products(id))")
        conn.execute("INSERT INTO pins (product_id) VALUES (?)", (product.id,))
    conn.close()

    with pytest.raises(sqlite3.IntegrityError):
        store.delete_product(product.id)

    assert store.get_product_by_code("P1") is not None
    assert len(store.get_styles(product.id)) == 2
    assert [o.price for o in store.get_price_history(s.id)] == [3990]
    assert store.get_target_by_style_id(s.id).target_price == 3000
