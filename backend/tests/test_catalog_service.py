"""Catalog service: stock counter, cost basis, margin and reconciliation."""

import pytest

from chopp.models import StockMovement
from chopp.services import catalog_service
from chopp.validation import ConflictError, ValidationError


def test_exit_larger_than_stock_clamps_to_zero(db_session, make_product):
    product = make_product(stock_quantity=3)

    movement = catalog_service.record_movement(product_id=product.id, type="exit", quantity=5)

    assert movement.quantity == 5
    assert catalog_service.get_product(product.id).stock_quantity == 0


def test_entry_overwrites_cost_and_exit_keeps_it(db_session, make_product):
    product = make_product(stock_quantity=2, cost_price_cents=20000)

    catalog_service.record_movement(product_id=product.id, type="entry", quantity=4, unit_cost_cents=21500)
    refreshed = catalog_service.get_product(product.id)
    assert refreshed.stock_quantity == 6
    assert refreshed.cost_price_cents == 21500

    catalog_service.record_movement(product_id=product.id, type="exit", quantity=1, unit_cost_cents=1)
    refreshed = catalog_service.get_product(product.id)
    assert refreshed.stock_quantity == 5
    assert refreshed.cost_price_cents == 21500


def test_entry_without_cost_uses_current_cost(db_session, make_product):
    product = make_product(cost_price_cents=18000)

    movement = catalog_service.record_movement(product_id=product.id, type="entry", quantity=1)

    assert movement.unit_cost_cents == 18000
    assert catalog_service.get_product(product.id).cost_price_cents == 18000


def test_movement_rejects_non_positive_quantity(db_session, make_product):
    product = make_product()

    with pytest.raises(ValidationError):
        catalog_service.record_movement(product_id=product.id, type="entry", quantity=0)

    assert db_session.query(StockMovement).count() == 0


@pytest.mark.parametrize(
    "price, cost, expected",
    [
        (30000, 20000, 50.0),
        (100, 0, 0.0),
        (1000, 3000, -66.7),
        (0, 0, 0.0),
    ],
)
def test_calculate_margin(price, cost, expected):
    assert catalog_service.calculate_margin(price, cost) == expected


def test_create_product_sets_baseline(db_session):
    catalog_service.create_product(patch={"name": "Old", "price_cents": 100})
    first = catalog_service.list_products()[0]
    catalog_service.record_movement(product_id=first.id, type="entry", quantity=2)

    product = catalog_service.create_product(patch={"name": "New", "price_cents": 500, "stock_quantity": 7})

    assert product.stock_baseline == 7
    assert product.stock_baseline_movement_id == db_session.query(StockMovement).one().id
    assert product.category == "chopp"


def test_delete_product_with_history_is_conflict(db_session, make_product):
    product = make_product()
    catalog_service.record_movement(product_id=product.id, type="exit", quantity=1)

    with pytest.raises(ConflictError):
        catalog_service.delete_product(product_id=product.id)


def test_stock_valuation_flags_low_stock(db_session, make_product):
    make_product("Barril 30L", price_cents=30000, cost_price_cents=20000, stock_quantity=10)
    make_product("Copos", price_cents=2500, cost_price_cents=1000, stock_quantity=2, liters=0.0)

    valuation = catalog_service.stock_valuation(low_stock_threshold=5)

    assert valuation["total_stock_value_cents"] == 10 * 20000 + 2 * 1000
    assert valuation["total_sale_value_cents"] == 10 * 30000 + 2 * 2500
    assert valuation["potential_profit_cents"] == (10 * 30000 + 2 * 2500) - (10 * 20000 + 2 * 1000)
    assert [row["name"] for row in valuation["low_stock"]] == ["Copos"]


def test_reconcile_replays_movements_with_clamp(db_session, make_product):
    product = make_product(stock_quantity=2)
    catalog_service.record_movement(product_id=product.id, type="exit", quantity=5)
    catalog_service.record_movement(product_id=product.id, type="entry", quantity=3, unit_cost_cents=20000)

    report = catalog_service.reconcile_stock()

    assert report == {"checked": 1, "drifted": [], "fixed": False}
    assert catalog_service.expected_stock(catalog_service.get_product(product.id)) == 3


def test_reconcile_detects_and_fixes_drift(db_session, make_product):
    product = make_product(stock_quantity=4)
    catalog_service.record_movement(product_id=product.id, type="exit", quantity=1)

    # Out-of-band write that bypasses the movement log
    product = catalog_service.get_product(product.id)
    product.stock_quantity = 9
    db_session.commit()

    report = catalog_service.reconcile_stock(product_id=product.id)
    assert report["drifted"] == [
        {"product_id": product.id, "name": product.name, "stored": 9, "expected": 3}
    ]
    assert catalog_service.get_product(product.id).stock_quantity == 9

    fixed = catalog_service.reconcile_stock(product_id=product.id, fix=True)
    assert fixed["fixed"] is True
    assert catalog_service.get_product(product.id).stock_quantity == 3


def test_manual_stock_edit_moves_baseline(db_session, make_product):
    product = make_product(stock_quantity=4)
    catalog_service.record_movement(product_id=product.id, type="exit", quantity=1)

    catalog_service.update_product(product_id=product.id, patch={"stock_quantity": 12})

    assert catalog_service.reconcile_stock(product_id=product.id)["drifted"] == []
