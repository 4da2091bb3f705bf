"""
Order / consignment engine tests.

Covers cart pricing, checkout as one transaction, consignment resolution and
order maintenance.
"""
from datetime import timedelta

import pytest

from chopp.models import Order, OrderItem, Rental, StockMovement
from chopp.services import catalog_service, directory_service, order_service
from chopp.services.order_service import OrderError
from chopp.services.rental_service import RentalError
from chopp.time_utils import format_br_date, today
from chopp.validation import ConflictError, ValidationError


@pytest.fixture
def keg(make_product):
    return make_product("Barril 30L", price_cents=30000, cost_price_cents=20000, liters=30.0, stock_quantity=5)


@pytest.fixture
def accessory(make_product):
    return make_product("Torneira extra", price_cents=5000, cost_price_cents=2000, liters=0.0, stock_quantity=3)


def _checkout(customer, lines, **overrides):
    kwargs = dict(
        customer_id=customer.id,
        lines=lines,
        event_date=today() + timedelta(days=1),
        payment_method="pix",
    )
    kwargs.update(overrides)
    return order_service.place_order(**kwargs)


# -- cart --------------------------------------------------------------------

def test_same_product_twice_makes_two_lines(db_session, keg):
    first = order_service.new_cart_line(keg)
    second = order_service.new_cart_line(keg)

    assert first.line_id != second.line_id

    lines = order_service.toggle_consignment([first, second], second.line_id)
    assert [line.is_consigned for line in lines] == [False, True]

    lines = order_service.remove_line(lines, first.line_id)
    assert [line.line_id for line in lines] == [second.line_id]


def test_toggle_unknown_line_raises(db_session, keg):
    with pytest.raises(OrderError):
        order_service.toggle_consignment([order_service.new_cart_line(keg)], "missing")


def test_price_cart_excludes_consigned_value(db_session, keg, accessory):
    lines = [
        order_service.new_cart_line(keg),
        order_service.new_cart_line(accessory, is_consigned=True),
    ]

    totals = order_service.price_cart(lines, discount_type="percent", discount_value=10)

    assert totals.regular_subtotal_cents == 30000
    assert totals.consigned_value_cents == 5000
    assert totals.chargeable_subtotal_cents == 30000
    assert totals.discount_cents == 3000
    assert totals.total_cents == 27000
    assert totals.total_liters == 30.0
    assert totals.consigned_liters == 0.0


def test_fixed_discount_never_drives_total_negative(db_session, keg):
    totals = order_service.price_cart(
        [order_service.new_cart_line(keg)], discount_type="fixed", discount_value=50000
    )

    assert totals.discount_cents == 50000
    assert totals.total_cents == 0


def test_percent_discount_rounds_half_up(db_session, make_product):
    product = make_product("Copo", price_cents=1005, liters=0.0)

    totals = order_service.price_cart([order_service.new_cart_line(product)], discount_value=10)

    assert totals.discount_cents == 101


def test_unknown_discount_type_is_rejected(db_session, keg):
    with pytest.raises(OrderError):
        order_service.price_cart([order_service.new_cart_line(keg)], discount_type="bogus", discount_value=1)


def test_build_cart_rejects_inactive_product(db_session, make_product):
    product = make_product(is_active=False)

    with pytest.raises(OrderError) as exc:
        order_service.build_cart([{"product_id": product.id, "quantity": 1}])

    assert exc.value.details["product_id"] == product.id


@pytest.mark.parametrize("product_id", ["abc", "x1", 1.5, True])
def test_build_cart_rejects_non_integer_product_id(db_session, product_id):
    with pytest.raises(OrderError, match="product_id") as exc:
        order_service.build_cart([{"product_id": product_id}])

    assert exc.value.details == {"index": 0, "product_id": product_id}


def test_build_cart_accepts_numeric_string_product_id(db_session, keg):
    lines = order_service.build_cart([{"product_id": str(keg.id)}])

    assert lines[0].product_id == keg.id


@pytest.mark.parametrize("flag", ["false", "true", 0, 1])
def test_build_cart_requires_boolean_consignment_flag(db_session, keg, flag):
    with pytest.raises(OrderError, match="is_consigned"):
        order_service.build_cart([{"product_id": keg.id, "is_consigned": flag}])


def test_build_cart_consignment_flag_defaults_to_false(db_session, keg):
    lines = order_service.build_cart([
        {"product_id": keg.id},
        {"product_id": keg.id, "is_consigned": None},
        {"product_id": keg.id, "is_consigned": True},
    ])

    assert [line.is_consigned for line in lines] == [False, False, True]


def test_quote_does_not_persist(db_session, keg):
    quote = order_service.quote_cart([{"product_id": keg.id, "quantity": 2}], discount_value=0)

    assert quote["totals"]["total_cents"] == 60000
    assert quote["totals"]["total_liters"] == 60.0
    assert db_session.query(Order).count() == 0


# -- checkout ----------------------------------------------------------------

def test_checkout_with_consigned_line(db_session, make_customer, keg, accessory):
    customer = make_customer()
    lines = [
        order_service.new_cart_line(keg),
        order_service.new_cart_line(accessory, is_consigned=True),
    ]

    order = _checkout(customer, lines, discount_type="percent", discount_value=10, notes="Portao azul")

    assert order.status == "consignment"
    assert order.is_consignment is True
    assert order.total_amount_cents == 27000
    assert order.discount_cents == 3000
    assert order.total_liters == 30.0
    assert order.payment_method == "pix"
    assert order.notes == "Consignado: 0L | Portao azul"
    assert order.delivery_address == customer.address
    assert len(order.items) == 2
    assert order_service.consigned_subtotal(order) == 5000


def test_checkout_without_consignment_is_pending(db_session, make_customer, keg):
    customer = make_customer()

    order = _checkout(customer, [order_service.new_cart_line(keg, 2)], delivery_cost_cents=1500)

    assert order.status == "pending"
    assert order.is_consignment is False
    assert order.total_amount_cents == 60000
    # delivery cost is recorded, never billed
    assert order.delivery_cost_cents == 1500
    assert order.notes is None


def test_checkout_decrements_stock_through_exit_movements(db_session, make_customer, keg):
    customer = make_customer()

    order = _checkout(customer, [order_service.new_cart_line(keg, 7)])

    assert catalog_service.get_product(keg.id).stock_quantity == 0
    movement = db_session.query(StockMovement).one()
    assert movement.type == "exit"
    assert movement.quantity == 7
    assert movement.order_id == order.id
    assert catalog_service.reconcile_stock()["drifted"] == []


def test_checkout_with_equipment_creates_rental(db_session, make_customer, make_asset, keg):
    customer = make_customer()
    asset = make_asset()
    return_date = today() + timedelta(days=2)

    order = _checkout(customer, [order_service.new_cart_line(keg)], asset_id=asset.id, return_date=return_date)

    rental = db_session.query(Rental).one()
    assert rental.order_id == order.id
    assert rental.expected_return_date == return_date
    assert directory_service.get_asset(asset.id).status == "rented"


def test_checkout_rolls_back_when_rental_fails(db_session, make_customer, make_asset, keg):
    customer = make_customer()
    asset = make_asset(status="maintenance")

    with pytest.raises(RentalError):
        _checkout(
            customer,
            [order_service.new_cart_line(keg, 2)],
            asset_id=asset.id,
            return_date=today() + timedelta(days=1),
        )

    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    assert db_session.query(StockMovement).count() == 0
    assert catalog_service.get_product(keg.id).stock_quantity == 5


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"event_date": None}, "event_date"),
        ({"payment_method": "  "}, "payment_method"),
        ({"lines": []}, "empty"),
        ({"notes": 123}, "notes must be a string"),
        ({"payment_method": 5}, "payment_method must be a string"),
        ({"delivery_address": ["Rua"]}, "delivery_address must be a string"),
    ],
)
def test_checkout_validation(db_session, make_customer, keg, overrides, message):
    customer = make_customer()
    kwargs = {"lines": [order_service.new_cart_line(keg)], **overrides}

    with pytest.raises(OrderError, match=message):
        _checkout(customer, **kwargs)

    assert db_session.query(Order).count() == 0


def test_equipment_requires_return_date(db_session, make_customer, make_asset):
    customer = make_customer()
    asset = make_asset()

    with pytest.raises(OrderError, match="return_date"):
        _checkout(customer, [], asset_id=asset.id)


# -- consignment -------------------------------------------------------------

@pytest.fixture
def consigned_order(db_session, make_customer, keg, accessory):
    customer = make_customer()
    lines = [
        order_service.new_cart_line(keg),
        order_service.new_cart_line(accessory, is_consigned=True),
    ]
    return _checkout(customer, lines, discount_value=10)


def test_confirm_sold_adds_consigned_subtotal(db_session, consigned_order):
    order = order_service.confirm_sold(order_id=consigned_order.id)

    assert order.total_amount_cents == 27000 + 5000
    assert order.status == "delivered"
    assert order.is_consignment is False
    assert order.consignment_resolution == "sold"
    assert order.notes.endswith(f"Consignado VENDIDO em {format_br_date(today())} (+R$ 50,00)")


def test_confirm_returned_keeps_total(db_session, consigned_order, accessory):
    order = order_service.confirm_returned(order_id=consigned_order.id)

    assert order.total_amount_cents == 27000
    assert order.status == "delivered"
    assert order.is_consignment is False
    assert order.consignment_resolution == "returned"
    assert f"Consignado DEVOLVIDO lacrado em {format_br_date(today())}" in order.notes
    # no restock unless asked
    assert catalog_service.get_product(accessory.id).stock_quantity == 2


def test_confirm_returned_with_restock(db_session, consigned_order, accessory):
    order_service.confirm_returned(order_id=consigned_order.id, restock=True)

    assert catalog_service.get_product(accessory.id).stock_quantity == 3
    assert catalog_service.reconcile_stock()["drifted"] == []


def test_consignment_resolves_only_once(db_session, consigned_order):
    order_service.confirm_sold(order_id=consigned_order.id)

    with pytest.raises(ConflictError):
        order_service.confirm_sold(order_id=consigned_order.id)
    with pytest.raises(ConflictError):
        order_service.confirm_returned(order_id=consigned_order.id)

    assert order_service.get_order(consigned_order.id).total_amount_cents == 32000


# -- maintenance -------------------------------------------------------------

def test_update_order_status(db_session, make_customer, keg):
    order = _checkout(make_customer(), [order_service.new_cart_line(keg)])

    updated = order_service.update_order(order_id=order.id, patch={"status": "out_for_delivery", "notes": "Ligar antes"})

    assert updated.status == "out_for_delivery"
    assert updated.notes == "Ligar antes"

    with pytest.raises(ValidationError):
        order_service.update_order(order_id=order.id, patch={"status": "consignment"})


def test_consignment_order_status_cannot_be_edited(db_session, consigned_order):
    with pytest.raises(ConflictError):
        order_service.update_order(order_id=consigned_order.id, patch={"status": "delivered"})

    edited = order_service.update_order(order_id=consigned_order.id, patch={"delivery_address": "Rua Nova, 1"})
    assert edited.delivery_address == "Rua Nova, 1"
    assert edited.status == "consignment"


def test_cancel_keeps_stock_and_total(db_session, make_customer, keg):
    order = _checkout(make_customer(), [order_service.new_cart_line(keg)])

    cancelled = order_service.cancel_order(order_id=order.id)

    assert cancelled.status == "cancelled"
    assert cancelled.total_amount_cents == 30000
    assert catalog_service.get_product(keg.id).stock_quantity == 4
    with pytest.raises(ConflictError):
        order_service.cancel_order(order_id=order.id)


def test_delivered_order_cannot_be_cancelled(db_session, consigned_order):
    order_service.confirm_sold(order_id=consigned_order.id)

    with pytest.raises(ConflictError, match="Delivered"):
        order_service.cancel_order(order_id=consigned_order.id)

    assert order_service.get_order(consigned_order.id).status == "delivered"


def test_delete_order_removes_items_and_detaches_history(db_session, make_customer, make_asset, keg):
    asset = make_asset()
    order = _checkout(
        make_customer(),
        [order_service.new_cart_line(keg)],
        asset_id=asset.id,
        return_date=today() + timedelta(days=1),
    )
    order_id = order.id

    order_service.delete_order(order_id=order_id)

    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0
    assert db_session.query(StockMovement).one().order_id is None
    assert db_session.query(Rental).one().order_id is None


def test_list_orders_newest_first(db_session, make_customer, keg):
    customer = make_customer()
    first = _checkout(customer, [order_service.new_cart_line(keg)])
    second = _checkout(customer, [order_service.new_cart_line(keg)])

    assert [o.id for o in order_service.list_orders()] == [second.id, first.id]
    assert [o.id for o in order_service.list_orders(status="pending", limit=1)] == [second.id]
