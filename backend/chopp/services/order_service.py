"""
Order / consignment engine.

WHY: A checkout touches four tables (orders, order_items, products via
stock movements, rentals + assets). All of it is one transaction here, so a
failing step leaves nothing behind.

Consignment policy (add on sold, unchanged on return):
- At checkout consigned lines are excluded from total_amount_cents.
- confirm_sold() adds the consigned subtotal to the total exactly once.
- confirm_returned() leaves the total unchanged (nothing was charged, nothing
  is owed).
Both resolutions move the order to "delivered" and clear is_consignment.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, Product, Rental, StockMovement
from ..money import format_brl, percent_of
from chopp.time_utils import format_br_date, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, MAX_AMOUNT_CENTS, coerce_flag, coerce_int
from .catalog_service import apply_movement, get_product
from .concurrency import atomic, lock_for_update
from .directory_service import get_customer
from .rental_service import start_rental

DISCOUNT_TYPES = ("percent", "fixed")
EDITABLE_STATUSES = ("pending", "confirmed", "out_for_delivery", "delivered", "cancelled")
ORDER_MUTABLE_FIELDS = {"status", "notes", "delivery_address"}


class OrderError(Exception):
    """Raised for checkout and order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# -- cart --------------------------------------------------------------------

@dataclass
class CartLine:
    """
    One cart line. Lines are never merged by product: adding the same
    product twice yields two lines, each with its own line_id.
    """
    product_id: int
    quantity: int
    unit_price_cents: int
    liters: float = 0.0
    is_consigned: bool = False
    name: str = ""
    line_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def line_liters(self) -> float:
        return (self.liters or 0.0) * self.quantity

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "liters": self.liters,
            "is_consigned": self.is_consigned,
        }


@dataclass(frozen=True)
class CartTotals:
    regular_subtotal_cents: int
    consigned_value_cents: int
    chargeable_subtotal_cents: int
    discount_cents: int
    total_cents: int
    total_liters: float
    consigned_liters: float

    def to_dict(self) -> dict:
        return {
            "regular_subtotal_cents": self.regular_subtotal_cents,
            "consigned_value_cents": self.consigned_value_cents,
            "chargeable_subtotal_cents": self.chargeable_subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "total_liters": self.total_liters,
            "consigned_liters": self.consigned_liters,
        }


def new_cart_line(product: Product, quantity: int = 1, *, is_consigned: bool = False) -> CartLine:
    """Snapshot the product's current price and volume into a fresh line."""
    return CartLine(
        product_id=product.id,
        name=product.name,
        quantity=quantity,
        unit_price_cents=product.price_cents or 0,
        liters=product.liters or 0.0,
        is_consigned=is_consigned,
    )


def toggle_consignment(lines: list[CartLine], line_id: str) -> list[CartLine]:
    if not any(line.line_id == line_id for line in lines):
        raise OrderError("Cart line not found", details={"line_id": line_id})
    return [
        replace(line, is_consigned=not line.is_consigned) if line.line_id == line_id else line
        for line in lines
    ]


def remove_line(lines: list[CartLine], line_id: str) -> list[CartLine]:
    return [line for line in lines if line.line_id != line_id]


def compute_discount(chargeable_cents: int, discount_type: str, discount_value) -> int:
    if discount_type not in DISCOUNT_TYPES:
        raise OrderError("discount_type must be percent or fixed")
    if discount_value is None:
        return 0
    if discount_value < 0:
        raise OrderError("discount_value must be >= 0")
    if discount_type == "percent":
        return percent_of(chargeable_cents, discount_value)
    return int(discount_value)


def price_cart(
    lines: list[CartLine],
    *,
    discount_type: str = "percent",
    discount_value=0,
) -> CartTotals:
    """
    Price a cart. Only non-consigned lines are chargeable; the discount
    applies to them alone and the total never goes below zero. Liters count
    every line.
    """
    regular = sum(line.line_total_cents for line in lines if not line.is_consigned)
    consigned = sum(line.line_total_cents for line in lines if line.is_consigned)
    discount = compute_discount(regular, discount_type, discount_value)

    return CartTotals(
        regular_subtotal_cents=regular,
        consigned_value_cents=consigned,
        chargeable_subtotal_cents=regular,
        discount_cents=discount,
        total_cents=max(0, regular - discount),
        total_liters=round(sum(line.line_liters for line in lines), 3),
        consigned_liters=round(sum(line.line_liters for line in lines if line.is_consigned), 3),
    )


def build_cart(raw_lines: list[dict]) -> list[CartLine]:
    """
    Turn JSON cart lines into CartLine records, snapshotting product data.

    Each raw line needs product_id; quantity defaults to 1, unit_price_cents
    to the product's current price, is_consigned to false.
    """
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, list):
        raise OrderError("items must be a list")

    lines: list[CartLine] = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict) or raw.get("product_id") is None:
            raise OrderError("Each item needs a product_id", details={"index": index})

        try:
            product_id = coerce_int("product_id", raw["product_id"])
        except ValidationError as e:
            raise OrderError(str(e), details={"index": index, "product_id": raw["product_id"]})
        try:
            product = get_product(product_id)
        except NotFoundError:
            raise OrderError("Product not found", details={"index": index, "product_id": raw["product_id"]})
        if not product.is_active:
            raise OrderError("Product is inactive", details={"index": index, "product_id": product.id})

        quantity = raw.get("quantity", 1)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise OrderError("quantity must be a positive integer", details={"index": index})

        try:
            is_consigned = coerce_flag("is_consigned", raw.get("is_consigned"))
        except ValidationError as e:
            raise OrderError(str(e), details={"index": index})

        line = new_cart_line(product, quantity, is_consigned=is_consigned)

        price = raw.get("unit_price_cents")
        if price is not None:
            if not isinstance(price, int) or isinstance(price, bool) or not 0 <= price <= MAX_AMOUNT_CENTS:
                raise OrderError("unit_price_cents must be a non-negative integer", details={"index": index})
            line.unit_price_cents = price
        if raw.get("line_id"):
            line.line_id = str(raw["line_id"])

        lines.append(line)
    return lines


def quote_cart(raw_lines: list[dict], *, discount_type: str = "percent", discount_value=0) -> dict:
    lines = build_cart(raw_lines)
    totals = price_cart(lines, discount_type=discount_type, discount_value=discount_value)
    return {"lines": [line.to_dict() for line in lines], "totals": totals.to_dict()}


# -- checkout ----------------------------------------------------------------

def _format_liters(liters: float) -> str:
    return f"{liters:g}"


def _append_note(existing: str | None, text: str) -> str:
    existing = (existing or "").strip()
    return f"{existing} | {text}" if existing else text


def _validate_checkout(
    *,
    customer_id,
    lines: list[CartLine],
    asset_id,
    event_date,
    return_date,
    payment_method,
    delivery_cost_cents: int,
    text_fields: dict,
) -> None:
    for key, value in text_fields.items():
        if value is not None and not isinstance(value, str):
            raise OrderError(f"{key} must be a string")
    if not customer_id:
        raise OrderError("customer_id is required")
    if not lines and not asset_id:
        raise OrderError("Cart is empty and no equipment was selected")
    if event_date is None:
        raise OrderError("event_date is required")
    if asset_id and return_date is None:
        raise OrderError("return_date is required when renting equipment")
    if not (payment_method or "").strip():
        raise OrderError("payment_method is required")
    if delivery_cost_cents < 0:
        raise OrderError("delivery_cost_cents must be >= 0")


def place_order(
    *,
    customer_id: int,
    lines: list[CartLine],
    event_date: date | None,
    payment_method: str | None,
    return_date: date | None = None,
    asset_id: int | None = None,
    delivery_address: str | None = None,
    discount_type: str = "percent",
    discount_value=0,
    delivery_cost_cents: int = 0,
    notes: str | None = None,
) -> Order:
    """
    Checkout: order + items + stock exits + optional rental, one transaction.

    Stock decrements clamp at zero like any exit movement; they never block
    the sale.
    """
    _validate_checkout(
        customer_id=customer_id,
        lines=lines,
        asset_id=asset_id,
        event_date=event_date,
        return_date=return_date,
        payment_method=payment_method,
        delivery_cost_cents=delivery_cost_cents or 0,
        text_fields={
            "payment_method": payment_method,
            "delivery_address": delivery_address,
            "notes": notes,
        },
    )
    totals = price_cart(lines, discount_type=discount_type, discount_value=discount_value)

    def _op():
        customer = get_customer(customer_id)

        products: dict[int, Product] = {}
        for line in lines:
            if line.product_id not in products:
                products[line.product_id] = get_product(line.product_id, lock=True)

        has_consigned = any(line.is_consigned for line in lines)
        order_notes = (notes or "").strip()
        if has_consigned:
            prefix = f"Consignado: {_format_liters(totals.consigned_liters)}L"
            order_notes = f"{prefix} | {order_notes}" if order_notes else prefix

        order = Order(
            customer_id=customer.id,
            status="consignment" if has_consigned else "pending",
            total_amount_cents=totals.total_cents,
            discount_cents=totals.discount_cents,
            total_liters=totals.total_liters,
            is_consignment=has_consigned,
            delivery_address=(delivery_address or customer.address or "").strip() or None,
            delivery_cost_cents=delivery_cost_cents or 0,
            event_date=event_date,
            return_date=return_date,
            payment_method=payment_method.strip(),
            notes=order_notes or None,
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                is_consigned=line.is_consigned,
            ))

        for line in lines:
            apply_movement(
                products[line.product_id],
                type="exit",
                quantity=line.quantity,
                notes=f"Pedido #{order.id}",
                order_id=order.id,
            )

        if asset_id:
            start_rental(
                asset_id=asset_id,
                customer_id=customer.id,
                expected_return_date=return_date,
                order_id=order.id,
            )

        db.session.flush()
        return order

    order = atomic(_op)
    current_app.logger.info(
        "Order %s placed: status=%s total_cents=%s liters=%s",
        order.id, order.status, order.total_amount_cents, order.total_liters,
    )
    return order


# -- order maintenance -------------------------------------------------------

def get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_orders(*, status: str | None = None, limit: int | None = None) -> list[Order]:
    if limit is None:
        limit = current_app.config.get("RECENT_ORDERS_LIMIT", 20)
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def consigned_subtotal(order: Order) -> int:
    return sum(item.line_total_cents for item in order.items if item.is_consigned)


def update_order(*, order_id: int, patch: dict) -> Order:
    """Edit status, notes or delivery address."""
    def _op():
        order = get_order(order_id, lock=True)
        new_status = patch.get("status", order.status)
        if new_status != order.status:
            if new_status not in EDITABLE_STATUSES:
                raise ValidationError(f"status must be one of: {', '.join(EDITABLE_STATUSES)}")
            if order.status == "consignment":
                raise ConflictError("Resolve the consignment (sold or returned) before changing status.")
        for k, v in patch.items():
            if k in ORDER_MUTABLE_FIELDS:
                setattr(order, k, v)
        db.session.flush()
        return order

    return atomic(_op)


def _require_consignment(order: Order) -> None:
    if order.status != "consignment" or not order.is_consignment:
        raise ConflictError("Order has no pending consignment.")


def confirm_sold(*, order_id: int) -> Order:
    """The customer kept (opened) the consigned items: bill them."""
    def _op():
        order = get_order(order_id, lock=True)
        _require_consignment(order)

        value = consigned_subtotal(order)
        order.total_amount_cents += value
        order.status = "delivered"
        order.is_consignment = False
        order.consignment_resolution = "sold"
        order.consignment_resolved_at = utcnow()
        order.notes = _append_note(
            order.notes,
            f"Consignado VENDIDO em {format_br_date(order.consignment_resolved_at)} (+{format_brl(value)})",
        )
        db.session.flush()
        return order

    order = atomic(_op)
    current_app.logger.info("Order %s consignment sold, total_cents=%s", order.id, order.total_amount_cents)
    return order


def confirm_returned(*, order_id: int, restock: bool = False) -> Order:
    """
    The consigned items came back sealed: nothing is owed.

    restock=True puts the returned quantities back into stock as entry
    movements at the product's current cost.
    """
    def _op():
        order = get_order(order_id, lock=True)
        _require_consignment(order)

        order.status = "delivered"
        order.is_consignment = False
        order.consignment_resolution = "returned"
        order.consignment_resolved_at = utcnow()
        order.notes = _append_note(
            order.notes,
            f"Consignado DEVOLVIDO lacrado em {format_br_date(order.consignment_resolved_at)}",
        )

        if restock:
            for item in order.items:
                if not item.is_consigned:
                    continue
                product = get_product(item.product_id, lock=True)
                apply_movement(
                    product,
                    type="entry",
                    quantity=item.quantity,
                    unit_cost_cents=product.cost_price_cents,
                    notes=f"Consignado devolvido, pedido #{order.id}",
                    order_id=order.id,
                )

        db.session.flush()
        return order

    order = atomic(_op)
    current_app.logger.info("Order %s consignment returned (restock=%s)", order.id, restock)
    return order


def cancel_order(*, order_id: int) -> Order:
    """Mark cancelled. Stock and totals are not reversed. Delivered orders cannot be cancelled."""
    def _op():
        order = get_order(order_id, lock=True)
        if order.status == "cancelled":
            raise ConflictError("Order is already cancelled.")
        if order.status == "delivered":
            raise ConflictError("Delivered orders cannot be cancelled.")
        order.status = "cancelled"
        db.session.flush()
        return order

    return atomic(_op)


def delete_order(*, order_id: int) -> None:
    """Delete the order's items, then the order. Movements and rentals are detached, not deleted."""
    def _op():
        order = get_order(order_id, lock=True)
        db.session.query(OrderItem).filter_by(order_id=order.id).delete(synchronize_session=False)
        db.session.query(StockMovement).filter_by(order_id=order.id).update(
            {"order_id": None}, synchronize_session=False
        )
        db.session.query(Rental).filter_by(order_id=order.id).update(
            {"order_id": None}, synchronize_session=False
        )
        db.session.expire(order)
        db.session.delete(order)
        db.session.flush()

    atomic(_op)
    current_app.logger.info("Order %s deleted", order_id)
