# Overview: Service-layer operations for the product catalog and its stock counter.

# backend/chopp/services/catalog_service.py
"""
Chopp Stock Invariants (authoritative)

Stock model:
- Product.stock_quantity is a cached counter, written on every movement.
- StockMovement rows are append-only. Checkout consumption is logged as
  'exit' movements carrying the order id, so the movement log alone explains
  the counter.
- entry: stock += quantity, and cost_price_cents is overwritten with the
  movement's unit cost (last-entry cost basis).
- exit: stock = max(0, stock - quantity). Over-withdrawal clamps, it never
  fails. Exits never touch cost_price_cents.

Baseline:
- Creating a product, or editing stock_quantity by hand, moves the baseline:
  stock_baseline = the new quantity, stock_baseline_movement_id = newest
  movement id at that moment.
- reconcile_stock() replays movements newer than the baseline and reports
  (optionally repairs) products whose counter drifted.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, StockMovement, OrderItem
from ..validation import ConflictError, NotFoundError, ValidationError, MOVEMENT_TYPES
from .concurrency import atomic, lock_for_update

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "category",
    "image_url",
    "price_cents",
    "cost_price_cents",
    "liters",
    "stock_quantity",
    "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def calculate_margin(price_cents: int, cost_cents: int) -> float:
    """
    Markup over cost, in percent, one decimal.

    A zero cost has no meaningful markup and reports 0.
    """
    if not cost_cents:
        return 0.0
    return round((price_cents - cost_cents) / cost_cents * 100, 1)


def serialize_product(p: Product) -> dict:
    data = p.to_dict()
    data["margin_percent"] = calculate_margin(p.price_cents, p.cost_price_cents)
    return data


def _latest_movement_id() -> int:
    return int(db.session.query(func.max(StockMovement.id)).scalar() or 0)


def _reset_baseline(p: Product) -> None:
    p.stock_baseline = p.stock_quantity or 0
    p.stock_baseline_movement_id = _latest_movement_id()


def get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(*, active_only: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(*, patch: dict) -> Product:
    """Create product using a validated patch dict."""
    def _op():
        p = Product()
        apply_product_patch(p, patch)
        if p.stock_quantity is None:
            p.stock_quantity = 0
        _reset_baseline(p)
        db.session.add(p)
        db.session.flush()
        return p

    return atomic(_op)


def update_product(*, product_id: int, patch: dict) -> Product:
    def _op():
        p = get_product(product_id, lock=True)
        stock_edited = "stock_quantity" in patch and patch["stock_quantity"] != p.stock_quantity
        apply_product_patch(p, patch)
        if stock_edited:
            _reset_baseline(p)
        db.session.flush()
        return p

    return atomic(_op)


def delete_product(*, product_id: int) -> None:
    """
    Hard-delete a product that nothing references.

    Products with order lines or stock history must be deactivated instead
    (is_active=false) so that history keeps resolving.
    """
    def _op():
        p = get_product(product_id, lock=True)
        has_items = db.session.query(OrderItem.id).filter_by(product_id=p.id).first() is not None
        has_movements = db.session.query(StockMovement.id).filter_by(product_id=p.id).first() is not None
        if has_items or has_movements:
            raise ConflictError("Product has order or stock history; deactivate it instead.")
        db.session.delete(p)
        db.session.flush()

    atomic(_op)


def apply_movement(
    p: Product,
    *,
    type: str,
    quantity: int,
    unit_cost_cents: int | None = None,
    notes: str | None = None,
    order_id: int | None = None,
) -> StockMovement:
    """Core movement logic without locking, retry, or commit.

    Called by record_movement() and by order checkout / consignment returns.
    """
    if type not in MOVEMENT_TYPES:
        raise ValidationError("type must be entry or exit")
    if quantity is None or quantity <= 0:
        raise ValidationError("quantity must be > 0")

    if unit_cost_cents is None:
        unit_cost_cents = p.cost_price_cents

    mv = StockMovement(
        product_id=p.id,
        type=type,
        quantity=quantity,
        unit_cost_cents=unit_cost_cents,
        notes=notes,
        order_id=order_id,
    )
    db.session.add(mv)

    current = p.stock_quantity or 0
    if type == "entry":
        p.stock_quantity = current + quantity
        p.cost_price_cents = unit_cost_cents
    else:
        p.stock_quantity = max(0, current - quantity)

    db.session.flush()
    return mv


def record_movement(
    *,
    product_id: int,
    type: str,
    quantity: int,
    unit_cost_cents: int | None = None,
    notes: str | None = None,
) -> StockMovement:
    """Append a stock movement and update the product's counter in one transaction."""
    def _op():
        p = get_product(product_id, lock=True)
        return apply_movement(
            p,
            type=type,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            notes=notes,
        )

    return atomic(_op)


def list_movements(*, product_id: int | None = None, limit: int = 50) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def stock_valuation(*, low_stock_threshold: int | None = None) -> dict:
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)

    products = list_products()
    total_cost = sum((p.cost_price_cents or 0) * p.stock_quantity for p in products)
    total_sale = sum((p.price_cents or 0) * p.stock_quantity for p in products)

    return {
        "total_stock_value_cents": total_cost,
        "total_sale_value_cents": total_sale,
        "potential_profit_cents": total_sale - total_cost,
        "low_stock_threshold": low_stock_threshold,
        "low_stock": [
            {"id": p.id, "name": p.name, "stock_quantity": p.stock_quantity}
            for p in products
            if p.is_active and p.stock_quantity < low_stock_threshold
        ],
    }


def expected_stock(p: Product) -> int:
    """Replay the movement log since the product's baseline."""
    qty = p.stock_baseline or 0
    movements = (
        db.session.query(StockMovement)
        .filter(
            StockMovement.product_id == p.id,
            StockMovement.id > (p.stock_baseline_movement_id or 0),
        )
        .order_by(StockMovement.id.asc())
    )
    for mv in movements:
        if mv.type == "entry":
            qty += mv.quantity
        else:
            qty = max(0, qty - mv.quantity)
    return qty


def reconcile_stock(*, product_id: int | None = None, fix: bool = False) -> dict:
    """
    Compare each product's cached counter with the movement log.

    With fix=True drifted counters are rewritten to the replayed value.
    """
    def _op():
        if product_id is not None:
            products = [get_product(product_id, lock=fix)]
        else:
            products = list_products()

        drifted = []
        for p in products:
            expected = expected_stock(p)
            if expected == p.stock_quantity:
                continue
            drifted.append({
                "product_id": p.id,
                "name": p.name,
                "stored": p.stock_quantity,
                "expected": expected,
            })
            current_app.logger.warning(
                "Stock drift on product %s: stored=%s expected=%s", p.id, p.stock_quantity, expected
            )
            if fix:
                p.stock_quantity = expected

        db.session.flush()
        return {
            "checked": len(products),
            "drifted": drifted,
            "fixed": fix and bool(drifted),
        }

    return atomic(_op)
