# Overview: Flask API routes for products and stock movements; parses input and returns JSON responses.

# backend/chopp/routes/products.py
"""
Product catalog and stock routes.

- /api/products: product CRUD (?active=true lists only sellable products)
- /api/stock: movement log, valuation and counter reconciliation
"""
from flask import Blueprint, request

from ..models import Product, StockMovement
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_rules_movement,
    ValidationError,
    ConflictError,
    NotFoundError,
    coerce_int,
    coerce_flag,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "category",
        "image_url",
        "price_cents",
        "cost_price_cents",
        "liters",
        "stock_quantity",
        "is_active",
    },
    required_on_create={"name", "price_cents"},
)

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "type", "quantity", "unit_cost_cents", "notes"},
    required_on_create={"product_id", "type", "quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")
stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@products_bp.get("")
def list_products():
    """
    List products ordered by name.

    Query params:
    - active: "true" to list only active products (the sales catalog)
    """
    active_only = request.args.get("active", "false").lower() == "true"
    products = catalog_service.list_products(active_only=active_only)
    return {
        "items": [catalog_service.serialize_product(p) for p in products],
        "count": len(products),
    }


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return catalog_service.serialize_product(product), 200


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = catalog_service.create_product(patch=patch)
    return catalog_service.serialize_product(created), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = catalog_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return catalog_service.serialize_product(updated), 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200


@products_bp.get("/<int:product_id>/margin")
def product_margin_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "product_id": product.id,
        "price_cents": product.price_cents,
        "cost_price_cents": product.cost_price_cents,
        "margin_percent": catalog_service.calculate_margin(product.price_cents, product.cost_price_cents),
    }, 200


@stock_bp.get("/movements")
def list_movements_route():
    product_id = request.args.get("product_id", type=int)
    limit = min(request.args.get("limit", 50, type=int), 500)
    movements = catalog_service.list_movements(product_id=product_id, limit=limit)
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@stock_bp.post("/movements")
def record_movement_route():
    """
    Record a stock entry or exit.

    entry: stock += quantity and the product's cost becomes unit_cost_cents.
    exit: stock -= quantity, clamped at zero.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockMovement, payload=payload, policy=MOVEMENT_POLICY, partial=False)
        enforce_rules_movement(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = catalog_service.record_movement(
            product_id=patch["product_id"],
            type=patch["type"],
            quantity=patch["quantity"],
            unit_cost_cents=patch.get("unit_cost_cents"),
            notes=patch.get("notes"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400

    product = catalog_service.get_product(movement.product_id)
    return {"movement": movement.to_dict(), "product": catalog_service.serialize_product(product)}, 201


@stock_bp.get("/valuation")
def stock_valuation_route():
    return catalog_service.stock_valuation(), 200


@stock_bp.post("/reconcile")
def reconcile_stock_route():
    payload = request.get_json(silent=True) or {}
    try:
        product_id = payload.get("product_id")
        if product_id is not None:
            product_id = coerce_int("product_id", product_id)
        fix = coerce_flag("fix", payload.get("fix"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        report = catalog_service.reconcile_stock(product_id=product_id, fix=fix)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return report, 200
