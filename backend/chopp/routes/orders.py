# Overview: Flask API routes for point-of-sale checkout, order edits and consignment resolution.

# backend/chopp/routes/orders.py
"""
Order API routes.

Checkout payload (POST /api/orders):
{
  "customer_id": 1,
  "items": [{"product_id": 3, "quantity": 1, "is_consigned": false}, ...],
  "asset_id": 2,                      # optional, rents the equipment too
  "event_date": "2026-10-20",
  "return_date": "2026-10-21",        # required with asset_id
  "payment_method": "pix",
  "delivery_address": "...",          # defaults to the customer's address
  "discount_type": "percent" | "fixed",
  "discount_value": 10,               # percent, or cents when fixed
  "delivery_cost_cents": 1500,        # internal cost, never billed
  "notes": "..."
}
"""
from flask import Blueprint, request, current_app

from ..models import Order
from ..services import order_service
from ..services.order_service import OrderError
from ..services.rental_service import RentalError
from chopp.time_utils import parse_iso_date
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
    coerce_int,
    coerce_flag,
)

ORDER_EDIT_POLICY = ModelValidationPolicy(
    writable_fields={"status", "notes", "delivery_address"},
)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _date_field(payload: dict, key: str):
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    try:
        return parse_iso_date(str(raw))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 date")


def _discount_value(payload: dict):
    raw = payload.get("discount_value", 0)
    if raw is None:
        return 0
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError("discount_value must be a number")
    return raw


def _order_payload(order: Order) -> dict:
    data = order.to_dict(include_items=True)
    data["consigned_subtotal_cents"] = order_service.consigned_subtotal(order)
    return data


@orders_bp.post("/quote")
def quote_route():
    """Price a cart without saving anything."""
    payload = request.get_json(silent=True) or {}
    try:
        quote = order_service.quote_cart(
            payload.get("items") or [],
            discount_type=payload.get("discount_type", "percent"),
            discount_value=_discount_value(payload),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except OrderError as e:
        return {"error": str(e), "details": e.details}, 400
    return quote, 200


@orders_bp.get("")
def list_orders_route():
    status = request.args.get("status")
    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = min(max(limit, 1), 500)
    orders = order_service.list_orders(status=status, limit=limit)
    return {"items": [o.to_dict(include_items=True) for o in orders], "count": len(orders)}


@orders_bp.post("")
def checkout_route():
    """Create the order, its items, the stock exits and (optionally) the rental in one go."""
    payload = request.get_json(silent=True) or {}

    try:
        customer_id = payload.get("customer_id")
        customer_id = coerce_int("customer_id", customer_id) if customer_id is not None else None
        asset_id = payload.get("asset_id")
        asset_id = coerce_int("asset_id", asset_id) if asset_id not in (None, "") else None
        delivery_cost = payload.get("delivery_cost_cents") or 0
        delivery_cost = coerce_int("delivery_cost_cents", delivery_cost)
        event_date = _date_field(payload, "event_date")
        return_date = _date_field(payload, "return_date")
        discount_value = _discount_value(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        lines = order_service.build_cart(payload.get("items") or [])
        order = order_service.place_order(
            customer_id=customer_id,
            lines=lines,
            asset_id=asset_id,
            event_date=event_date,
            return_date=return_date,
            payment_method=payload.get("payment_method"),
            delivery_address=payload.get("delivery_address"),
            discount_type=payload.get("discount_type", "percent"),
            discount_value=discount_value,
            delivery_cost_cents=delivery_cost,
            notes=payload.get("notes"),
        )
    except OrderError as e:
        return {"error": str(e), "details": e.details}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except RentalError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Checkout failed")
        return {"error": "Internal server error"}, 500

    return _order_payload(order), 201


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return _order_payload(order), 200


@orders_bp.put("/<int:order_id>")
def update_order_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_EDIT_POLICY, partial=True)
        order = order_service.update_order(order_id=order_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return _order_payload(order), 200


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id=order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200


@orders_bp.post("/<int:order_id>/consignment/sold")
def consignment_sold_route(order_id: int):
    """Consigned items were opened: their value is added to the order total."""
    try:
        order = order_service.confirm_sold(order_id=order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return _order_payload(order), 200


@orders_bp.post("/<int:order_id>/consignment/returned")
def consignment_returned_route(order_id: int):
    """Consigned items came back sealed: total unchanged. {"restock": true} puts them back in stock."""
    payload = request.get_json(silent=True) or {}
    try:
        restock = coerce_flag("restock", payload.get("restock"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        order = order_service.confirm_returned(order_id=order_id, restock=restock)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return _order_payload(order), 200


@orders_bp.post("/<int:order_id>/cancel")
def cancel_order_route(order_id: int):
    try:
        order = order_service.cancel_order(order_id=order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return _order_payload(order), 200
