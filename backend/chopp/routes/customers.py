# Overview: Flask API routes for the customer registry.

from flask import Blueprint, request

from ..models import Customer
from ..services import directory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "phone", "address"},
    required_on_create={"full_name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers():
    """List customers by name. ?q= filters by name, phone or address."""
    term = request.args.get("q")
    customers = directory_service.search_customers(term)
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = directory_service.get_customer(customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return customer.to_dict(), 200


@customers_bp.post("")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = directory_service.create_customer(patch=patch)
    return created.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = directory_service.update_customer(customer_id=customer_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return updated.to_dict(), 200


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    try:
        directory_service.delete_customer(customer_id=customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"ok": True}, 200


@customers_bp.get("/<int:customer_id>/orders")
def customer_orders_route(customer_id: int):
    """Most recent orders for the customer (default 10)."""
    limit = min(request.args.get("limit", 10, type=int), 100)
    try:
        orders = directory_service.customer_orders(customer_id=customer_id, limit=limit)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [o.to_dict() for o in orders], "count": len(orders)}, 200
