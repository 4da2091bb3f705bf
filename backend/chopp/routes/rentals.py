# Overview: Flask API routes for equipment rentals.

from flask import Blueprint, request, current_app

from ..models import Rental
from ..services import rental_service
from ..services.rental_service import RentalError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)

RENTAL_POLICY = ModelValidationPolicy(
    writable_fields={"asset_id", "customer_id", "expected_return_date"},
    required_on_create={"asset_id", "customer_id", "expected_return_date"},
)

rentals_bp = Blueprint("rentals", __name__, url_prefix="/api/rentals")


@rentals_bp.get("")
def list_rentals():
    """
    List rentals by expected return date.

    Query params:
    - status: active | returned
    - overdue: "true" for active rentals past their expected return date
    """
    status = request.args.get("status")
    overdue_only = request.args.get("overdue", "false").lower() == "true"
    rentals = rental_service.list_rentals(status=status, overdue_only=overdue_only)
    return {"items": [r.to_dict() for r in rentals], "count": len(rentals)}


@rentals_bp.get("/stats")
def rental_stats_route():
    return rental_service.rental_stats(), 200


@rentals_bp.post("")
def create_rental_route():
    """Rent an available asset to a customer."""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Rental, payload=payload, policy=RENTAL_POLICY, partial=False)
        if patch["expected_return_date"] is None:
            raise ValidationError("expected_return_date is required")
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        rental = rental_service.create_rental(
            asset_id=patch["asset_id"],
            customer_id=patch["customer_id"],
            expected_return_date=patch["expected_return_date"],
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except RentalError as e:
        return {"error": str(e), "details": e.details}, 409

    return rental.to_dict(), 201


@rentals_bp.post("/<int:rental_id>/return")
def return_rental_route(rental_id: int):
    """Close the rental and make the asset available again."""
    try:
        rental = rental_service.return_rental(rental_id=rental_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except RentalError as e:
        return {"error": str(e), "details": e.details}, 409
    except ConflictError as e:
        current_app.logger.warning("Rental %s could not be returned: %s", rental_id, e)
        return {"error": str(e)}, 409

    return rental.to_dict(), 200
