# Overview: Flask API routes for rentable equipment.

from flask import Blueprint, request

from ..models import Asset
from ..services import directory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_asset,
    ValidationError,
    ConflictError,
    NotFoundError,
)

ASSET_POLICY = ModelValidationPolicy(
    writable_fields={"code", "model", "status"},
    required_on_create={"code"},
)

assets_bp = Blueprint("assets", __name__, url_prefix="/api/assets")


@assets_bp.get("")
def list_assets():
    """List equipment by code. ?status=available|rented|maintenance filters."""
    status = request.args.get("status")
    assets = directory_service.list_assets(status=status)
    return {"items": [a.to_dict() for a in assets], "count": len(assets)}


@assets_bp.get("/<int:asset_id>")
def get_asset_route(asset_id: int):
    try:
        asset = directory_service.get_asset(asset_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return asset.to_dict(), 200


@assets_bp.post("")
def create_asset_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Asset, payload=payload, policy=ASSET_POLICY, partial=False)
        enforce_rules_asset(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = directory_service.create_asset(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    return created.to_dict(), 201


@assets_bp.put("/<int:asset_id>")
def update_asset_route(asset_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Asset, payload=payload, policy=ASSET_POLICY, partial=True)
        enforce_rules_asset(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = directory_service.update_asset(asset_id=asset_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return updated.to_dict(), 200


@assets_bp.delete("/<int:asset_id>")
def delete_asset_route(asset_id: int):
    """Delete equipment. Refused (409) while rented."""
    try:
        directory_service.delete_asset(asset_id=asset_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"ok": True}, 200
