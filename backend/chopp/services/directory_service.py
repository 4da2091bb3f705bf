# Overview: Service-layer operations for customers and rentable equipment (assets).

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, Asset, Order, Rental
from ..validation import ConflictError, NotFoundError
from .concurrency import atomic, lock_for_update

CUSTOMER_MUTABLE_FIELDS = {"full_name", "phone", "address"}
ASSET_MUTABLE_FIELDS = {"code", "model", "status"}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k in allowed:
            setattr(obj, k, v)


# -- customers ---------------------------------------------------------------

def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.full_name.asc(), Customer.id.asc()).all()


def search_customers(term: str | None) -> list[Customer]:
    """Case-insensitive match on name or address; substring match on phone."""
    term = (term or "").strip()
    if not term:
        return list_customers()

    like = f"%{term.lower()}%"
    return (
        db.session.query(Customer)
        .filter(
            or_(
                func.lower(Customer.full_name).like(like),
                func.lower(Customer.address).like(like),
                Customer.phone.like(f"%{term}%"),
            )
        )
        .order_by(Customer.full_name.asc(), Customer.id.asc())
        .all()
    )


def create_customer(*, patch: dict) -> Customer:
    def _op():
        customer = Customer()
        _apply_patch(customer, patch, CUSTOMER_MUTABLE_FIELDS)
        db.session.add(customer)
        db.session.flush()
        return customer

    return atomic(_op)


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    def _op():
        customer = get_customer(customer_id)
        _apply_patch(customer, patch, CUSTOMER_MUTABLE_FIELDS)
        db.session.flush()
        return customer

    return atomic(_op)


def delete_customer(*, customer_id: int) -> None:
    def _op():
        customer = get_customer(customer_id)
        if db.session.query(Order.id).filter_by(customer_id=customer.id).first() is not None:
            raise ConflictError("Customer has orders and cannot be deleted.")
        if db.session.query(Rental.id).filter_by(customer_id=customer.id).first() is not None:
            raise ConflictError("Customer has rentals and cannot be deleted.")
        db.session.delete(customer)
        db.session.flush()

    atomic(_op)


def customer_orders(*, customer_id: int, limit: int = 10) -> list[Order]:
    """Latest orders for a customer, newest first (shown when picked at checkout)."""
    get_customer(customer_id)
    return (
        db.session.query(Order)
        .filter(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )


# -- assets ------------------------------------------------------------------

def get_asset(asset_id: int, *, lock: bool = False) -> Asset:
    query = db.session.query(Asset).filter_by(id=asset_id)
    if lock:
        query = lock_for_update(query)
    asset = query.first()
    if asset is None:
        raise NotFoundError("Asset not found")
    return asset


def list_assets(*, status: str | None = None) -> list[Asset]:
    query = db.session.query(Asset)
    if status:
        query = query.filter(Asset.status == status)
    return query.order_by(Asset.code.asc(), Asset.id.asc()).all()


def available_assets() -> list[Asset]:
    return list_assets(status="available")


def create_asset(*, patch: dict) -> Asset:
    """
    Register a new piece of equipment.

    New assets cannot start as "rented": that status belongs to the rental
    lifecycle.
    """
    def _op():
        if patch.get("status") == "rented":
            raise ConflictError("Assets become rented only through a rental.")
        asset = Asset()
        _apply_patch(asset, patch, ASSET_MUTABLE_FIELDS)
        db.session.add(asset)
        db.session.flush()
        return asset

    return atomic(_op)


def update_asset(*, asset_id: int, patch: dict) -> Asset:
    def _op():
        asset = get_asset(asset_id, lock=True)
        new_status = patch.get("status", asset.status)
        if new_status != asset.status and "rented" in (new_status, asset.status):
            raise ConflictError("Rented status changes only through rentals.")
        _apply_patch(asset, patch, ASSET_MUTABLE_FIELDS)
        db.session.flush()
        return asset

    return atomic(_op)


def delete_asset(*, asset_id: int) -> None:
    def _op():
        asset = get_asset(asset_id, lock=True)
        if asset.status == "rented":
            raise ConflictError("Asset is rented and cannot be deleted.")
        if db.session.query(Rental.id).filter_by(asset_id=asset.id).first() is not None:
            raise ConflictError("Asset has rental history and cannot be deleted.")
        db.session.delete(asset)
        db.session.flush()

    atomic(_op)
