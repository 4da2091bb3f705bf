"""
Rental lifecycle: equipment (asset) assignment to customers.

State machine per asset/rental pair:

    asset:  available --create_rental--> rented --return_rental--> available
    rental:           (none)          -> active  ->                  returned

Both writes of each transition happen in one transaction, so an asset is
"rented" exactly when one active rental points at it. Overdue is derived
(expected_return_date before today while active), never stored.
"""
from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Asset, Rental
from chopp.time_utils import today, utcnow
from ..validation import ConflictError, NotFoundError
from .concurrency import atomic, lock_for_update
from .directory_service import get_asset, get_customer


class RentalError(Exception):
    """Raised for rental transitions whose preconditions do not hold."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _active_rental_for(asset_id: int) -> Rental | None:
    return (
        db.session.query(Rental)
        .filter(Rental.asset_id == asset_id, Rental.status == "active")
        .first()
    )


def start_rental(
    *,
    asset_id: int,
    customer_id: int,
    expected_return_date: date | None,
    order_id: int | None = None,
) -> Rental:
    """Core create-rental logic without retry or commit.

    Called by create_rental() and by order checkout, which commits the
    rental together with the order.
    """
    get_customer(customer_id)
    asset = get_asset(asset_id, lock=True)

    if asset.status != "available":
        raise RentalError(
            f"Asset {asset.code} is not available",
            details={"asset_id": asset.id, "status": asset.status},
        )
    existing = _active_rental_for(asset.id)
    if existing is not None:
        raise RentalError(
            f"Asset {asset.code} already has an active rental",
            details={"asset_id": asset.id, "rental_id": existing.id},
        )

    asset.status = "rented"
    rental = Rental(
        asset_id=asset.id,
        customer_id=customer_id,
        order_id=order_id,
        expected_return_date=expected_return_date,
        rented_at=utcnow(),
        status="active",
    )
    db.session.add(rental)
    db.session.flush()
    return rental


def create_rental(
    *,
    asset_id: int,
    customer_id: int,
    expected_return_date: date | None,
    order_id: int | None = None,
) -> Rental:
    rental = atomic(lambda: start_rental(
        asset_id=asset_id,
        customer_id=customer_id,
        expected_return_date=expected_return_date,
        order_id=order_id,
    ))
    current_app.logger.info("Rental %s started for asset %s", rental.id, rental.asset_id)
    return rental


def get_rental(rental_id: int, *, lock: bool = False) -> Rental:
    query = db.session.query(Rental).filter_by(id=rental_id)
    if lock:
        query = lock_for_update(query)
    rental = query.first()
    if rental is None:
        raise NotFoundError("Rental not found")
    return rental


def return_rental(*, rental_id: int) -> Rental:
    """Close an active rental and free its asset."""
    def _op():
        rental = get_rental(rental_id, lock=True)
        if rental.status != "active":
            raise RentalError("Rental is not active", details={"status": rental.status})

        asset = lock_for_update(db.session.query(Asset).filter_by(id=rental.asset_id)).first()
        if asset is None:
            raise ConflictError("Rental points at a missing asset")

        rental.status = "returned"
        rental.returned_at = utcnow()
        asset.status = "available"
        db.session.flush()
        return rental

    rental = atomic(_op)
    current_app.logger.info("Rental %s returned, asset %s available", rental.id, rental.asset_id)
    return rental


def list_rentals(*, status: str | None = None, overdue_only: bool = False) -> list[Rental]:
    query = db.session.query(Rental)
    if status:
        query = query.filter(Rental.status == status)
    if overdue_only:
        query = query.filter(
            Rental.status == "active",
            Rental.expected_return_date.isnot(None),
            Rental.expected_return_date < today(),
        )
    return query.order_by(Rental.expected_return_date.asc(), Rental.id.asc()).all()


def rental_stats() -> dict:
    rentals = db.session.query(Rental).all()
    on = today()
    return {
        "active": sum(1 for r in rentals if r.status == "active"),
        "overdue": sum(1 for r in rentals if r.is_overdue(on)),
        "returned": sum(1 for r in rentals if r.status == "returned"),
    }
