from __future__ import annotations

from datetime import date

from ..extensions import db
from chopp.time_utils import to_iso_date, to_utc_z, utcnow


class Rental(db.Model):
    """
    Assignment of one asset to one customer.

    At most one rental per asset may be "active"; the asset's status mirrors it.
    Overdue is derived, never stored.
    """
    __tablename__ = "rentals"
    __table_args__ = (
        db.Index("ix_rentals_asset_status", "asset_id", "status"),
        db.Index("ix_rentals_expected_return", "expected_return_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    asset_id = db.Column(db.Integer, db.ForeignKey("assets.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)

    rented_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expected_return_date = db.Column(db.Date, nullable=True)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # active | returned
    status = db.Column(db.String(16), nullable=False, default="active")

    asset = db.relationship("Asset", backref=db.backref("rentals", lazy="dynamic"))
    customer = db.relationship("Customer", backref=db.backref("rentals", lazy="dynamic"))

    def is_overdue(self, on: date | None = None) -> bool:
        if self.status != "active" or self.expected_return_date is None:
            return False
        return self.expected_return_date < (on or utcnow().date())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "rented_at": to_utc_z(self.rented_at),
            "expected_return_date": to_iso_date(self.expected_return_date),
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
            "status": self.status,
            "is_overdue": self.is_overdue(),
            "customer": {"full_name": self.customer.full_name} if self.customer else None,
            "asset": {"code": self.asset.code, "model": self.asset.model} if self.asset else None,
        }
