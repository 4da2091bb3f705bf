from __future__ import annotations

from ..extensions import db
from chopp.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """Customer registry. Names and phones are not unique."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_full_name", "full_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "phone": self.phone,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Asset(db.Model):
    """
    Rentable dispensing equipment (chopeira / kegerator).

    status is one of available | rented | maintenance. Only the rental
    lifecycle moves an asset into or out of "rented".
    """
    __tablename__ = "assets"
    __table_args__ = (
        db.Index("ix_assets_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="available")

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Asset id={self.id} code={self.code!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "model": self.model,
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
