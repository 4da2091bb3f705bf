from __future__ import annotations

from ..extensions import db
from chopp.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data (kegs, growlers, accessories).

    STOCK COUNTER:
    stock_quantity is a cached running total. The movement log is the
    authority: replaying every StockMovement newer than
    stock_baseline_movement_id on top of stock_baseline (exits clamped at 0)
    must reproduce stock_quantity. Setting stock_quantity directly (create or
    edit) moves the baseline instead of writing a movement.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True, default="chopp")
    image_url = db.Column(db.String(512), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    # Last entry cost basis; overwritten by every entry movement
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # Volume per unit; a 30L keg has liters=30, accessories 0
    liters = db.Column(db.Float, nullable=False, default=0.0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    stock_baseline = db.Column(db.Integer, nullable=False, default=0)
    stock_baseline_movement_id = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "image_url": self.image_url,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "liters": self.liters,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """Append-only stock ledger entry. Never updated except to detach a deleted order."""
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_id_id", "product_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # entry | exit
    type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    # Set when the movement was produced by an order checkout
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "type": self.type,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "notes": self.notes,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }
