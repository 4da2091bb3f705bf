from __future__ import annotations

from ..extensions import db
from chopp.time_utils import to_iso_date, to_utc_z, utcnow


class Order(db.Model):
    """
    Point-of-sale order.

    total_amount_cents only ever holds chargeable value. Consigned lines stay
    out of it until the consignment is resolved as sold.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    # Internal cost figure, never billed
    delivery_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_liters = db.Column(db.Float, nullable=False, default=0.0)

    # pending | confirmed | out_for_delivery | delivered | cancelled | consignment
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    is_consignment = db.Column(db.Boolean, nullable=False, default=False)
    # sold | returned, set once when the consignment is resolved
    consignment_resolution = db.Column(db.String(16), nullable=True)
    consignment_resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    delivery_address = db.Column(db.String(512), nullable=True)
    event_date = db.Column(db.Date, nullable=True)
    return_date = db.Column(db.Date, nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy="dynamic"))
    items = db.relationship("OrderItem", backref="order", lazy=True, order_by="OrderItem.id")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} total_cents={self.total_amount_cents}>"

    def to_dict(self, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer": (
                {"full_name": self.customer.full_name, "phone": self.customer.phone}
                if self.customer else None
            ),
            "total_amount_cents": self.total_amount_cents,
            "discount_cents": self.discount_cents,
            "delivery_cost_cents": self.delivery_cost_cents,
            "total_liters": self.total_liters,
            "status": self.status,
            "is_consignment": self.is_consignment,
            "consignment_resolution": self.consignment_resolution,
            "consignment_resolved_at": (
                to_utc_z(self.consignment_resolved_at) if self.consignment_resolved_at else None
            ),
            "delivery_address": self.delivery_address,
            "event_date": to_iso_date(self.event_date),
            "return_date": to_iso_date(self.return_date),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Order line. unit_price_cents is the price snapshot taken when the line was added."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    is_consigned = db.Column(db.Boolean, nullable=False, default=False)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "is_consigned": self.is_consigned,
            "product": (
                {"name": self.product.name, "liters": self.product.liters}
                if self.product else None
            ),
        }
