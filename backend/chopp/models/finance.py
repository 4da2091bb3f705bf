from __future__ import annotations

from ..extensions import db
from chopp.time_utils import to_iso_date, to_utc_z, utcnow


class Expense(db.Model):
    """Operating expense. Independent ledger entry, filtered by its business date."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_category_date", "category", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    # delivery | fuel | supplies | salary | other
    category = db.Column(db.String(32), nullable=False, default="other")
    amount_cents = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "amount_cents": self.amount_cents,
            "date": to_iso_date(self.date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class Employee(db.Model):
    """Staff member. salary_cents is a recurring monthly figure, not a transaction."""
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # deliverer | admin | other
    role = db.Column(db.String(32), nullable=False, default="deliverer")
    salary_cents = db.Column(db.Integer, nullable=False, default=0)
    phone = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "salary_cents": self.salary_cents,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
