# Overview: Read-only financial roll-ups over orders, expenses and payroll.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Order, Expense, Product, Rental
from ..validation import EXPENSE_CATEGORIES
from chopp.time_utils import days_ago, start_of_day, to_utc_z, utcnow
from .finance_service import monthly_payroll_cents

PERIODS = ("day", "week", "month", "all")
# Payroll is a monthly figure; it is not prorated into day or week views.
PAYROLL_PERIODS = ("month", "all")


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def period_start(period: str, *, now: datetime | None = None) -> datetime | None:
    """
    Lower bound (inclusive, UTC-naive) of a reporting window.

    day -> today 00:00, week -> 7 days before today 00:00,
    month -> 30 days before today 00:00, all -> None.
    """
    now = now or utcnow()
    if period == "day":
        return start_of_day(now.date())
    if period == "week":
        return days_ago(7, now=now)
    if period == "month":
        return days_ago(30, now=now)
    if period == "all":
        return None
    raise ReportError(f"period must be one of: {', '.join(PERIODS)}")


def _orders_in_window(start: datetime | None) -> list[Order]:
    query = db.session.query(Order).filter(Order.status != "cancelled")
    if start is not None:
        query = query.filter(Order.created_at >= start)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def _expenses_in_window(start: datetime | None) -> list[Expense]:
    query = db.session.query(Expense)
    if start is not None:
        query = query.filter(Expense.date >= start.date())
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def financial_summary(*, period: str = "month", now: datetime | None = None) -> dict:
    start = period_start(period, now=now)

    orders = _orders_in_window(start)
    revenue = sum(o.total_amount_cents or 0 for o in orders)
    liters = round(sum(o.total_liters or 0.0 for o in orders), 3)
    average_ticket = round(revenue / len(orders)) if orders else 0

    expenses = _expenses_in_window(start)
    by_category = {category: 0 for category in EXPENSE_CATEGORIES}
    for e in expenses:
        by_category[e.category] = by_category.get(e.category, 0) + e.amount_cents
    expenses_total = sum(by_category.values())

    payroll = monthly_payroll_cents()
    payroll_included = period in PAYROLL_PERIODS
    net_profit = revenue - expenses_total - (payroll if payroll_included else 0)

    return {
        "period": period,
        "start": to_utc_z(start) if start else None,
        "revenue_cents": revenue,
        "total_liters_sold": liters,
        "order_count": len(orders),
        "average_ticket_cents": average_ticket,
        "expenses_total_cents": expenses_total,
        "expenses_by_category": by_category,
        "payroll_cents": payroll,
        "payroll_included": payroll_included,
        "net_profit_cents": net_profit,
        "orders": [o.to_dict() for o in orders[:20]],
        "expenses": [e.to_dict() for e in expenses[:20]],
    }


def dashboard_stats() -> dict:
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total_amount_cents), 0))
        .filter(Order.status != "cancelled")
        .scalar()
    )
    return {
        "products": db.session.query(Product).count(),
        "orders": db.session.query(Order).count(),
        "active_rentals": db.session.query(Rental).filter(Rental.status == "active").count(),
        "pending_deliveries": db.session.query(Order).filter(Order.status == "pending").count(),
        "revenue_cents": int(revenue or 0),
    }


def recent_orders(*, limit: int = 5) -> list[dict]:
    orders = (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return [o.to_dict(include_items=True) for o in orders]
