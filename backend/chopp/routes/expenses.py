# Overview: Flask API routes for operating expenses.

from flask import Blueprint, request

from ..models import Expense
from ..services import finance_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_expense,
    ValidationError,
    NotFoundError,
    EXPENSE_CATEGORIES,
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"description", "category", "amount_cents", "date", "notes"},
    required_on_create={"description", "category", "amount_cents", "date"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
def list_expenses():
    """List expenses, newest date first. ?category= filters (all = no filter)."""
    category = request.args.get("category")
    if category and category != "all" and category not in EXPENSE_CATEGORIES:
        return {"error": f"category must be one of: all, {', '.join(EXPENSE_CATEGORIES)}"}, 400
    expenses = finance_service.list_expenses(category=category)
    return {
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }


@expenses_bp.get("/<int:expense_id>")
def get_expense_route(expense_id: int):
    try:
        expense = finance_service.get_expense(expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return expense.to_dict(), 200


@expenses_bp.post("")
def create_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = finance_service.create_expense(patch=patch)
    return created.to_dict(), 201


@expenses_bp.put("/<int:expense_id>")
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        enforce_rules_expense(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = finance_service.update_expense(expense_id=expense_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return updated.to_dict(), 200


@expenses_bp.delete("/<int:expense_id>")
def delete_expense_route(expense_id: int):
    try:
        finance_service.delete_expense(expense_id=expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200
