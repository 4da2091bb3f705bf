# Overview: Service-layer operations for expenses and employees (payroll inputs).

from __future__ import annotations

from ..extensions import db
from ..models import Expense, Employee
from ..validation import NotFoundError
from .concurrency import atomic

EXPENSE_MUTABLE_FIELDS = {"description", "category", "amount_cents", "date", "notes"}
EMPLOYEE_MUTABLE_FIELDS = {"name", "role", "salary_cents", "phone", "is_active"}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k in allowed:
            setattr(obj, k, v)


def get_expense(expense_id: int) -> Expense:
    expense = db.session.query(Expense).filter_by(id=expense_id).first()
    if expense is None:
        raise NotFoundError("Expense not found")
    return expense


def list_expenses(*, category: str | None = None) -> list[Expense]:
    query = db.session.query(Expense)
    if category and category != "all":
        query = query.filter(Expense.category == category)
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def create_expense(*, patch: dict) -> Expense:
    def _op():
        expense = Expense()
        _apply_patch(expense, patch, EXPENSE_MUTABLE_FIELDS)
        db.session.add(expense)
        db.session.flush()
        return expense

    return atomic(_op)


def update_expense(*, expense_id: int, patch: dict) -> Expense:
    def _op():
        expense = get_expense(expense_id)
        _apply_patch(expense, patch, EXPENSE_MUTABLE_FIELDS)
        db.session.flush()
        return expense

    return atomic(_op)


def delete_expense(*, expense_id: int) -> None:
    def _op():
        db.session.delete(get_expense(expense_id))
        db.session.flush()

    atomic(_op)


def get_employee(employee_id: int) -> Employee:
    employee = db.session.query(Employee).filter_by(id=employee_id).first()
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


def list_employees(*, active_only: bool = False) -> list[Employee]:
    query = db.session.query(Employee)
    if active_only:
        query = query.filter(Employee.is_active.is_(True))
    return query.order_by(Employee.name.asc(), Employee.id.asc()).all()


def create_employee(*, patch: dict) -> Employee:
    def _op():
        employee = Employee()
        _apply_patch(employee, patch, EMPLOYEE_MUTABLE_FIELDS)
        db.session.add(employee)
        db.session.flush()
        return employee

    return atomic(_op)


def update_employee(*, employee_id: int, patch: dict) -> Employee:
    def _op():
        employee = get_employee(employee_id)
        _apply_patch(employee, patch, EMPLOYEE_MUTABLE_FIELDS)
        db.session.flush()
        return employee

    return atomic(_op)


def delete_employee(*, employee_id: int) -> None:
    def _op():
        db.session.delete(get_employee(employee_id))
        db.session.flush()

    atomic(_op)


def monthly_payroll_cents() -> int:
    """Sum of salaries of active employees. Always 'current', never period-filtered."""
    return sum(e.salary_cents or 0 for e in list_employees(active_only=True))
