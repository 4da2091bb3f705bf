from datetime import date

import pytest

from chopp.services import finance_service
from chopp.validation import NotFoundError


def test_expense_crud_and_category_filter(db_session):
    fuel = finance_service.create_expense(patch={
        "description": "Gasolina", "category": "fuel", "amount_cents": 15000, "date": date(2026, 3, 2),
    })
    finance_service.create_expense(patch={
        "description": "Gelo", "category": "supplies", "amount_cents": 3500, "date": date(2026, 3, 5),
    })

    assert [e.description for e in finance_service.list_expenses()] == ["Gelo", "Gasolina"]
    assert [e.description for e in finance_service.list_expenses(category="fuel")] == ["Gasolina"]
    assert len(finance_service.list_expenses(category="all")) == 2

    updated = finance_service.update_expense(expense_id=fuel.id, patch={"amount_cents": 16000})
    assert updated.amount_cents == 16000

    finance_service.delete_expense(expense_id=fuel.id)
    with pytest.raises(NotFoundError):
        finance_service.get_expense(fuel.id)


def test_monthly_payroll_sums_active_employees(db_session, make_employee):
    make_employee("Carlos", salary_cents=180000)
    make_employee("Bia", role="admin", salary_cents=250000)
    inactive = make_employee("Ze", salary_cents=100000, is_active=False)

    assert finance_service.monthly_payroll_cents() == 430000

    finance_service.update_employee(employee_id=inactive.id, patch={"is_active": True})
    assert finance_service.monthly_payroll_cents() == 530000


def test_list_active_employees(db_session, make_employee):
    make_employee("Carlos")
    make_employee("Ze", is_active=False)

    assert [e.name for e in finance_service.list_employees(active_only=True)] == ["Carlos"]
    assert len(finance_service.list_employees()) == 2
