# Overview: Flask API routes for staff records (monthly payroll inputs).

from flask import Blueprint, request

from ..models import Employee
from ..services import finance_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_employee,
    ValidationError,
    NotFoundError,
)

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "role", "salary_cents", "phone", "is_active"},
    required_on_create={"name", "role"},
)

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
def list_employees():
    active_only = request.args.get("active", "false").lower() == "true"
    employees = finance_service.list_employees(active_only=active_only)
    return {
        "items": [e.to_dict() for e in employees],
        "count": len(employees),
        "monthly_payroll_cents": finance_service.monthly_payroll_cents(),
    }


@employees_bp.get("/<int:employee_id>")
def get_employee_route(employee_id: int):
    try:
        employee = finance_service.get_employee(employee_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return employee.to_dict(), 200


@employees_bp.post("")
def create_employee_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
        enforce_rules_employee(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = finance_service.create_employee(patch=patch)
    return created.to_dict(), 201


@employees_bp.put("/<int:employee_id>")
def update_employee_route(employee_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True)
        enforce_rules_employee(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = finance_service.update_employee(employee_id=employee_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return updated.to_dict(), 200


@employees_bp.delete("/<int:employee_id>")
def delete_employee_route(employee_id: int):
    try:
        finance_service.delete_employee(employee_id=employee_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"ok": True}, 200
