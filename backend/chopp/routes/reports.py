# Overview: Flask API routes for financial reports and the dashboard.

# backend/chopp/routes/reports.py
"""
Reporting endpoints. All read-only.

- GET /api/reports/financials?period=day|week|month|all
- GET /api/reports/dashboard
- GET /api/reports/recent-orders?limit=5
"""
from flask import Blueprint, request, current_app

from ..services import reporting_service
from ..services.reporting_service import ReportError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/financials")
def financials_report():
    """
    Revenue, liters, expenses, payroll and net profit for a period.

    Payroll only counts toward net profit for the month and all periods.
    """
    period = request.args.get("period", "month")
    try:
        summary = reporting_service.financial_summary(period=period)
    except ReportError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to generate financial summary")
        return {"error": "Internal server error"}, 500
    return summary, 200


@reports_bp.get("/dashboard")
def dashboard_report():
    return reporting_service.dashboard_stats(), 200


@reports_bp.get("/recent-orders")
def recent_orders_report():
    limit = min(max(request.args.get("limit", 5, type=int), 1), 50)
    orders = reporting_service.recent_orders(limit=limit)
    return {"items": orders, "count": len(orders)}, 200
