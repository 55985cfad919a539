# Overview: Flask API routes for reports; the staff dashboard.

from flask import Blueprint, jsonify, current_app

from ..services import reporting_service
from ..decorators import require_auth, require_staff


reports_bp = Blueprint("reports", __name__, url_prefix="/api/admin")


@reports_bp.get("/dashboard")
@require_auth
@require_staff
def dashboard_route():
    """Store-wide totals, breakdowns, the last four months and the newest orders."""
    try:
        return jsonify(reporting_service.admin_dashboard_metrics()), 200

    except Exception:
        current_app.logger.exception("Failed to build dashboard metrics")
        return jsonify({"error": "Internal server error"}), 500
