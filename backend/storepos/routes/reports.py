# backend/storepos/routes/reports.py
"""
Reporting routes.

Non-admin users only see their own store unless they ask for it explicitly,
and may not ask for another store.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_ADMIN
from ..services import reporting_service
from ..services.reporting_service import ReportError
from ..validation import ValidationError, parse_id
from ..decorators import require_auth, require_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_summary_route():
    """
    Query params:
    - from, to: YYYY-MM-DD, inclusive (default: last 7 days)
    - storeId | store_id: optional
    """
    user = g.current_user
    raw_store = request.args.get("storeId") or request.args.get("store_id")

    try:
        store_id = parse_id(raw_store, "storeId") if raw_store else None
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if user.role != ROLE_ADMIN and user.store_id is not None:
        if store_id is None:
            store_id = user.store_id
        elif store_id != user.store_id:
            return jsonify({"error": "Access denied for this store"}), 403

    try:
        report = reporting_service.sales_summary(
            start=request.args.get("from") or request.args.get("start"),
            end=request.args.get("to") or request.args.get("end"),
            store_id=store_id,
        )
        return jsonify(report)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build sales summary")
        return jsonify({"error": "Internal server error"}), 500
