# backend/storepos/routes/stores.py
"""
Store, register and receipt template routes.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import store_service, receipt_service
from ..validation import ValidationError, parse_id
from ..decorators import require_auth, require_permission

stores_bp = Blueprint("stores", __name__, url_prefix="/api")


@stores_bp.get("/stores")
@require_auth
@require_permission("VIEW_CATALOG")
def list_stores():
    stores = store_service.list_stores()
    return jsonify({"stores": [s.to_dict() for s in stores]})


@stores_bp.get("/registers")
@require_auth
@require_permission("VIEW_CATALOG")
def list_registers():
    """
    Query params:
    - storeId | store_id: required
    """
    raw = request.args.get("storeId") or request.args.get("store_id")
    if not raw:
        return jsonify({"error": "storeId is required"}), 400
    try:
        store_id = parse_id(raw, "storeId")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if store_service.get_store(store_id) is None:
        return jsonify({"error": "Store not found"}), 404

    registers = store_service.list_registers(store_id)
    return jsonify({"registers": [r.to_dict() for r in registers]})


@stores_bp.get("/stores/<store_id>/receipt-template")
@require_auth
@require_permission("VIEW_CATALOG")
def get_receipt_template(store_id):
    try:
        pk = parse_id(store_id, "storeId")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if store_service.get_store(pk) is None:
        return jsonify({"error": "Store not found"}), 404

    template = receipt_service.get_template(pk)
    return jsonify({"template": template.to_dict()})


@stores_bp.put("/stores/<store_id>/receipt-template")
@require_auth
@require_permission("MANAGE_RECEIPTS")
def update_receipt_template(store_id):
    """
    Body: {header, footer, options: {show_tax_breakdown}}
    """
    data = request.get_json(silent=True) or {}
    options = data.get("options") or {}
    show_tax = options.get("show_tax_breakdown", options.get("showTaxBreakdown"))

    try:
        pk = parse_id(store_id, "storeId")
        template = receipt_service.update_template(
            pk,
            header=data.get("header"),
            footer=data.get("footer"),
            show_tax_breakdown=show_tax,
        )
        return jsonify({"template": template.to_dict()}), 200
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update receipt template")
        return jsonify({"error": "Internal server error"}), 500
