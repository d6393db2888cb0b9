# backend/storepos/routes/inventory.py
"""
Per-store inventory routes.

The absolute set is an administrative override; sales and refunds only
move quantities relatively.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service, store_service
from ..validation import ValidationError, parse_id, parse_quantity
from ..decorators import require_auth, require_permission

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_inventory():
    raw = request.args.get("storeId") or request.args.get("store_id")
    if not raw:
        return jsonify({"error": "storeId is required"}), 400
    try:
        store_id = parse_id(raw, "storeId")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    if store_service.get_store(store_id) is None:
        return jsonify({"error": "Store not found"}), 404

    records = inventory_service.list_inventory(store_id)
    return jsonify({"inventory": [r.to_dict() for r in records]})


@inventory_bp.post("/set")
@require_auth
@require_permission("MANAGE_INVENTORY")
def set_inventory():
    """
    Body: {store_id|storeId, product_id|productId, quantity}
    """
    data = request.get_json(silent=True) or {}
    try:
        store_id = parse_id(data.get("store_id", data.get("storeId")), "storeId")
        product_id = parse_id(data.get("product_id", data.get("productId")), "productId")
        quantity = parse_quantity(data.get("quantity"))

        record = inventory_service.set_quantity(store_id, product_id, quantity)
        current_app.logger.info(
            "Inventory set store=%s product=%s quantity=%s", store_id, product_id, record.quantity
        )
        return jsonify({"inventory": record.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to set inventory")
        return jsonify({"error": "Internal server error"}), 500
