# backend/storepos/routes/products.py
"""
Product catalog routes.

- Read operations require VIEW_CATALOG
- Write operations require MANAGE_PRODUCTS
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import products_service
from ..validation import ValidationError, ConflictError, parse_id
from ..decorators import require_auth, require_permission

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

# camelCase aliases accepted from older clients
_PRODUCT_ALIASES = {"taxRate": "tax_rate", "isActive": "active"}


def _normalize_product_payload(data: dict) -> dict:
    payload = {}
    for key, value in data.items():
        payload[_PRODUCT_ALIASES.get(key, key)] = value
    return payload


@products_bp.get("")
@require_auth
@require_permission("VIEW_CATALOG")
def list_products():
    """
    Query params:
    - search: substring of name, SKU or barcode (optional)
    - include_inactive: bool (default false)
    """
    search = request.args.get("search") or request.args.get("q")
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"

    products = products_service.list_products(search=search, include_inactive=include_inactive)
    return jsonify({"products": [p.to_dict() for p in products]})


@products_bp.get("/barcode/<code>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_by_barcode(code):
    product = products_service.get_product_by_barcode(code)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()})


@products_bp.get("/<product_id>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_product(product_id):
    try:
        pk = parse_id(product_id, "productId")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    product = products_service.get_product(pk)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()})


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product():
    """
    Body: {sku, name, price, tax_rate, barcode?, category?,
           store_id|storeId?, quantity?}

    With a store, an inventory record is created with the given quantity.
    """
    data = _normalize_product_payload(request.get_json(silent=True) or {})
    raw_store = data.pop("store_id", data.pop("storeId", None))
    quantity = data.pop("quantity", None)

    try:
        store_id = parse_id(raw_store, "storeId") if raw_store not in (None, "") else None
        product = products_service.create_product(data, store_id=store_id, quantity=quantity)
        current_app.logger.info("Product %s created (id=%s)", product.sku, product.id)
        return jsonify({"product": product.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product(product_id):
    data = _normalize_product_payload(request.get_json(silent=True) or {})

    try:
        pk = parse_id(product_id, "productId")
        product = products_service.update_product(pk, data)
        return jsonify({"product": product.to_dict()}), 200
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500
