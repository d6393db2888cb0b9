# backend/storepos/routes/transactions.py
"""
Transaction API routes: SALE/REFUND posting, lookups, receipts.

Posting responses: {transaction, items, receipt_text}
Errors: {error, kind, details}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import transaction_service
from ..services.transaction_service import CashierIdentity, TransactionError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _error_response(e: TransactionError):
    return jsonify(e.to_dict()), e.http_status


def _detail_payload(tx, lines) -> dict:
    return {
        "transaction": tx.to_dict(),
        "items": [line.to_dict() for line in lines],
    }


@transactions_bp.post("")
@require_auth
@require_permission("POST_SALE")
def post_sale_route():
    """
    Post a SALE.

    Body: {store_id|storeId, register_id|registerId,
           payment_method|paymentMethod, items: [{product_id|productId, quantity}]}
    """
    data = request.get_json(silent=True) or {}
    try:
        result = transaction_service.post_sale(
            store_id=data.get("store_id", data.get("storeId")),
            register_id=data.get("register_id", data.get("registerId")),
            payment_method=data.get("payment_method", data.get("paymentMethod")),
            items=data.get("items"),
            cashier=CashierIdentity.from_user(g.current_user),
        )
        return jsonify(result.to_dict()), 201
    except TransactionError as e:
        return _error_response(e)
    except ValidationError as e:
        return jsonify({"error": str(e), "kind": "ValidationError", "details": {}}), 400
    except Exception:
        current_app.logger.exception("Failed to post sale")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/refund")
@require_auth
@require_permission("POST_REFUND")
def post_refund_by_body_route():
    """
    Body: {original_transaction_id|originalTransactionId, items: [...]}
    """
    data = request.get_json(silent=True) or {}
    return _post_refund(data.get("original_transaction_id", data.get("originalTransactionId")), data)


@transactions_bp.post("/<transaction_id>/refund")
@require_auth
@require_permission("POST_REFUND")
def post_refund_route(transaction_id):
    """
    Post a REFUND against a SALE.

    Body: {items: [{original_line_id|originalLineId|transactionItemId, quantity}]}
    """
    return _post_refund(transaction_id, request.get_json(silent=True) or {})


def _post_refund(transaction_id, data: dict):
    try:
        result = transaction_service.post_refund(
            original_transaction_id=transaction_id,
            items=data.get("items"),
            cashier=CashierIdentity.from_user(g.current_user),
        )
        return jsonify(result.to_dict()), 201
    except TransactionError as e:
        return _error_response(e)
    except ValidationError as e:
        return jsonify({"error": str(e), "kind": "ValidationError", "details": {}}), 400
    except Exception:
        current_app.logger.exception("Failed to post refund")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/by-code/<code>")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def get_by_code_route(code):
    try:
        tx, lines = transaction_service.get_transaction_by_code(code)
        return jsonify(_detail_payload(tx, lines))
    except TransactionError as e:
        return _error_response(e)


@transactions_bp.get("/<transaction_id>")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def get_transaction_route(transaction_id):
    try:
        tx, lines = transaction_service.get_transaction_detail(transaction_id)
        payload = _detail_payload(tx, lines)
        payload["refunds"] = [r.to_dict() for r in tx.refunds]
        return jsonify(payload)
    except TransactionError as e:
        return _error_response(e)


@transactions_bp.get("/<transaction_id>/receipt")
@require_auth
@require_permission("VIEW_TRANSACTIONS")
def get_receipt_route(transaction_id):
    try:
        tx, text = transaction_service.get_receipt(transaction_id)
        return jsonify({"transaction_id": str(tx.id), "code": tx.code, "receipt_text": text})
    except TransactionError as e:
        return _error_response(e)
