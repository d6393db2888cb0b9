# backend/storepos/routes/admin.py
"""
Admin routes for user management.

All endpoints require authentication and MANAGE_USERS.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services.auth_service import UNSET
from ..validation import ValidationError, ConflictError, parse_id
from ..decorators import require_auth, require_permission

admin_bp = Blueprint("admin", __name__, url_prefix="/api/users")


@admin_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users():
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user():
    """
    Create a user.

    Body: {username, password, role, store_id|storeId (optional)}
    """
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role"),
            store_id=data.get("store_id", data.get("storeId")),
        )
        current_app.logger.info("User %s created by %s", user.username, g.current_user.username)
        return jsonify({"user": user.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/<user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user(user_id):
    """
    Partial update of username, password, role and store assignment.
    Changing the password revokes the user's sessions.
    """
    data = request.get_json(silent=True) or {}
    try:
        pk = parse_id(user_id, "user_id")

        store_id = UNSET
        if "store_id" in data:
            store_id = data["store_id"]
        elif "storeId" in data:
            store_id = data["storeId"]

        user = auth_service.update_user(
            pk,
            username=data.get("username"),
            password=data.get("password"),
            role=data.get("role"),
            store_id=store_id,
            is_active=data.get("is_active", data.get("isActive")),
        )
        return jsonify({"user": user.to_dict()}), 200
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/<user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user(user_id):
    try:
        pk = parse_id(user_id, "user_id")
        auth_service.delete_user(pk, acting_user_id=g.current_user.id)
        return jsonify({"ok": True}), 200
    except LookupError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
