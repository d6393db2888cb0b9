# backend/storepos/routes/auth.py
"""
Authentication API routes.

Login issues an opaque bearer token; only its hash is stored.
Accounts are created by administrators (see /api/users and the CLI).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..permissions import get_role_permissions
from ..decorators import require_auth
from storepos.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["permissions"] = sorted(get_role_permissions(user.role))
    return data


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included as `Authorization: Bearer <token>` on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = (data.get("username") or "").strip()
        password = data.get("password")

        if not username or not password:
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for %s", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "user": _user_payload(user),
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this request."""
    session_service.revoke_session(g.auth_token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": _user_payload(g.current_user)}), 200
