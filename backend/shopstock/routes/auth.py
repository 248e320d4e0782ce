# backend/shopstock/routes/auth.py
"""
Authentication API routes.

Login returns an opaque bearer token; only its hash is stored server-side.
There is no self-registration: users are created with `flask users create`.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """Authenticate by username or email and create a session token."""
    data = request.get_json(silent=True) or {}
    login = data.get("username") or data.get("email")
    password = data.get("password")

    if not isinstance(login, str) or not isinstance(password, str) or not login or not password:
        return jsonify({"error": "username (or email) and password are required"}), 400

    user = auth_service.authenticate(login, password)
    if not user:
        current_app.logger.info("login failed for %s", login)
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    current_app.logger.info("login user=%s", user.id)
    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "user": user.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
