# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- register: self-registration, always as a REGULAR user
- login: verifies credentials and issues a session token
- logout: revokes the presented token
- me: the user behind the presented token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import bearer_token, require_auth
from ..services import auth_service, session_service, user_service
from ..services.mapper import to_user_dto
from ..validation import parse_user_insert


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    dto = parse_user_insert(request.get_json(silent=True))
    user = user_service.insert_user(dto)
    return jsonify(user.to_dict()), 201


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not all([username, password]):
        return jsonify({"code": "CredentialsRequired", "description": "username and password required"}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        current_app.logger.info("Failed login for username=%s", username)
        return jsonify({"code": "InvalidCredentials", "description": "Invalid credentials"}), 401

    session, token = session_service.create_session(user.id)
    current_app.logger.info("User id=%s logged in", user.id)

    return jsonify({
        "user": to_user_dto(user).to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), 200


@auth_bp.post("/logout")
def logout_route():
    token = bearer_token()
    if token is None:
        return jsonify({"code": "AuthenticationRequired", "description": "Authorization header required"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"code": "InvalidToken", "description": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify(to_user_dto(g.current_user).to_dict()), 200
