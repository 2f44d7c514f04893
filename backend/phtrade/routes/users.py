# Overview: Flask API routes for users; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import user_service
from ..services.mapper import user_criteria
from ..validation import parse_page_args, parse_user_filters, parse_user_update


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
def list_users():
    page, size = parse_page_args(request.args, current_app.config["DEFAULT_PAGE_SIZE"])
    criteria = user_criteria(parse_user_filters(request.args))
    result = user_service.get_users_by_criteria_paginated(criteria, page, size)
    return jsonify(result.to_dict()), 200


@users_bp.get("/exists")
def user_exists():
    """Registration form helper: ?username=... or ?email=..."""
    username = request.args.get("username")
    email = request.args.get("email")
    if username:
        return jsonify({"exists": user_service.username_exists(username)}), 200
    if email:
        return jsonify({"exists": user_service.email_exists(email)}), 200
    return jsonify({"code": "UserInvalidArgument", "description": "username or email required"}), 400


@users_bp.get("/<int:user_id>")
@require_auth
def get_user(user_id: int):
    return jsonify(user_service.get_user_by_id(user_id).to_dict()), 200


@users_bp.put("/<int:user_id>")
@require_auth
def update_user(user_id: int):
    dto = parse_user_update(request.get_json(silent=True), user_id)
    user = user_service.update_user(dto, g.current_user.id)
    return jsonify(user.to_dict()), 200


@users_bp.delete("/<int:user_id>")
@require_auth
def delete_user(user_id: int):
    user_service.delete_user(user_id, g.current_user.id)
    return "", 204


@users_bp.get("/<int:user_id>/pharmacies")
@require_auth
def list_user_pharmacies(user_id: int):
    pharmacies = user_service.get_user_pharmacies(user_id)
    return jsonify([p.to_dict() for p in pharmacies]), 200


@users_bp.get("/<int:user_id>/contacts")
@require_auth
def list_user_contacts(user_id: int):
    contacts = user_service.get_user_contacts(user_id)
    return jsonify([c.to_dict() for c in contacts]), 200
