# Overview: Flask API routes for pharmacies; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import pharmacy_service, trade_record_service
from ..services.mapper import pharmacy_criteria
from ..validation import (
    parse_page_args,
    parse_pharmacy_filters,
    parse_pharmacy_insert,
    parse_pharmacy_update,
)


pharmacies_bp = Blueprint("pharmacies", __name__, url_prefix="/api/pharmacies")


@pharmacies_bp.get("")
@require_auth
def list_pharmacies():
    page, size = parse_page_args(request.args, current_app.config["DEFAULT_PAGE_SIZE"])
    criteria = pharmacy_criteria(parse_pharmacy_filters(request.args))
    result = pharmacy_service.get_pharmacies_by_criteria_paginated(criteria, page, size)
    return jsonify(result.to_dict()), 200


@pharmacies_bp.post("")
@require_auth
def create_pharmacy():
    dto = parse_pharmacy_insert(request.get_json(silent=True))
    pharmacy = pharmacy_service.create_pharmacy(dto, g.current_user.id)
    return jsonify(pharmacy.to_dict()), 201


@pharmacies_bp.get("/<int:pharmacy_id>")
@require_auth
def get_pharmacy(pharmacy_id: int):
    return jsonify(pharmacy_service.get_pharmacy_by_id(pharmacy_id).to_dict()), 200


@pharmacies_bp.put("/<int:pharmacy_id>")
@require_auth
def update_pharmacy(pharmacy_id: int):
    dto = parse_pharmacy_update(request.get_json(silent=True), pharmacy_id)
    pharmacy = pharmacy_service.update_pharmacy(dto, g.current_user.id)
    return jsonify(pharmacy.to_dict()), 200


@pharmacies_bp.delete("/<int:pharmacy_id>")
@require_auth
def delete_pharmacy(pharmacy_id: int):
    pharmacy_service.delete_pharmacy(pharmacy_id, g.current_user.id)
    return "", 204


@pharmacies_bp.get("/<int:pharmacy_id>/balances")
@require_auth
def list_balances(pharmacy_id: int):
    balances = pharmacy_service.get_balance_list(pharmacy_id, request.args.get("sort_by"))
    return jsonify([b.to_dict() for b in balances]), 200


@pharmacies_bp.get("/<int:pharmacy_id>/recent-trades")
@require_auth
def list_recent_trades(pharmacy_id: int):
    limit = request.args.get("limit", type=int)
    trades = trade_record_service.get_recent_trades_for_pharmacy(pharmacy_id, limit)
    return jsonify([t.to_dict() for t in trades]), 200


@pharmacies_bp.get("/search")
@require_auth
def search_pharmacies():
    """?name=... (pharmacy name) or ?username=... (owner), substring match."""
    name = request.args.get("name")
    username = request.args.get("username")
    if name:
        found = pharmacy_service.search_pharmacies_by_name(name)
    elif username:
        found = pharmacy_service.search_pharmacies_by_user(username)
    else:
        found = pharmacy_service.get_all_pharmacies()
    return jsonify([p.to_dict() for p in found]), 200
