# Overview: Flask API routes for trade records; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import EntityInvalidArgumentError
from ..services import trade_record_service
from ..services.mapper import trade_record_criteria
from ..time_utils import parse_iso_datetime
from ..validation import (
    parse_page_args,
    parse_trade_record_filters,
    parse_trade_record_insert,
    parse_trade_record_update,
)


records_bp = Blueprint("records", __name__, url_prefix="/api/records")


def _pharmacy_pair() -> tuple[int, int]:
    first = request.args.get("pharmacy1_id", type=int)
    second = request.args.get("pharmacy2_id", type=int)
    if first is None or second is None:
        raise EntityInvalidArgumentError("TradeRecord", "pharmacy1_id and pharmacy2_id are required")
    return first, second


@records_bp.get("")
@require_auth
def list_records():
    page, size = parse_page_args(request.args, current_app.config["DEFAULT_PAGE_SIZE"])
    criteria = trade_record_criteria(parse_trade_record_filters(request.args))
    result = trade_record_service.get_trade_records_by_criteria_paginated(criteria, page, size)
    return jsonify(result.to_dict()), 200


@records_bp.post("")
@require_auth
def create_record():
    dto = parse_trade_record_insert(request.get_json(silent=True))
    record = trade_record_service.create_trade_record(dto, g.current_user.id)
    return jsonify(record.to_dict()), 201


@records_bp.get("/<int:record_id>")
@require_auth
def get_record(record_id: int):
    return jsonify(trade_record_service.get_trade_record_by_id(record_id).to_dict()), 200


@records_bp.put("/<int:record_id>")
@require_auth
def update_record(record_id: int):
    dto = parse_trade_record_update(request.get_json(silent=True), record_id)
    record = trade_record_service.update_trade_record(dto, g.current_user.id)
    return jsonify(record.to_dict()), 200


@records_bp.delete("/<int:record_id>")
@require_auth
def delete_record(record_id: int):
    """One side's consent; `removed` tells whether the record is gone."""
    outcome = trade_record_service.delete_trade_record(record_id, g.current_user.id)
    return jsonify(outcome.to_dict()), 200


@records_bp.get("/between")
@require_auth
def list_between():
    """?pharmacy1_id&pharmacy2_id&start&end (ISO-8601)."""
    first, second = _pharmacy_pair()
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise EntityInvalidArgumentError("TradeRecord", "start and end must be ISO-8601 datetimes") from None
    if start is None or end is None:
        raise EntityInvalidArgumentError("TradeRecord", "start and end are required")
    trades = trade_record_service.get_trades_between_pharmacies(first, second, start, end)
    return jsonify([t.to_dict() for t in trades]), 200


@records_bp.get("/balance")
@require_auth
def balance_between():
    """Balance from pharmacy1's point of view, with count and newest trades."""
    first, second = _pharmacy_pair()
    limit = request.args.get("limit", type=int)
    balance = trade_record_service.calculate_balance_between_pharmacies(first, second)
    count = trade_record_service.get_trade_count_between_pharmacies(first, second)
    recent = trade_record_service.get_recent_trades_between_pharmacies(first, second, limit)
    return jsonify({
        "pharmacy1_id": first,
        "pharmacy2_id": second,
        "balance": str(balance),
        "trade_count": count,
        "recent_trades": [t.to_dict() for t in recent],
    }), 200
