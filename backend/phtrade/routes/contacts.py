# Overview: Flask API routes for pharmacy contacts; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import contact_service
from ..services.mapper import contact_criteria
from ..validation import (
    parse_contact_filters,
    parse_contact_insert,
    parse_contact_update,
    parse_page_args,
)


contacts_bp = Blueprint("contacts", __name__, url_prefix="/api/contacts")


@contacts_bp.get("")
@require_auth
def list_contacts():
    """The caller's own contacts, filtered and paginated."""
    page, size = parse_page_args(request.args, current_app.config["DEFAULT_PAGE_SIZE"])
    criteria = contact_criteria(parse_contact_filters(request.args, g.current_user.id))
    result = contact_service.get_contacts_by_criteria_paginated(criteria, page, size)
    return jsonify(result.to_dict()), 200


@contacts_bp.post("")
@require_auth
def save_contact():
    dto = parse_contact_insert(request.get_json(silent=True))
    contact = contact_service.save_contact(dto, g.current_user.id)
    return jsonify(contact.to_dict()), 201


@contacts_bp.get("/<int:contact_id>")
@require_auth
def get_contact(contact_id: int):
    return jsonify(contact_service.get_contact_by_id(contact_id).to_dict()), 200


@contacts_bp.put("/<int:contact_id>")
@require_auth
def update_contact(contact_id: int):
    dto = parse_contact_update(request.get_json(silent=True), contact_id)
    contact = contact_service.update_contact(dto, g.current_user.id)
    return jsonify(contact.to_dict()), 200


@contacts_bp.delete("/<int:contact_id>")
@require_auth
def delete_contact(contact_id: int):
    contact_service.delete_contact(contact_id, g.current_user.id)
    return "", 204
