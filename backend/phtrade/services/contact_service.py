# Overview: Service-layer operations for pharmacy contacts; encapsulates business logic and database work.

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..errors import EntityAlreadyExistsError, EntityNotAuthorizedError, EntityNotFoundError
from ..extensions import db
from ..models import PharmacyContact, User
from . import mapper
from .dtos import ContactInsert, ContactReadOnly, ContactUpdate, PaginatedResult
from .repository import Repository
from .trade_record_service import load_pharmacy
from .transaction import run_in_transaction, run_read_only
from .user_service import load_user

contacts = Repository(PharmacyContact)


def _load_contact(contact_id: int) -> PharmacyContact:
    contact = contacts.get_by_id(contact_id)
    if contact is None:
        raise EntityNotFoundError("PharmacyContact", f"Contact with id {contact_id} was not found")
    return contact


def _ensure_can_manage(contact: PharmacyContact, user: User) -> None:
    if not (contact.user_id == user.id or user.is_admin):
        raise EntityNotAuthorizedError("User", "Only the contact owner or an admin can change this contact")


def _exists(user_id: int, pharmacy_id: int) -> bool:
    return contacts.exists_by_criteria({"user.id": user_id, "pharmacy.id": pharmacy_id})


def save_contact(dto: ContactInsert, user_id: int) -> ContactReadOnly:
    """Label a pharmacy for `user_id`; one contact per (user, pharmacy)."""
    def _op():
        user = load_user(user_id)
        pharmacy = load_pharmacy(dto.pharmacy_id)
        if _exists(user.id, pharmacy.id):
            raise EntityAlreadyExistsError(
                "PharmacyContact",
                f"User {user.username} already has a contact for pharmacy {pharmacy.name}",
            )

        contact = PharmacyContact(contact_name=dto.contact_name)
        with db.session.no_autoflush:
            user.add_contact(contact)
            pharmacy.add_contact_reference(contact)
        contacts.insert(contact)
        current_app.logger.info(
            "Contact id=%s saved for user id=%s pharmacy id=%s", contact.id, user.id, pharmacy.id
        )
        return mapper.to_contact_dto(contact)

    return run_in_transaction(_op, action="save contact")


def update_contact(dto: ContactUpdate, updater_user_id: int) -> ContactReadOnly:
    def _op():
        contact = _load_contact(dto.id)
        _ensure_can_manage(contact, load_user(updater_user_id))
        contact.contact_name = dto.contact_name
        contacts.update(contact)
        current_app.logger.info("Contact id=%s renamed by user id=%s", contact.id, updater_user_id)
        return mapper.to_contact_dto(contact)

    return run_in_transaction(_op, action="update contact")


def delete_contact(contact_id: int, deleter_user_id: int) -> None:
    def _op():
        contact = _load_contact(contact_id)
        _ensure_can_manage(contact, load_user(deleter_user_id))

        with db.session.no_autoflush:
            user, pharmacy = contact.user, contact.pharmacy
            if user is not None:
                user.remove_contact(contact)
            if pharmacy is not None:
                pharmacy.remove_contact_reference(contact)
        contacts.delete(contact)
        current_app.logger.info("Contact id=%s deleted by user id=%s", contact_id, deleter_user_id)

    run_in_transaction(_op, action="delete contact")


def get_contact_by_id(contact_id: int) -> ContactReadOnly:
    return run_read_only(lambda: mapper.to_contact_dto(_load_contact(contact_id)), action="get contact")


def contact_exists(user_id: int, pharmacy_id: int) -> bool:
    return run_read_only(lambda: _exists(user_id, pharmacy_id), action="check contact")


def get_contacts_by_criteria(criteria: Mapping[str, Any] | None) -> list[ContactReadOnly]:
    return run_read_only(
        lambda: [mapper.to_contact_dto(c) for c in contacts.get_by_criteria(criteria)],
        action="filter contacts",
    )


def get_contacts_by_criteria_paginated(
    criteria: Mapping[str, Any] | None, page: int, size: int
) -> PaginatedResult[ContactReadOnly]:
    return run_read_only(
        lambda: contacts.get_by_criteria_paginated(criteria, page, size).map(mapper.to_contact_dto),
        action="page contacts",
    )


def get_contacts_count_by_criteria(criteria: Mapping[str, Any] | None) -> int:
    return run_read_only(lambda: contacts.count_by_criteria(criteria), action="count contacts")
