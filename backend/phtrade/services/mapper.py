# Overview: Entity <-> DTO mapping and filter DTO -> criteria map translation.

from __future__ import annotations

from typing import Any

from ..models import Pharmacy, PharmacyContact, RoleType, TradeRecord, User
from .dtos import (
    ContactFilters,
    ContactReadOnly,
    PharmacyFilters,
    PharmacyReadOnly,
    TradeRecordFilters,
    TradeRecordReadOnly,
    UserFilters,
    UserReadOnly,
)


def _contains(value: str | None) -> str | None:
    if value is None or not str(value).strip():
        return None
    return f"%{str(value).strip().lower()}%"


def _drop_empty(criteria: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in criteria.items() if value is not None}


# Entity -> read-only

def to_user_dto(user: User) -> UserReadOnly:
    return UserReadOnly(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role.value if isinstance(user.role, RoleType) else str(user.role),
    )


def to_pharmacy_dto(pharmacy: Pharmacy) -> PharmacyReadOnly:
    owner = pharmacy.user
    return PharmacyReadOnly(
        id=pharmacy.id,
        name=pharmacy.name,
        owner_id=owner.id if owner else None,
        owner_username=owner.username if owner else None,
        created_at=pharmacy.created_at,
    )


def to_contact_dto(contact: PharmacyContact) -> ContactReadOnly:
    return ContactReadOnly(
        id=contact.id,
        user_id=contact.user.id,
        username=contact.user.username,
        pharmacy_id=contact.pharmacy.id,
        pharmacy_name=contact.pharmacy.name,
        contact_name=contact.contact_name,
    )


def to_trade_record_dto(record: TradeRecord) -> TradeRecordReadOnly:
    giver, receiver = record.giver, record.receiver
    return TradeRecordReadOnly(
        id=record.id,
        description=record.description,
        amount=record.amount,
        transaction_date=record.transaction_date,
        giver_id=giver.id if giver else None,
        giver_name=giver.name if giver else None,
        receiver_id=receiver.id if receiver else None,
        receiver_name=receiver.name if receiver else None,
        recorder_username=record.recorder.username if record.recorder else None,
        last_modified_by_username=(
            record.last_modified_by.username if record.last_modified_by else None
        ),
        deleted_by_giver=bool(record.deleted_by_giver),
        deleted_by_receiver=bool(record.deleted_by_receiver),
    )


# Filters -> criteria

def user_criteria(filters: UserFilters) -> dict[str, Any]:
    return _drop_empty({
        "username": _contains(filters.username),
        "email": _contains(filters.email),
        "role": filters.role.upper() if filters.role else None,
    })


def pharmacy_criteria(filters: PharmacyFilters) -> dict[str, Any]:
    return _drop_empty({
        "name": _contains(filters.name),
        "user.username": _contains(filters.username),
    })


def contact_criteria(filters: ContactFilters) -> dict[str, Any]:
    return _drop_empty({
        "contact_name": _contains(filters.contact_name),
        "pharmacy.name": _contains(filters.pharmacy_name),
        "user.id": filters.user_id,
    })


def trade_record_criteria(filters: TradeRecordFilters) -> dict[str, Any]:
    criteria = _drop_empty({
        "description": _contains(filters.description),
        "giver.name": _contains(filters.giver_name),
        "receiver.name": _contains(filters.receiver_name),
        "recorder.username": _contains(filters.recorder_username),
    })
    if filters.date_from is not None or filters.date_to is not None:
        criteria["transaction_date"] = {"from": filters.date_from, "to": filters.date_to}
    return criteria
