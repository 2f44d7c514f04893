# Overview: Service-layer operations for pharmacies; encapsulates business logic and database work.

from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import current_app

from ..errors import (
    EntityAlreadyExistsError,
    EntityInvalidArgumentError,
    EntityNotAuthorizedError,
    EntityNotFoundError,
)
from ..extensions import db
from ..models import Pharmacy, TradeRecord
from . import mapper
from .dtos import BalanceReadOnly, PaginatedResult, PharmacyInsert, PharmacyReadOnly, PharmacyUpdate
from .repository import Repository
from .trade_record_service import balance_between, count_between, load_pharmacy, recent_between
from .transaction import run_in_transaction, run_read_only
from .user_service import load_user

pharmacies = Repository(Pharmacy)

BALANCE_SORT_KEYS = {
    "name": (lambda b: (b.pharmacy_name.lower(), b.pharmacy_id), False),
    "amount": (lambda b: (b.amount, b.pharmacy_id), True),
    "tradeCount": (lambda b: (b.trade_count, b.pharmacy_id), True),
}


def _ensure_name_free(name: str, *, allow_id: Optional[int] = None) -> None:
    existing = pharmacies.find_by_field("name", name)
    if existing is not None and existing.id != allow_id:
        raise EntityAlreadyExistsError("Pharmacy", f"Pharmacy with name {name} already exists")


def create_pharmacy(dto: PharmacyInsert, creator_user_id: int) -> PharmacyReadOnly:
    """The creator becomes the owner."""
    def _op():
        creator = load_user(creator_user_id)
        _ensure_name_free(dto.name)

        pharmacy = Pharmacy(name=dto.name)
        with db.session.no_autoflush:
            creator.add_pharmacy(pharmacy)
        pharmacies.insert(pharmacy)
        current_app.logger.info("Pharmacy id=%s name=%s created by user id=%s", pharmacy.id, pharmacy.name, creator.id)
        return mapper.to_pharmacy_dto(pharmacy)

    return run_in_transaction(_op, action="create pharmacy")


def update_pharmacy(dto: PharmacyUpdate, updater_user_id: int) -> PharmacyReadOnly:
    def _op():
        pharmacy = load_pharmacy(dto.id)
        updater = load_user(updater_user_id)
        if not (pharmacy.is_owned_by(updater.id) or updater.is_admin):
            raise EntityNotAuthorizedError("User", "Only the owner or an admin can update this pharmacy")

        if dto.name != pharmacy.name:
            _ensure_name_free(dto.name, allow_id=pharmacy.id)
        pharmacy.name = dto.name
        pharmacies.update(pharmacy)
        current_app.logger.info("Pharmacy id=%s updated by user id=%s", pharmacy.id, updater.id)
        return mapper.to_pharmacy_dto(pharmacy)

    return run_in_transaction(_op, action="update pharmacy")


def delete_pharmacy(pharmacy_id: int, deleter_user_id: int) -> None:
    """
    Detach the pharmacy from its owner, its contacts and its trade records,
    then remove it. Contacts pointing at it are deleted; records keep
    existing with the giver/receiver reference cleared.
    """
    def _op():
        pharmacy = pharmacies.get_by_id_with_relations(
            pharmacy_id, "records_given", "records_received", "contact_references"
        )
        if pharmacy is None:
            raise EntityNotFoundError("Pharmacy", f"Pharmacy with id {pharmacy_id} was not found")
        deleter = load_user(deleter_user_id)
        if not (pharmacy.is_owned_by(deleter.id) or deleter.is_admin):
            raise EntityNotAuthorizedError("User", "Only the owner or an admin can delete this pharmacy")

        with db.session.no_autoflush:
            if pharmacy.user is not None:
                pharmacy.user.remove_pharmacy(pharmacy)

            for contact in list(pharmacy.contact_references):
                owner = contact.user
                pharmacy.remove_contact_reference(contact)
                if owner is not None:
                    owner.remove_contact(contact)
                db.session.delete(contact)

            for record in list(pharmacy.records_given):
                pharmacy.remove_record_giver(record)
            for record in list(pharmacy.records_received):
                pharmacy.remove_record_receiver(record)

        pharmacies.delete(pharmacy)
        current_app.logger.info("Pharmacy id=%s deleted by user id=%s", pharmacy_id, deleter.id)

    run_in_transaction(_op, action="delete pharmacy")


def get_pharmacy_by_id(pharmacy_id: int) -> PharmacyReadOnly:
    return run_read_only(lambda: mapper.to_pharmacy_dto(load_pharmacy(pharmacy_id)), action="get pharmacy")


def get_pharmacy_by_name(name: str) -> PharmacyReadOnly:
    def _op():
        pharmacy = pharmacies.find_by_field("name", name)
        if pharmacy is None:
            raise EntityNotFoundError("Pharmacy", f"Pharmacy with name {name} was not found")
        return mapper.to_pharmacy_dto(pharmacy)

    return run_read_only(_op, action="get pharmacy by name")


def name_exists(name: str) -> bool:
    return run_read_only(lambda: pharmacies.find_by_field("name", name) is not None, action="check pharmacy name")


def _list(criteria: Mapping[str, Any] | None) -> list[PharmacyReadOnly]:
    return [mapper.to_pharmacy_dto(p) for p in pharmacies.get_by_criteria(criteria)]


def search_pharmacies_by_name(name: str) -> list[PharmacyReadOnly]:
    """Case-insensitive substring match on the pharmacy name."""
    return run_read_only(lambda: _list({"name": f"%{name}%"}), action="search pharmacies by name")


def search_pharmacies_by_user(username: str) -> list[PharmacyReadOnly]:
    """Case-insensitive substring match on the owner's username."""
    return run_read_only(lambda: _list({"user.username": f"%{username}%"}), action="search pharmacies by user")


def get_all_pharmacies() -> list[PharmacyReadOnly]:
    return run_read_only(
        lambda: [mapper.to_pharmacy_dto(p) for p in pharmacies.get_all()],
        action="list pharmacies",
    )


def get_pharmacies_by_criteria(criteria: Mapping[str, Any] | None) -> list[PharmacyReadOnly]:
    return run_read_only(lambda: _list(criteria), action="filter pharmacies")


def get_pharmacies_by_criteria_paginated(
    criteria: Mapping[str, Any] | None, page: int, size: int
) -> PaginatedResult[PharmacyReadOnly]:
    return run_read_only(
        lambda: pharmacies.get_by_criteria_paginated(criteria, page, size).map(mapper.to_pharmacy_dto),
        action="page pharmacies",
    )


def get_pharmacies_count_by_criteria(criteria: Mapping[str, Any] | None) -> int:
    return run_read_only(lambda: pharmacies.count_by_criteria(criteria), action="count pharmacies")


def _counterpart_ids(pharmacy_id: int) -> set[int]:
    given = db.session.query(TradeRecord.receiver_id).filter(TradeRecord.giver_id == pharmacy_id)
    received = db.session.query(TradeRecord.giver_id).filter(TradeRecord.receiver_id == pharmacy_id)
    ids = {row[0] for row in given.all()} | {row[0] for row in received.all()}
    ids.discard(None)
    return ids


def get_balance_list(pharmacy_id: int, sort_by: Optional[str] = None) -> list[BalanceReadOnly]:
    """
    One balance per pharmacy this one has traded with.

    contact_name is the label the pharmacy's owner gave the counterpart,
    if any. sort_by: "name" (default, ascending), "amount" or "tradeCount"
    (both descending).
    """
    sort_key = sort_by or "name"
    if sort_key not in BALANCE_SORT_KEYS:
        raise EntityInvalidArgumentError(
            "Balance", f"sort_by must be one of {', '.join(BALANCE_SORT_KEYS)}"
        )

    def _op():
        pharmacy = load_pharmacy(pharmacy_id)
        limit = current_app.config.get("RECENT_TRADES_LIMIT", 5)
        labels = {}
        if pharmacy.user is not None:
            labels = {c.pharmacy_id: c.contact_name for c in pharmacy.user.contacts}

        balances = []
        for counterpart_id in _counterpart_ids(pharmacy.id):
            counterpart = load_pharmacy(counterpart_id)
            balances.append(
                BalanceReadOnly(
                    pharmacy_id=counterpart.id,
                    pharmacy_name=counterpart.name,
                    contact_name=labels.get(counterpart.id),
                    amount=balance_between(pharmacy.id, counterpart.id),
                    trade_count=count_between(pharmacy.id, counterpart.id),
                    recent_trades=[
                        mapper.to_trade_record_dto(r)
                        for r in recent_between(pharmacy.id, counterpart.id, limit)
                    ],
                )
            )

        key, descending = BALANCE_SORT_KEYS[sort_key]
        return sorted(balances, key=key, reverse=descending)

    return run_read_only(_op, action="build balance list")
