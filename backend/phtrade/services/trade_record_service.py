# Overview: Service-layer operations for trade records; lifecycle, two-phase deletion and balances.

"""
Trade Record Lifecycle

AUTHORIZATION:
- create / update: owner of the giver pharmacy, owner of the receiver
  pharmacy, or an admin
- delete: owner of the giver or the receiver pharmacy only (no admin bypass)

TWO-PHASE DELETION:
- Each side sets its own flag; setting it again is a no-op
- The row is physically removed once both flags are true
- A user owning both pharmacies consents for both sides in one call
- A side whose pharmacy was deleted has nobody left to consent; its flag is
  set on the other side's call

BALANCE:
- balance(p1, p2) = sum received by p1 from p2 - sum given by p1 to p2
- Records flagged by only one side still count
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from flask import current_app
from sqlalchemy import and_, func, or_

from ..errors import EntityInvalidArgumentError, EntityNotAuthorizedError, EntityNotFoundError
from ..extensions import db
from ..models import Pharmacy, TradeRecord, User
from phtrade.time_utils import is_future, normalize_utc
from . import mapper
from .dtos import (
    PaginatedResult,
    TradeRecordDeletion,
    TradeRecordInsert,
    TradeRecordReadOnly,
    TradeRecordUpdate,
)
from .repository import Repository
from .transaction import run_in_transaction, run_read_only
from .user_service import load_user

records = Repository(TradeRecord)
pharmacies = Repository(Pharmacy)

CENT = Decimal("0.01")


def load_pharmacy(pharmacy_id: int) -> Pharmacy:
    pharmacy = pharmacies.get_by_id(pharmacy_id)
    if pharmacy is None:
        raise EntityNotFoundError("Pharmacy", f"Pharmacy with id {pharmacy_id} was not found")
    return pharmacy


def _load_record(record_id: int, *, for_update: bool = False) -> TradeRecord:
    record = records.get_by_id(record_id, for_update=for_update)
    if record is None:
        raise EntityNotFoundError("TradeRecord", f"TradeRecord with id {record_id} was not found")
    return record


def _checked_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise EntityInvalidArgumentError("TradeRecord", "Amount is required")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise EntityInvalidArgumentError("TradeRecord", f"Amount {value!r} is not a number") from None
    if not amount.is_finite():
        raise EntityInvalidArgumentError("TradeRecord", f"Amount {value!r} is not a number")
    amount = amount.quantize(CENT)
    if amount <= 0:
        raise EntityInvalidArgumentError("TradeRecord", "Amount must be a positive number")
    return amount


def _checked_date(value: Optional[datetime]) -> datetime:
    if not isinstance(value, datetime):
        raise EntityInvalidArgumentError("TradeRecord", "Transaction date is required")
    if is_future(value):
        raise EntityInvalidArgumentError("TradeRecord", "Transaction date cannot be in the future")
    return normalize_utc(value)


def _checked_parties(giver_id: int, receiver_id: int) -> tuple[Pharmacy, Pharmacy]:
    if giver_id == receiver_id:
        raise EntityInvalidArgumentError("TradeRecord", "Giver and receiver must be different pharmacies")
    return load_pharmacy(giver_id), load_pharmacy(receiver_id)


def _is_party_owner(user: User, giver: Optional[Pharmacy], receiver: Optional[Pharmacy]) -> bool:
    return any(p is not None and p.is_owned_by(user.id) for p in (giver, receiver))


def create_trade_record(dto: TradeRecordInsert, recorder_user_id: int) -> TradeRecordReadOnly:
    def _op():
        amount = _checked_amount(dto.amount)
        transaction_date = _checked_date(dto.transaction_date)
        recorder = load_user(recorder_user_id)
        giver, receiver = _checked_parties(dto.giver_pharmacy_id, dto.receiver_pharmacy_id)

        if not (_is_party_owner(recorder, giver, receiver) or recorder.is_admin):
            raise EntityNotAuthorizedError(
                "User", "Only the giver owner, the receiver owner or an admin can create records"
            )

        record = TradeRecord(
            description=dto.description,
            amount=amount,
            transaction_date=transaction_date,
            deleted_by_giver=False,
            deleted_by_receiver=False,
        )
        with db.session.no_autoflush:
            giver.add_record_giver(record)
            receiver.add_record_receiver(record)
            recorder.add_record_recorder(record)
            record.last_modified_by = recorder

        records.insert(record)
        current_app.logger.info(
            "TradeRecord id=%s created by user id=%s (giver=%s receiver=%s)",
            record.id, recorder.id, giver.id, receiver.id,
        )
        return mapper.to_trade_record_dto(record)

    return run_in_transaction(_op, action="create trade record")


def update_trade_record(dto: TradeRecordUpdate, updater_user_id: int) -> TradeRecordReadOnly:
    def _op():
        record = _load_record(dto.id, for_update=True)
        updater = load_user(updater_user_id)

        if not (_is_party_owner(updater, record.giver, record.receiver) or updater.is_admin):
            raise EntityNotAuthorizedError(
                "User", "Only the giver owner, the receiver owner or an admin can update records"
            )

        amount = _checked_amount(dto.amount)
        transaction_date = _checked_date(dto.transaction_date)
        giver, receiver = _checked_parties(dto.giver_pharmacy_id, dto.receiver_pharmacy_id)

        with db.session.no_autoflush:
            if record.giver is not giver:
                if record.giver is not None:
                    record.giver.remove_record_giver(record)
                giver.add_record_giver(record)
            if record.receiver is not receiver:
                if record.receiver is not None:
                    record.receiver.remove_record_receiver(record)
                receiver.add_record_receiver(record)

            record.description = dto.description
            record.amount = amount
            record.transaction_date = transaction_date
            record.last_modified_by = updater

        records.update(record)
        current_app.logger.info("TradeRecord id=%s updated by user id=%s", record.id, updater.id)
        return mapper.to_trade_record_dto(record)

    return run_in_transaction(_op, action="update trade record")


def delete_trade_record(record_id: int, deleter_user_id: int) -> TradeRecordDeletion:
    """Record one side's consent; remove the row once both sides agree."""
    def _op():
        record = _load_record(record_id, for_update=True)
        deleter = load_user(deleter_user_id)

        giver, receiver = record.giver, record.receiver
        is_giver = giver is not None and giver.is_owned_by(deleter.id)
        is_receiver = receiver is not None and receiver.is_owned_by(deleter.id)
        if not (is_giver or is_receiver):
            raise EntityNotAuthorizedError("User", "Only the giver or the receiver owner can delete records")

        if is_giver or giver is None:
            record.deleted_by_giver = True
        if is_receiver or receiver is None:
            record.deleted_by_receiver = True

        snapshot = mapper.to_trade_record_dto(record)
        if not record.is_fully_deleted:
            records.update(record)
            current_app.logger.info(
                "TradeRecord id=%s marked deleted by user id=%s (giver=%s receiver=%s)",
                record.id, deleter.id, record.deleted_by_giver, record.deleted_by_receiver,
            )
            return TradeRecordDeletion(record=snapshot, removed=False)

        with db.session.no_autoflush:
            if giver is not None:
                giver.remove_record_giver(record)
            if receiver is not None:
                receiver.remove_record_receiver(record)
            if record.recorder is not None:
                record.recorder.remove_record_recorder(record)
        records.delete(record)
        current_app.logger.info("TradeRecord id=%s removed after consent of both sides", record_id)
        return TradeRecordDeletion(record=snapshot, removed=True)

    return run_in_transaction(_op, action="delete trade record")


def get_trade_record_by_id(record_id: int) -> TradeRecordReadOnly:
    return run_read_only(
        lambda: mapper.to_trade_record_dto(_load_record(record_id)),
        action="get trade record",
    )


def get_all_trade_records() -> list[TradeRecordReadOnly]:
    return run_read_only(
        lambda: [mapper.to_trade_record_dto(r) for r in records.get_all()],
        action="list trade records",
    )


def _checked_limit(limit: Optional[int]) -> int:
    if limit is None:
        return current_app.config.get("RECENT_TRADES_LIMIT", 5)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
        raise EntityInvalidArgumentError("TradeRecord", "limit must be a positive integer")
    return limit


def _newest_first(query):
    return query.order_by(TradeRecord.transaction_date.desc(), TradeRecord.id.desc())


def _between(pharmacy1_id: int, pharmacy2_id: int):
    return or_(
        and_(TradeRecord.giver_id == pharmacy1_id, TradeRecord.receiver_id == pharmacy2_id),
        and_(TradeRecord.giver_id == pharmacy2_id, TradeRecord.receiver_id == pharmacy1_id),
    )


def get_recent_trades_for_pharmacy(pharmacy_id: int, limit: Optional[int] = None) -> list[TradeRecordReadOnly]:
    """Newest trades where the pharmacy is either side."""
    def _op():
        pharmacy = load_pharmacy(pharmacy_id)
        query = records.query().filter(
            or_(TradeRecord.giver_id == pharmacy.id, TradeRecord.receiver_id == pharmacy.id)
        )
        rows = _newest_first(query).limit(_checked_limit(limit)).all()
        return [mapper.to_trade_record_dto(r) for r in rows]

    return run_read_only(_op, action="list recent trades")


def get_trades_between_pharmacies(
    pharmacy1_id: int,
    pharmacy2_id: int,
    start: datetime,
    end: datetime,
) -> list[TradeRecordReadOnly]:
    """Both directions, transaction date within [start, end], newest first."""
    def _op():
        load_pharmacy(pharmacy1_id)
        load_pharmacy(pharmacy2_id)
        window = {"from": normalize_utc(start), "to": normalize_utc(end)}
        given = records.get_by_criteria(
            {"giver.id": pharmacy1_id, "receiver.id": pharmacy2_id, "transaction_date": window}
        )
        received = records.get_by_criteria(
            {"giver.id": pharmacy2_id, "receiver.id": pharmacy1_id, "transaction_date": window}
        )
        rows = sorted(given + received, key=lambda r: (r.transaction_date, r.id), reverse=True)
        return [mapper.to_trade_record_dto(r) for r in rows]

    return run_read_only(_op, action="list trades between pharmacies")


def _sum_amount(giver_id: int, receiver_id: int) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(TradeRecord.amount), 0))
        .filter(TradeRecord.giver_id == giver_id, TradeRecord.receiver_id == receiver_id)
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(CENT)


def balance_between(pharmacy1_id: int, pharmacy2_id: int) -> Decimal:
    """Unchecked balance for use inside a running transaction."""
    return _sum_amount(pharmacy2_id, pharmacy1_id) - _sum_amount(pharmacy1_id, pharmacy2_id)


def count_between(pharmacy1_id: int, pharmacy2_id: int) -> int:
    return records.query().filter(_between(pharmacy1_id, pharmacy2_id)).count()


def recent_between(pharmacy1_id: int, pharmacy2_id: int, limit: int) -> list[TradeRecord]:
    query = records.query().filter(_between(pharmacy1_id, pharmacy2_id))
    return _newest_first(query).limit(limit).all()


def calculate_balance_between_pharmacies(pharmacy1_id: int, pharmacy2_id: int) -> Decimal:
    """Received minus given, from pharmacy1's point of view."""
    def _op():
        load_pharmacy(pharmacy1_id)
        load_pharmacy(pharmacy2_id)
        return balance_between(pharmacy1_id, pharmacy2_id)

    return run_read_only(_op, action="calculate balance")


def get_trade_count_between_pharmacies(pharmacy1_id: int, pharmacy2_id: int) -> int:
    def _op():
        load_pharmacy(pharmacy1_id)
        load_pharmacy(pharmacy2_id)
        return count_between(pharmacy1_id, pharmacy2_id)

    return run_read_only(_op, action="count trades between pharmacies")


def get_recent_trades_between_pharmacies(
    pharmacy1_id: int, pharmacy2_id: int, limit: Optional[int] = None
) -> list[TradeRecordReadOnly]:
    def _op():
        load_pharmacy(pharmacy1_id)
        load_pharmacy(pharmacy2_id)
        rows = recent_between(pharmacy1_id, pharmacy2_id, _checked_limit(limit))
        return [mapper.to_trade_record_dto(r) for r in rows]

    return run_read_only(_op, action="list recent trades between pharmacies")


def get_trade_records_by_criteria(criteria: Mapping[str, Any] | None) -> list[TradeRecordReadOnly]:
    return run_read_only(
        lambda: [mapper.to_trade_record_dto(r) for r in records.get_by_criteria(criteria)],
        action="filter trade records",
    )


def get_trade_records_by_criteria_paginated(
    criteria: Mapping[str, Any] | None, page: int, size: int
) -> PaginatedResult[TradeRecordReadOnly]:
    return run_read_only(
        lambda: records.get_by_criteria_paginated(criteria, page, size).map(mapper.to_trade_record_dto),
        action="page trade records",
    )


def get_trade_records_count_by_criteria(criteria: Mapping[str, Any] | None) -> int:
    return run_read_only(lambda: records.count_by_criteria(criteria), action="count trade records")
