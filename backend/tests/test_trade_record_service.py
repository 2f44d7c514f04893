"""
Trade record lifecycle tests.

Verifies:
- Create/update authorization (giver owner, receiver owner, admin)
- Input rules: positive amount, no future dates, distinct parties
- Two-phase deletion state table
- Balances, counts and recent-trade listings between pharmacies
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from phtrade.errors import (
    EntityInvalidArgumentError,
    EntityNotAuthorizedError,
    EntityNotFoundError,
)
from phtrade.extensions import db
from phtrade.models import TradeRecord
from phtrade.services import pharmacy_service, trade_record_service
from phtrade.services.dtos import TradeRecordInsert, TradeRecordUpdate
from phtrade.time_utils import utcnow


def _insert(giver_id, receiver_id, amount="50.00", days_ago=1):
    return TradeRecordInsert(
        description="Paracetamol",
        amount=Decimal(amount),
        transaction_date=utcnow() - timedelta(days=days_ago),
        giver_pharmacy_id=giver_id,
        receiver_pharmacy_id=receiver_id,
    )


def _update_from(record, **changes):
    values = dict(
        id=record.id,
        description=record.description,
        amount=record.amount,
        transaction_date=record.transaction_date,
        giver_pharmacy_id=record.giver_id,
        receiver_pharmacy_id=record.receiver_id,
    )
    values.update(changes)
    return TradeRecordUpdate(**values)


def _record_count():
    return db.session.query(TradeRecord).count()


# =============================================================================
# CREATE
# =============================================================================


class TestCreateTradeRecord:

    def test_giver_owner_creates(self, alice, pharmacy_a, pharmacy_b):
        record = trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id), alice.id)

        assert record.giver_id == pharmacy_a.id
        assert record.receiver_id == pharmacy_b.id
        assert record.recorder_username == "alice"
        assert record.last_modified_by_username == "alice"
        assert (record.deleted_by_giver, record.deleted_by_receiver) == (False, False)
        assert record.amount == Decimal("50.00")

    def test_receiver_owner_creates(self, bob, pharmacy_a, pharmacy_b):
        record = trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id), bob.id)
        assert record.recorder_username == "bob"

    def test_admin_creates_for_others(self, admin, pharmacy_a, pharmacy_b):
        record = trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id), admin.id)
        assert record.recorder_username == "admin"

    def test_stranger_rejected_and_nothing_persisted(self, mallory, pharmacy_a, pharmacy_b):
        before = _record_count()
        with pytest.raises(EntityNotAuthorizedError):
            trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id), mallory.id)
        assert _record_count() == before

    @pytest.mark.parametrize("amount", ["0", "-5.00", "0.001"])
    def test_non_positive_amount_rejected(self, alice, pharmacy_a, pharmacy_b, amount):
        with pytest.raises(EntityInvalidArgumentError):
            trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id, amount=amount), alice.id)

    def test_future_date_rejected(self, alice, pharmacy_a, pharmacy_b):
        with pytest.raises(EntityInvalidArgumentError):
            trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id, days_ago=-2), alice.id)

    def test_same_pharmacy_on_both_sides_rejected(self, alice, pharmacy_a):
        with pytest.raises(EntityInvalidArgumentError):
            trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_a.id), alice.id)

    def test_unknown_pharmacy(self, alice, pharmacy_a):
        with pytest.raises(EntityNotFoundError) as exc_info:
            trade_record_service.create_trade_record(_insert(pharmacy_a.id, 999_999), alice.id)
        assert exc_info.value.code == "PharmacyNotFound"

    def test_unknown_recorder(self, pharmacy_a, pharmacy_b):
        with pytest.raises(EntityNotFoundError):
            trade_record_service.create_trade_record(_insert(pharmacy_a.id, pharmacy_b.id), 999_999)


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdateTradeRecord:

    def test_receiver_owner_updates_and_becomes_last_modifier(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)

        updated = trade_record_service.update_trade_record(
            _update_from(record, description="Paracetamol 500mg", amount=Decimal("75.50")), bob.id
        )

        assert updated.description == "Paracetamol 500mg"
        assert updated.amount == Decimal("75.50")
        assert updated.last_modified_by_username == "bob"
        assert updated.recorder_username == "alice"

    def test_stranger_cannot_update(self, alice, mallory, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        with pytest.raises(EntityNotAuthorizedError):
            trade_record_service.update_trade_record(_update_from(record, description="hijacked"), mallory.id)
        assert trade_record_service.get_trade_record_by_id(record.id).description == record.description

    def test_admin_can_update(self, alice, admin, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        updated = trade_record_service.update_trade_record(_update_from(record, description="fixed"), admin.id)
        assert updated.last_modified_by_username == "admin"

    def test_changing_parties_relinks_back_references(
        self, alice, pharmacy_a, pharmacy_b, make_pharmacy, make_record
    ):
        pharmacy_c = make_pharmacy("Pharmacy C", alice.id)
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)

        trade_record_service.update_trade_record(
            _update_from(record, receiver_pharmacy_id=pharmacy_c.id), alice.id
        )

        assert trade_record_service.get_trade_count_between_pharmacies(pharmacy_a.id, pharmacy_b.id) == 0
        assert trade_record_service.get_trade_count_between_pharmacies(pharmacy_a.id, pharmacy_c.id) == 1
        received_by_b = [r.id for r in trade_record_service.get_recent_trades_for_pharmacy(pharmacy_b.id)]
        assert received_by_b == []

    def test_update_keeps_deletion_flags(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        trade_record_service.delete_trade_record(record.id, alice.id)

        updated = trade_record_service.update_trade_record(_update_from(record, description="again"), bob.id)
        assert (updated.deleted_by_giver, updated.deleted_by_receiver) == (True, False)

    def test_missing_record(self, alice, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        with pytest.raises(EntityNotFoundError):
            trade_record_service.update_trade_record(_update_from(record, id=999_999), alice.id)


# =============================================================================
# TWO-PHASE DELETE
# =============================================================================


class TestTwoPhaseDelete:

    def test_giver_then_receiver_removes_record(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)

        first = trade_record_service.delete_trade_record(record.id, alice.id)
        assert first.removed is False
        assert (first.record.deleted_by_giver, first.record.deleted_by_receiver) == (True, False)

        second = trade_record_service.delete_trade_record(record.id, bob.id)
        assert second.removed is True
        with pytest.raises(EntityNotFoundError):
            trade_record_service.get_trade_record_by_id(record.id)

    def test_receiver_then_giver_removes_record(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)

        first = trade_record_service.delete_trade_record(record.id, bob.id)
        assert (first.record.deleted_by_giver, first.record.deleted_by_receiver) == (False, True)

        assert trade_record_service.delete_trade_record(record.id, alice.id).removed is True

    def test_same_side_twice_is_idempotent(self, alice, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)

        trade_record_service.delete_trade_record(record.id, alice.id)
        again = trade_record_service.delete_trade_record(record.id, alice.id)

        assert again.removed is False
        stored = trade_record_service.get_trade_record_by_id(record.id)
        assert (stored.deleted_by_giver, stored.deleted_by_receiver) == (True, False)

    def test_admin_has_no_bypass(self, alice, admin, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        with pytest.raises(EntityNotAuthorizedError):
            trade_record_service.delete_trade_record(record.id, admin.id)
        stored = trade_record_service.get_trade_record_by_id(record.id)
        assert (stored.deleted_by_giver, stored.deleted_by_receiver) == (False, False)

    def test_stranger_cannot_delete(self, alice, mallory, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        with pytest.raises(EntityNotAuthorizedError):
            trade_record_service.delete_trade_record(record.id, mallory.id)

    def test_owner_of_both_sides_removes_in_one_call(self, alice, pharmacy_a, make_pharmacy, make_record):
        second = make_pharmacy("Pharmacy A2", alice.id)
        record = make_record(pharmacy_a.id, second.id, alice.id)

        assert trade_record_service.delete_trade_record(record.id, alice.id).removed is True

    def test_orphaned_side_counts_as_consent(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id)
        pharmacy_service.delete_pharmacy(pharmacy_b.id, bob.id)

        assert trade_record_service.delete_trade_record(record.id, alice.id).removed is True

    def test_missing_record(self, alice):
        with pytest.raises(EntityNotFoundError):
            trade_record_service.delete_trade_record(999_999, alice.id)


# =============================================================================
# BALANCES AND LISTINGS
# =============================================================================


class TestBalances:

    def test_alice_bob_scenario(self, alice, bob, pharmacy_a, pharmacy_b):
        record = trade_record_service.create_trade_record(
            _insert(pharmacy_a.id, pharmacy_b.id, amount="100"), alice.id
        )

        assert trade_record_service.calculate_balance_between_pharmacies(pharmacy_a.id, pharmacy_b.id) == Decimal("-100.00")
        assert trade_record_service.calculate_balance_between_pharmacies(pharmacy_b.id, pharmacy_a.id) == Decimal("100.00")

        trade_record_service.delete_trade_record(record.id, alice.id)
        stored = trade_record_service.get_trade_record_by_id(record.id)
        assert stored.deleted_by_giver is True

        before = _record_count()
        trade_record_service.delete_trade_record(record.id, bob.id)
        assert _record_count() == before - 1

    def test_balance_nets_both_directions(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, amount="100.00")
        make_record(pharmacy_b.id, pharmacy_a.id, bob.id, amount="30.25")

        assert trade_record_service.calculate_balance_between_pharmacies(pharmacy_a.id, pharmacy_b.id) == Decimal("-69.75")
        assert trade_record_service.get_trade_count_between_pharmacies(pharmacy_a.id, pharmacy_b.id) == 2

    def test_one_sided_delete_still_counts(self, alice, pharmacy_a, pharmacy_b, make_record):
        record = make_record(pharmacy_a.id, pharmacy_b.id, alice.id, amount="10.00")
        trade_record_service.delete_trade_record(record.id, alice.id)

        assert trade_record_service.calculate_balance_between_pharmacies(pharmacy_a.id, pharmacy_b.id) == Decimal("-10.00")

    def test_unknown_pharmacy(self, pharmacy_a):
        with pytest.raises(EntityNotFoundError):
            trade_record_service.calculate_balance_between_pharmacies(pharmacy_a.id, 999_999)


class TestListings:

    def test_recent_trades_newest_first_and_limited(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        for days_ago in (9, 3, 6, 1):
            make_record(pharmacy_a.id, pharmacy_b.id, alice.id, days_ago=days_ago)
        make_record(pharmacy_b.id, pharmacy_a.id, bob.id, days_ago=2)

        recent = trade_record_service.get_recent_trades_for_pharmacy(pharmacy_a.id, 3)

        assert len(recent) == 3
        dates = [r.transaction_date for r in recent]
        assert dates == sorted(dates, reverse=True)
        assert recent[1].giver_id == pharmacy_b.id

    def test_recent_trades_between_uses_configured_default(self, alice, pharmacy_a, pharmacy_b, make_record):
        for days_ago in range(1, 8):
            make_record(pharmacy_a.id, pharmacy_b.id, alice.id, days_ago=days_ago)

        recent = trade_record_service.get_recent_trades_between_pharmacies(pharmacy_a.id, pharmacy_b.id)
        assert len(recent) == 5

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, pharmacy_a, limit):
        with pytest.raises(EntityInvalidArgumentError):
            trade_record_service.get_recent_trades_for_pharmacy(pharmacy_a.id, limit)

    def test_trades_between_in_window(self, alice, bob, pharmacy_a, pharmacy_b, make_pharmacy, make_record):
        inside_given = make_record(pharmacy_a.id, pharmacy_b.id, alice.id, days_ago=5)
        inside_received = make_record(pharmacy_b.id, pharmacy_a.id, bob.id, days_ago=3)
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, days_ago=20)
        other = make_pharmacy("Elsewhere", bob.id)
        make_record(pharmacy_a.id, other.id, alice.id, days_ago=4)

        now = utcnow()
        found = trade_record_service.get_trades_between_pharmacies(
            pharmacy_a.id, pharmacy_b.id, now - timedelta(days=10), now
        )

        assert [r.id for r in found] == [inside_received.id, inside_given.id]

    def test_criteria_listing_and_count(self, alice, bob, pharmacy_a, pharmacy_b, make_record):
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, description="Vitamin C")
        make_record(pharmacy_b.id, pharmacy_a.id, bob.id, description="Vitamin D")
        make_record(pharmacy_b.id, pharmacy_a.id, bob.id, description="Syringes")

        assert trade_record_service.get_trade_records_count_by_criteria({"description": "vitamin%"}) == 2
        page = trade_record_service.get_trade_records_by_criteria_paginated({"giver.name": "pharmacy b"}, 0, 1)
        assert page.total_items == 2
        assert page.total_pages == 2
        assert len(page.data) == 1
        assert len(trade_record_service.get_all_trade_records()) == 3

    def test_criteria_date_range_accepts_iso_text(self, alice, pharmacy_a, pharmacy_b, make_record):
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, days_ago=2, description="Recent")
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, days_ago=60, description="Old")
        now = utcnow()
        window = {
            "from": (now - timedelta(days=7)).isoformat(),
            "to": now.isoformat() + "Z",
        }

        found = trade_record_service.get_trade_records_by_criteria({"transaction_date": window})

        assert [r.description for r in found] == ["Recent"]

    @pytest.mark.parametrize("window", [
        {"from": "yesterday", "to": "today"},
        {"from": "2024-01-01", "to": "  "},
    ])
    def test_criteria_date_range_rejects_unparseable_text(self, db_session, window):
        with pytest.raises(EntityInvalidArgumentError) as exc_info:
            trade_record_service.get_trade_records_by_criteria({"transaction_date": window})
        assert exc_info.value.code == "CriteriaInvalidArgument"
