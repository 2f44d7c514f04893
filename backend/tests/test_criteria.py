"""
Criteria engine tests.

Verifies:
- Filter values map onto the right predicate kind
- Case-insensitive equality and LIKE matching against real rows
- Dot paths navigate many-to-one relationships
- Unknown or collection paths fail before any query runs
- Incomparable ranges are skipped, not rejected
- Pagination returns contiguous slices in primary key order
"""

from datetime import datetime
from decimal import Decimal

import pytest

from phtrade.errors import EntityInvalidArgumentError
from phtrade.models import Pharmacy, TradeRecord, User
from phtrade.services.criteria import (
    Between,
    Equals,
    FieldPath,
    In,
    IsNull,
    Like,
    parse_criteria,
    parse_criterion,
    resolve_path,
)
from phtrade.services.repository import Repository


PATH = FieldPath(("name",))


# =============================================================================
# PARSING
# =============================================================================


class TestParseCriterion:
    """Loose filter values become typed predicates."""

    def test_plain_string_is_case_insensitive_equality(self):
        assert parse_criterion(PATH, "Alpha") == Equals(PATH, "Alpha", ignore_case=True)

    def test_string_with_wildcard_is_like(self):
        assert parse_criterion(PATH, "%lph%") == Like(PATH, "%lph%")

    def test_non_string_scalar_is_plain_equality(self):
        assert parse_criterion(PATH, 42) == Equals(PATH, 42)

    def test_sequence_is_membership(self):
        assert parse_criterion(PATH, [1, 2, 3]) == In(PATH, (1, 2, 3))

    def test_null_sentinels(self):
        assert parse_criterion(PATH, "isNull") == IsNull(PATH)
        assert parse_criterion(PATH, "isNotNull") == IsNull(PATH, negated=True)

    def test_range_with_comparable_bounds(self):
        lower, upper = datetime(2024, 1, 1), datetime(2024, 2, 1)
        assert parse_criterion(PATH, {"from": lower, "to": upper}) == Between(PATH, lower, upper)

    @pytest.mark.parametrize(
        "value",
        [
            {"from": 1, "to": "z"},
            {"from": None, "to": 5},
            {"from": 1},
            {"to": 1},
            {"from": {"x": 1}, "to": {"x": 2}},
        ],
    )
    def test_range_with_unusable_bounds_is_skipped(self, value):
        assert parse_criterion(PATH, value) is None

    def test_parse_criteria_drops_skipped_entries(self, app):
        predicates = parse_criteria({"name": "x", "id": {"from": 1, "to": "z"}})
        assert predicates == [Equals(PATH, "x", ignore_case=True)]

    def test_empty_and_missing_criteria(self, app):
        assert parse_criteria({}) == []
        assert parse_criteria(None) == []


class TestFieldPath:

    def test_splits_on_dots(self):
        assert FieldPath.parse("giver.user.username").segments == ("giver", "user", "username")

    @pytest.mark.parametrize("expression", ["", "   ", "a..b", ".a", "a.", None, 5])
    def test_malformed_paths_rejected(self, expression):
        with pytest.raises(EntityInvalidArgumentError):
            FieldPath.parse(expression)


class TestResolvePath:
    """Resolution walks the mapper and fails closed."""

    def test_column_on_root(self, app):
        assert resolve_path(User, "username") is not None

    def test_through_many_to_one(self, app):
        assert resolve_path(TradeRecord, "giver.user.username") is not None

    @pytest.mark.parametrize(
        "model,path",
        [
            (User, "nope"),
            (Pharmacy, "user.nope"),
            (Pharmacy, "name.length"),
            (Pharmacy, "records_given.amount"),
            (User, "pharmacies.name"),
        ],
    )
    def test_unresolvable_paths(self, app, model, path):
        with pytest.raises(EntityInvalidArgumentError):
            resolve_path(model, path)


# =============================================================================
# QUERYING
# =============================================================================


@pytest.fixture
def ledger(alice, bob, pharmacy_a, pharmacy_b, make_pharmacy, make_record):
    """Three pharmacies, four records spread over time."""
    pharmacy_c = make_pharmacy("Corner Drugstore", alice.id)
    records = [
        make_record(pharmacy_a.id, pharmacy_b.id, alice.id, amount="10.00", days_ago=30, description="Insulin pens"),
        make_record(pharmacy_b.id, pharmacy_a.id, bob.id, amount="20.00", days_ago=20, description="Gauze"),
        make_record(pharmacy_c.id, pharmacy_b.id, alice.id, amount="30.00", days_ago=10, description="insulin vials"),
        make_record(pharmacy_b.id, pharmacy_c.id, bob.id, amount="40.00", days_ago=1, description="Masks"),
    ]
    return {"c": pharmacy_c, "records": records}


class TestCriteriaQueries:

    def test_string_equality_ignores_case(self, alice, bob):
        users = Repository(User)
        found = users.get_by_criteria({"username": "ALICE"})
        assert [u.id for u in found] == [alice.id]

    def test_like_pattern_ignores_case(self, ledger):
        records = Repository(TradeRecord)
        found = records.get_by_criteria({"description": "%INSULIN%"})
        assert sorted(r.description for r in found) == ["Insulin pens", "insulin vials"]

    def test_membership(self, ledger):
        ids = [r.id for r in ledger["records"][:2]]
        found = Repository(TradeRecord).get_by_criteria({"id": ids})
        assert [r.id for r in found] == ids

    def test_range_is_inclusive(self, ledger):
        first, second = ledger["records"][0], ledger["records"][1]
        found = Repository(TradeRecord).get_by_criteria(
            {"transaction_date": {"from": first.transaction_date, "to": second.transaction_date}}
        )
        assert [r.id for r in found] == [first.id, second.id]

    def test_numeric_equality(self, ledger):
        found = Repository(TradeRecord).get_by_criteria({"amount": Decimal("30.00")})
        assert [r.description for r in found] == ["insulin vials"]

    def test_relationship_path(self, ledger, bob):
        found = Repository(TradeRecord).get_by_criteria({"giver.user.username": "Bob"})
        assert sorted(r.description for r in found) == ["Gauze", "Masks"]

    def test_two_paths_through_same_relationship(self, ledger, pharmacy_b):
        found = Repository(TradeRecord).get_by_criteria(
            {"giver.id": pharmacy_b.id, "giver.name": "%b"}
        )
        assert len(found) == 2

    def test_predicates_are_anded(self, ledger, pharmacy_b):
        found = Repository(TradeRecord).get_by_criteria(
            {"giver.id": pharmacy_b.id, "description": "%mask%"}
        )
        assert [r.description for r in found] == ["Masks"]

    def test_null_checks(self, ledger, admin):
        pharmacies = Repository(Pharmacy)
        assert pharmacies.count_by_criteria({"user": "isNull"}) == 0
        assert pharmacies.count_by_criteria({"user.id": "isNotNull"}) == 3

    def test_incomparable_range_matches_everything(self, ledger):
        records = Repository(TradeRecord)
        assert records.count_by_criteria({"transaction_date": {"from": 1, "to": "later"}}) == 4

    def test_skipped_range_still_needs_a_real_path(self, ledger):
        with pytest.raises(EntityInvalidArgumentError):
            Repository(TradeRecord).get_by_criteria({"bogus": {"from": 1, "to": "later"}})

    def test_empty_criteria_match_all(self, ledger):
        records = Repository(TradeRecord)
        assert records.count_by_criteria({}) == 4
        assert records.count_by_criteria(None) == 4
        assert records.exists_by_criteria({"description": "nothing like this"}) is False

    def test_find_by_field_is_exact(self, alice):
        users = Repository(User)
        assert users.find_by_field("username", "alice").id == alice.id
        assert users.find_by_field("username", "ALICE") is None


class TestPagination:

    def test_pages_are_contiguous_slices(self, make_user):
        created = [make_user(f"user{i:02d}") for i in range(7)]
        users = Repository(User)
        everything = [u.id for u in users.get_by_criteria({"username": "user%"})]
        assert everything == [u.id for u in created]

        collected = []
        for page in range(3):
            result = users.get_by_criteria_paginated({"username": "user%"}, page, 3)
            assert len(result.data) <= 3
            assert [u.id for u in result.data] == everything[page * 3:page * 3 + 3]
            collected.extend(u.id for u in result.data)
        assert collected == everything

    def test_page_metadata(self, make_user):
        for i in range(5):
            make_user(f"member{i}")
        result = Repository(User).get_by_criteria_paginated(None, 1, 2)
        assert (result.current_page, result.page_size, result.total_items, result.total_pages) == (1, 2, 5, 3)

    def test_page_past_the_end_is_empty(self, alice):
        result = Repository(User).get_by_criteria_paginated({}, 5, 10)
        assert result.data == []
        assert result.total_items == 1

    @pytest.mark.parametrize("page,size", [(-1, 10), (0, 0), (0, -5), (True, 10), ("1", 10)])
    def test_invalid_page_requests(self, db_session, page, size):
        with pytest.raises(EntityInvalidArgumentError):
            Repository(User).get_by_criteria_paginated({}, page, size)
