from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from phtrade.errors import EntityInvalidArgumentError
from phtrade.time_utils import parse_iso_datetime
from phtrade.services.dtos import (
    ContactFilters,
    ContactInsert,
    ContactUpdate,
    PharmacyFilters,
    PharmacyInsert,
    PharmacyUpdate,
    TradeRecordFilters,
    TradeRecordInsert,
    TradeRecordUpdate,
    UserFilters,
    UserInsert,
    UserUpdate,
)


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USERNAME_LENGTH = (4, 55)
PASSWORD_LENGTH = (4, 30)
NAME_MAX_LENGTH = 55
DESCRIPTION_LENGTH = (2, 255)


class _Errors:
    """Collects every field problem so the client sees them all at once."""

    def __init__(self, entity: str):
        self.entity = entity
        self.messages: list[str] = []

    def add(self, message: str) -> None:
        self.messages.append(message)

    def raise_if_any(self) -> None:
        if self.messages:
            raise EntityInvalidArgumentError(self.entity, "; ".join(self.messages))


def _payload(data: Any, entity: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise EntityInvalidArgumentError(entity, "Request body must be a JSON object")
    return data


def _text(
    data: Mapping[str, Any],
    key: str,
    errors: _Errors,
    *,
    min_len: int = 1,
    max_len: Optional[int] = None,
    required: bool = True,
) -> Optional[str]:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(f"{key} is required")
        return None
    if not isinstance(value, str):
        errors.add(f"{key} must be a string")
        return None
    value = value.strip()
    if len(value) < min_len or (max_len is not None and len(value) > max_len):
        if max_len is None:
            errors.add(f"{key} must be at least {min_len} characters")
        elif min_len > 1:
            errors.add(f"{key} must be between {min_len} and {max_len} characters")
        else:
            errors.add(f"{key} must be at most {max_len} characters")
        return None
    return value


def _int(data: Mapping[str, Any], key: str, errors: _Errors) -> Optional[int]:
    value = data.get(key)
    if value is None or value == "":
        errors.add(f"{key} is required")
        return None
    if isinstance(value, bool):
        errors.add(f"{key} must be an integer")
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    errors.add(f"{key} must be an integer")
    return None


def _amount(data: Mapping[str, Any], key: str, errors: _Errors) -> Optional[Decimal]:
    value = data.get(key)
    if value is None or value == "" or isinstance(value, bool):
        errors.add(f"{key} is required")
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        errors.add(f"{key} must be a number")
        return None
    if not amount.is_finite() or amount <= 0:
        errors.add(f"{key} must be a positive number")
        return None
    if len(amount.as_tuple().digits) > 10:
        errors.add(f"{key} must have at most 10 digits")
        return None
    return amount


def _datetime(data: Mapping[str, Any], key: str, errors: _Errors) -> Optional[datetime]:
    value = data.get(key)
    if value is None or value == "":
        errors.add(f"{key} is required")
        return None
    if not isinstance(value, str):
        errors.add(f"{key} must be an ISO-8601 datetime")
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        errors.add(f"{key} must be an ISO-8601 datetime")
        return None


def _password(data: Mapping[str, Any], errors: _Errors, *, required: bool) -> Optional[str]:
    password = _text(data, "password", errors, min_len=PASSWORD_LENGTH[0], max_len=PASSWORD_LENGTH[1], required=required)
    if password is not None and data.get("confirm_password") != data.get("password"):
        errors.add("confirm_password does not match password")
    return password


def _email(data: Mapping[str, Any], errors: _Errors) -> Optional[str]:
    email = _text(data, "email", errors, max_len=255)
    if email is not None and not EMAIL_RE.match(email):
        errors.add("email is not a valid address")
    return email


# Users

def parse_user_insert(data: Any) -> UserInsert:
    """Self-registration payload; the role is always REGULAR."""
    data = _payload(data, "User")
    errors = _Errors("User")
    username = _text(data, "username", errors, min_len=USERNAME_LENGTH[0], max_len=USERNAME_LENGTH[1])
    password = _password(data, errors, required=True)
    email = _email(data, errors)
    errors.raise_if_any()
    return UserInsert(username=username, password=password, email=email)


def parse_user_update(data: Any, user_id: int) -> UserUpdate:
    data = _payload(data, "User")
    errors = _Errors("User")
    username = _text(data, "username", errors, min_len=USERNAME_LENGTH[0], max_len=USERNAME_LENGTH[1])
    password = _password(data, errors, required=False)
    email = _email(data, errors)
    errors.raise_if_any()
    return UserUpdate(id=user_id, username=username, email=email, password=password)


# Pharmacies

def parse_pharmacy_insert(data: Any) -> PharmacyInsert:
    data = _payload(data, "Pharmacy")
    errors = _Errors("Pharmacy")
    name = _text(data, "name", errors, max_len=NAME_MAX_LENGTH)
    errors.raise_if_any()
    return PharmacyInsert(name=name)


def parse_pharmacy_update(data: Any, pharmacy_id: int) -> PharmacyUpdate:
    return PharmacyUpdate(id=pharmacy_id, name=parse_pharmacy_insert(data).name)


# Contacts

def parse_contact_insert(data: Any) -> ContactInsert:
    data = _payload(data, "PharmacyContact")
    errors = _Errors("PharmacyContact")
    pharmacy_id = _int(data, "pharmacy_id", errors)
    contact_name = _text(data, "contact_name", errors, max_len=NAME_MAX_LENGTH)
    errors.raise_if_any()
    return ContactInsert(pharmacy_id=pharmacy_id, contact_name=contact_name)


def parse_contact_update(data: Any, contact_id: int) -> ContactUpdate:
    data = _payload(data, "PharmacyContact")
    errors = _Errors("PharmacyContact")
    contact_name = _text(data, "contact_name", errors, max_len=NAME_MAX_LENGTH)
    errors.raise_if_any()
    return ContactUpdate(id=contact_id, contact_name=contact_name)


# Trade records

def _trade_record_fields(data: Any) -> dict:
    data = _payload(data, "TradeRecord")
    errors = _Errors("TradeRecord")
    fields = {
        "description": _text(
            data, "description", errors, min_len=DESCRIPTION_LENGTH[0], max_len=DESCRIPTION_LENGTH[1]
        ),
        "amount": _amount(data, "amount", errors),
        "transaction_date": _datetime(data, "transaction_date", errors),
        "giver_pharmacy_id": _int(data, "giver_pharmacy_id", errors),
        "receiver_pharmacy_id": _int(data, "receiver_pharmacy_id", errors),
    }
    errors.raise_if_any()
    return fields


def parse_trade_record_insert(data: Any) -> TradeRecordInsert:
    return TradeRecordInsert(**_trade_record_fields(data))


def parse_trade_record_update(data: Any, record_id: int) -> TradeRecordUpdate:
    return TradeRecordUpdate(id=record_id, **_trade_record_fields(data))


# Query strings

def parse_page_args(args: Mapping[str, Any], default_size: int) -> tuple[int, int]:
    """page / size from a query string; range checks happen in the repository."""
    errors = _Errors("Pagination")
    page = _int({"page": args.get("page", 0)}, "page", errors)
    size = _int({"size": args.get("size", default_size)}, "size", errors)
    errors.raise_if_any()
    return page, size


def _optional_datetime(args: Mapping[str, Any], key: str, errors: _Errors) -> Optional[datetime]:
    if not args.get(key):
        return None
    return _datetime(args, key, errors)


def parse_user_filters(args: Mapping[str, Any]) -> UserFilters:
    return UserFilters(username=args.get("username"), email=args.get("email"), role=args.get("role"))


def parse_pharmacy_filters(args: Mapping[str, Any]) -> PharmacyFilters:
    return PharmacyFilters(name=args.get("name"), username=args.get("username"))


def parse_contact_filters(args: Mapping[str, Any], user_id: Optional[int]) -> ContactFilters:
    return ContactFilters(
        contact_name=args.get("contact_name"),
        pharmacy_name=args.get("pharmacy_name"),
        user_id=user_id,
    )


def parse_trade_record_filters(args: Mapping[str, Any]) -> TradeRecordFilters:
    errors = _Errors("TradeRecord")
    filters = TradeRecordFilters(
        description=args.get("description"),
        giver_name=args.get("giver_name"),
        receiver_name=args.get("receiver_name"),
        recorder_username=args.get("recorder_username"),
        date_from=_optional_datetime(args, "date_from", errors),
        date_to=_optional_datetime(args, "date_to", errors),
    )
    if (filters.date_from is None) != (filters.date_to is None) and not errors.messages:
        errors.add("date_from and date_to must be given together")
    errors.raise_if_any()
    return filters
