# Overview: Flat transfer objects crossing the service boundary.

"""
Insert/update DTOs come in from the HTTP layer already validated.
Read-only DTOs go out; they never hold ORM entities, so nothing returned by
a service can lazy-load or leak relationship cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Generic, Optional, TypeVar

from phtrade.time_utils import to_utc_z

T = TypeVar("T")
U = TypeVar("U")


def _amount(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


# Users

@dataclass
class UserInsert:
    username: str
    password: str
    email: str
    role: str = "REGULAR"


@dataclass
class UserUpdate:
    id: int
    username: str
    email: str
    password: Optional[str] = None


@dataclass
class UserFilters:
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


@dataclass(frozen=True)
class UserReadOnly:
    id: int
    username: str
    email: str
    role: str

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email, "role": self.role}


# Pharmacies

@dataclass
class PharmacyInsert:
    name: str


@dataclass
class PharmacyUpdate:
    id: int
    name: str


@dataclass
class PharmacyFilters:
    name: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class PharmacyReadOnly:
    id: int
    name: str
    owner_id: Optional[int]
    owner_username: Optional[str]
    created_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "owner_username": self.owner_username,
            "created_at": to_utc_z(self.created_at),
        }


# Contacts

@dataclass
class ContactInsert:
    pharmacy_id: int
    contact_name: str


@dataclass
class ContactUpdate:
    id: int
    contact_name: str


@dataclass
class ContactFilters:
    contact_name: Optional[str] = None
    pharmacy_name: Optional[str] = None
    user_id: Optional[int] = None


@dataclass(frozen=True)
class ContactReadOnly:
    id: int
    user_id: int
    username: str
    pharmacy_id: int
    pharmacy_name: str
    contact_name: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "pharmacy_id": self.pharmacy_id,
            "pharmacy_name": self.pharmacy_name,
            "contact_name": self.contact_name,
        }


# Trade records

@dataclass
class TradeRecordInsert:
    description: str
    amount: Decimal
    transaction_date: datetime
    giver_pharmacy_id: int
    receiver_pharmacy_id: int


@dataclass
class TradeRecordUpdate:
    id: int
    description: str
    amount: Decimal
    transaction_date: datetime
    giver_pharmacy_id: int
    receiver_pharmacy_id: int


@dataclass
class TradeRecordFilters:
    description: Optional[str] = None
    giver_name: Optional[str] = None
    receiver_name: Optional[str] = None
    recorder_username: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


@dataclass(frozen=True)
class TradeRecordReadOnly:
    id: int
    description: str
    amount: Decimal
    transaction_date: datetime
    giver_id: Optional[int]
    giver_name: Optional[str]
    receiver_id: Optional[int]
    receiver_name: Optional[str]
    recorder_username: Optional[str]
    last_modified_by_username: Optional[str]
    deleted_by_giver: bool
    deleted_by_receiver: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": _amount(self.amount),
            "transaction_date": to_utc_z(self.transaction_date),
            "giver_id": self.giver_id,
            "giver_name": self.giver_name,
            "receiver_id": self.receiver_id,
            "receiver_name": self.receiver_name,
            "recorder_username": self.recorder_username,
            "last_modified_by_username": self.last_modified_by_username,
            "deleted_by_giver": self.deleted_by_giver,
            "deleted_by_receiver": self.deleted_by_receiver,
        }


@dataclass(frozen=True)
class TradeRecordDeletion:
    """Outcome of one side's delete: the record as left, and whether it is gone."""
    record: TradeRecordReadOnly
    removed: bool

    def to_dict(self) -> dict:
        return {"record": self.record.to_dict(), "removed": self.removed}


# Balances

@dataclass(frozen=True)
class BalanceReadOnly:
    """
    A pharmacy's standing with one counterpart.

    amount > 0: the counterpart has given more than it received.
    """
    pharmacy_id: int
    pharmacy_name: str
    contact_name: Optional[str]
    amount: Decimal
    trade_count: int
    recent_trades: list[TradeRecordReadOnly] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "pharmacy_id": self.pharmacy_id,
            "pharmacy_name": self.pharmacy_name,
            "contact_name": self.contact_name,
            "amount": _amount(self.amount),
            "trade_count": self.trade_count,
            "recent_trades": [trade.to_dict() for trade in self.recent_trades],
        }


# Pagination

@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    data: list[T]
    current_page: int
    page_size: int
    total_pages: int
    total_items: int

    def map(self, fn: Callable[[T], U]) -> "PaginatedResult[U]":
        return replace(self, data=[fn(item) for item in self.data])

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() for item in self.data],
            "current_page": self.current_page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "total_items": self.total_items,
        }
