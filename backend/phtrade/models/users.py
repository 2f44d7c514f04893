from __future__ import annotations

import enum

from ..extensions import db
from .base import EntityMixin


class RoleType(enum.Enum):
    REGULAR = "REGULAR"
    ADMIN = "ADMIN"


class User(EntityMixin, db.Model):
    """
    User accounts: pharmacy owners, contact creators and trade recorders.

    Username and email are globally unique.

    OWNERSHIP: pharmacies, contacts and records_recorded are the inverse
    sides of many-to-one references. Mutate them only through the paired
    add_*/remove_* methods so both sides always agree.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.Enum(RoleType, name="role_type"), nullable=False, default=RoleType.REGULAR)

    pharmacies = db.relationship("Pharmacy", back_populates="user", collection_class=set)
    contacts = db.relationship("PharmacyContact", back_populates="user", collection_class=set)
    records_recorded = db.relationship(
        "TradeRecord",
        back_populates="recorder",
        foreign_keys="TradeRecord.recorder_id",
        collection_class=set,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == RoleType.ADMIN

    def add_pharmacy(self, pharmacy) -> None:
        self.pharmacies.add(pharmacy)
        pharmacy.user = self

    def remove_pharmacy(self, pharmacy) -> None:
        self.pharmacies.discard(pharmacy)
        if pharmacy.user is self:
            pharmacy.user = None

    def add_contact(self, contact) -> None:
        self.contacts.add(contact)
        contact.user = self

    def remove_contact(self, contact) -> None:
        self.contacts.discard(contact)
        if contact.user is self:
            contact.user = None

    def add_record_recorder(self, record) -> None:
        self.records_recorded.add(record)
        record.recorder = self

    def remove_record_recorder(self, record) -> None:
        self.records_recorded.discard(record)
        if record.recorder is self:
            record.recorder = None

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"
