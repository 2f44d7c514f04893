from __future__ import annotations

from ..extensions import db
from .base import EntityMixin


class Pharmacy(EntityMixin, db.Model):
    """
    A pharmacy taking part in trades.

    Name is globally unique. The owning user is optional at the database
    level so that deleting a user leaves their pharmacies in place.
    """
    __tablename__ = "pharmacies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    user = db.relationship("User", back_populates="pharmacies")
    records_given = db.relationship(
        "TradeRecord",
        back_populates="giver",
        foreign_keys="TradeRecord.giver_id",
        collection_class=set,
    )
    records_received = db.relationship(
        "TradeRecord",
        back_populates="receiver",
        foreign_keys="TradeRecord.receiver_id",
        collection_class=set,
    )
    contact_references = db.relationship("PharmacyContact", back_populates="pharmacy", collection_class=set)

    def add_record_giver(self, record) -> None:
        self.records_given.add(record)
        record.giver = self

    def remove_record_giver(self, record) -> None:
        self.records_given.discard(record)
        if record.giver is self:
            record.giver = None

    def add_record_receiver(self, record) -> None:
        self.records_received.add(record)
        record.receiver = self

    def remove_record_receiver(self, record) -> None:
        self.records_received.discard(record)
        if record.receiver is self:
            record.receiver = None

    def add_contact_reference(self, contact) -> None:
        self.contact_references.add(contact)
        contact.pharmacy = self

    def remove_contact_reference(self, contact) -> None:
        self.contact_references.discard(contact)
        if contact.pharmacy is self:
            contact.pharmacy = None

    def is_owned_by(self, user_id: int) -> bool:
        return self.user is not None and self.user.id == user_id

    def __repr__(self) -> str:
        return f"<Pharmacy id={self.id} name={self.name!r} user_id={self.user_id}>"


class PharmacyContact(EntityMixin, db.Model):
    """
    A user's own label for a pharmacy they trade with.

    At most one contact per (user, pharmacy); the service checks before
    insert and the unique constraint backs it up.
    """
    __tablename__ = "pharmacy_contacts"
    __table_args__ = (
        db.UniqueConstraint("user_id", "pharmacy_id", name="uq_pharmacy_contacts_user_pharmacy"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    pharmacy_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=False, index=True)
    contact_name = db.Column(db.String(255), nullable=False)

    user = db.relationship("User", back_populates="contacts")
    pharmacy = db.relationship("Pharmacy", back_populates="contact_references")

    def __repr__(self) -> str:
        return f"<PharmacyContact id={self.id} user_id={self.user_id} pharmacy_id={self.pharmacy_id}>"
