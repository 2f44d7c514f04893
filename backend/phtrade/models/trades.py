from __future__ import annotations

from ..extensions import db
from .base import EntityMixin


class TradeRecord(EntityMixin, db.Model):
    """
    One movement of goods/credit from a giver pharmacy to a receiver pharmacy.

    TWO-PHASE DELETION:
    - deleted_by_giver / deleted_by_receiver are set independently
    - a row exists only while at most one of them is true
    - when both become true the row is physically deleted

    Party references are nullable: deleting a pharmacy or user keeps the
    record and clears only the dangling reference.
    """
    __tablename__ = "trade_records"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_trade_records_amount_positive"),
        db.Index("ix_trade_records_parties", "giver_id", "receiver_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    transaction_date = db.Column(db.DateTime, nullable=False, index=True)

    giver_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=True)
    receiver_id = db.Column(db.Integer, db.ForeignKey("pharmacies.id"), nullable=True)
    recorder_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    last_modified_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    deleted_by_giver = db.Column(db.Boolean, nullable=False, default=False)
    deleted_by_receiver = db.Column(db.Boolean, nullable=False, default=False)

    giver = db.relationship("Pharmacy", foreign_keys=[giver_id], back_populates="records_given")
    receiver = db.relationship("Pharmacy", foreign_keys=[receiver_id], back_populates="records_received")
    recorder = db.relationship("User", foreign_keys=[recorder_id], back_populates="records_recorded")
    last_modified_by = db.relationship("User", foreign_keys=[last_modified_by_id])

    @property
    def is_fully_deleted(self) -> bool:
        return bool(self.deleted_by_giver) and bool(self.deleted_by_receiver)

    def __repr__(self) -> str:
        return (
            f"<TradeRecord id={self.id} amount={self.amount} "
            f"giver_id={self.giver_id} receiver_id={self.receiver_id}>"
        )
