from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm import validates

from ..extensions import db
from phtrade.time_utils import utcnow


class EntityMixin:
    """
    Identity and timestamp columns shared by every ledger entity.

    IDENTITY: equality and hashing use `uuid`, never the primary key.
    The uuid is assigned when the Python object is constructed, so two
    transient instances never compare equal, and two loads of the same row
    always do, whatever columns happen to be loaded.

    TIMESTAMPS: set by mark_created()/mark_updated(), which the repository
    calls explicitly before insert/update.
    """

    uuid = db.Column(db.String(36), nullable=False, unique=True)
    created_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("uuid", str(uuid4()))
        super().__init__(**kwargs)

    @validates("uuid")
    def _validate_uuid(self, key, value):
        current = self.__dict__.get("uuid")
        if current is not None and value != current:
            raise ValueError("uuid is immutable once assigned")
        return value

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, EntityMixin):
            return NotImplemented
        return self.uuid is not None and self.uuid == other.uuid

    def __hash__(self):
        return hash(self.uuid)


def mark_created(entity: EntityMixin) -> None:
    """Pre-insert hook: creation time is only ever set once."""
    now = utcnow()
    if entity.created_at is None:
        entity.created_at = now
    entity.updated_at = now


def mark_updated(entity: EntityMixin) -> None:
    """Pre-update hook."""
    entity.updated_at = utcnow()
