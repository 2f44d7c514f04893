# Overview: Generic persistence handle shared by every entity service.

from __future__ import annotations

import math
from typing import Any, Generic, Mapping, Optional, TypeVar

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import selectinload

from ..errors import EntityInvalidArgumentError
from ..extensions import db
from ..models import mark_created, mark_updated
from .criteria import CriteriaBuilder, resolve_path
from .dtos import PaginatedResult
from .transaction import lock_for_update

M = TypeVar("M")


def validate_page_request(page: Any, size: Any) -> None:
    """page >= 0 and size > 0, both plain ints."""
    for name, value in (("page", page), ("size", size)):
        if not isinstance(value, int) or isinstance(value, bool):
            raise EntityInvalidArgumentError("Pagination", f"{name} must be an integer")
    if page < 0:
        raise EntityInvalidArgumentError("Pagination", "page must not be negative")
    if size <= 0:
        raise EntityInvalidArgumentError("Pagination", "size must be positive")


class Repository(Generic[M]):
    """
    CRUD plus criteria queries for one model.

    Nothing here commits; callers run inside run_in_transaction. Writes are
    flushed so generated ids and constraint violations show up immediately.
    """

    def __init__(self, model: type[M]):
        self.model = model

    # Writes

    def insert(self, entity: M) -> M:
        mark_created(entity)
        db.session.add(entity)
        db.session.flush()
        return entity

    def update(self, entity: M) -> M:
        mark_updated(entity)
        db.session.flush()
        return entity

    def delete(self, entity: M) -> None:
        db.session.delete(entity)
        db.session.flush()

    def delete_by_id(self, entity_id: int) -> bool:
        entity = self.get_by_id(entity_id)
        if entity is None:
            return False
        self.delete(entity)
        return True

    # Reads

    def _primary_key(self):
        return sa_inspect(self.model).primary_key[0]

    def query(self):
        return db.session.query(self.model)

    def get_by_id(self, entity_id: int, *, for_update: bool = False) -> Optional[M]:
        query = self.query().filter(self._primary_key() == entity_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def get_by_id_with_relations(self, entity_id: int, *relations: str) -> Optional[M]:
        """Load one row with the named relationships eagerly fetched."""
        options = [selectinload(getattr(self.model, name)) for name in relations]
        return self.query().options(*options).filter(self._primary_key() == entity_id).first()

    def count(self) -> int:
        return self.query().count()

    def find_by_field(self, field: str, value: Any) -> Optional[M]:
        """Exact (case-sensitive) equality, first row by primary key."""
        column = resolve_path(self.model, field)
        return self.query().filter(column == value).order_by(self._primary_key()).first()

    def get_all(self) -> list[M]:
        return self.query().order_by(self._primary_key()).all()

    def criteria_query(self, criteria: Mapping[str, Any] | None):
        query = CriteriaBuilder(self.model).apply(self.query(), criteria)
        return query.order_by(self._primary_key())

    def get_by_criteria(self, criteria: Mapping[str, Any] | None) -> list[M]:
        return self.criteria_query(criteria).all()

    def count_by_criteria(self, criteria: Mapping[str, Any] | None) -> int:
        return self.criteria_query(criteria).order_by(None).count()

    def exists_by_criteria(self, criteria: Mapping[str, Any] | None) -> bool:
        return self.criteria_query(criteria).first() is not None

    def get_by_criteria_paginated(
        self,
        criteria: Mapping[str, Any] | None,
        page: int,
        size: int,
    ) -> PaginatedResult:
        """
        One page of get_by_criteria.

        Rows are entities; services swap them for read-only DTOs with
        PaginatedResult.map before leaving the transaction.
        """
        validate_page_request(page, size)
        query = self.criteria_query(criteria)
        total_items = query.order_by(None).count()
        rows = query.offset(page * size).limit(size).all()
        return PaginatedResult(
            data=rows,
            current_page=page,
            page_size=size,
            total_pages=math.ceil(total_items / size) if total_items else 0,
            total_items=total_items,
        )
