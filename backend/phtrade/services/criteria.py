# Overview: Criteria engine; turns a field-path -> filter-value map into SQLAlchemy filters.

"""
Criteria maps (authoritative semantics)

| value                          | predicate                                  |
|--------------------------------|--------------------------------------------|
| "isNull" / "isNotNull"         | IS NULL / IS NOT NULL                      |
| str containing "%"             | lower(field) LIKE lower(value)             |
| other str                      | lower(field) = lower(value)                |
| list / tuple / set             | field IN (...)                             |
| mapping with "from" and "to"   | field BETWEEN from AND to                  |
| anything else                  | field = value                              |

- Keys are dot-separated paths navigated from the queried model through
  many-to-one relationships ("user.username", "giver.user.id").
- Every key is resolved before any SQL runs; an unknown path raises
  EntityInvalidArgumentError.
- A range whose bounds are missing or not comparable with each other is
  skipped without error.
- All predicates of one map are ANDed; an empty map matches every row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Union

from flask import current_app
from sqlalchemy import Enum, String, and_, cast, func, inspect as sa_inspect
from sqlalchemy.orm import aliased

from ..errors import EntityInvalidArgumentError
from ..time_utils import parse_iso_datetime


IS_NULL = "isNull"
IS_NOT_NULL = "isNotNull"
PATTERN_WILDCARD = "%"


def _invalid(message: str) -> EntityInvalidArgumentError:
    return EntityInvalidArgumentError("Criteria", message, code="CriteriaInvalidPath")


@dataclass(frozen=True)
class FieldPath:
    segments: tuple[str, ...]

    @classmethod
    def parse(cls, expression: Any) -> "FieldPath":
        if not isinstance(expression, str) or not expression.strip():
            raise _invalid(f"Field path must be a non-empty string, got {expression!r}")
        segments = tuple(expression.strip().split("."))
        if any(not segment for segment in segments):
            raise _invalid(f"Malformed field path {expression!r}")
        return cls(segments)

    def __str__(self) -> str:
        return ".".join(self.segments)


@dataclass(frozen=True)
class Equals:
    path: FieldPath
    value: Any
    ignore_case: bool = False


@dataclass(frozen=True)
class Like:
    path: FieldPath
    pattern: str


@dataclass(frozen=True)
class In:
    path: FieldPath
    values: tuple


@dataclass(frozen=True)
class Between:
    path: FieldPath
    lower: Any
    upper: Any


@dataclass(frozen=True)
class IsNull:
    path: FieldPath
    negated: bool = False


Predicate = Union[Equals, Like, In, Between, IsNull]


def _mutually_comparable(lower: Any, upper: Any) -> bool:
    if lower is None or upper is None:
        return False
    try:
        lower <= upper
        upper <= lower
    except TypeError:
        return False
    return True


def parse_criterion(path: FieldPath, value: Any) -> Predicate | None:
    """Map one filter value onto its predicate; None means the entry is skipped."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return In(path, tuple(value))

    if isinstance(value, Mapping):
        if "from" not in value or "to" not in value:
            return None
        lower, upper = value["from"], value["to"]
        if not _mutually_comparable(lower, upper):
            return None
        return Between(path, lower, upper)

    if value == IS_NULL:
        return IsNull(path)
    if value == IS_NOT_NULL:
        return IsNull(path, negated=True)

    if isinstance(value, str):
        if PATTERN_WILDCARD in value:
            return Like(path, value)
        return Equals(path, value, ignore_case=True)

    return Equals(path, value)


def parse_criteria(criteria: Mapping[str, Any] | None) -> list[Predicate]:
    predicates: list[Predicate] = []
    for key, value in (criteria or {}).items():
        path = FieldPath.parse(key)
        predicate = parse_criterion(path, value)
        if predicate is None:
            current_app.logger.debug("Skipping range criterion on %s: bounds not comparable", path)
            continue
        predicates.append(predicate)
    return predicates


@dataclass(frozen=True)
class _Resolved:
    expression: Any
    is_relationship: bool


class CriteriaBuilder:
    """
    Compiles criteria for one model.

    Relationship hops become outer joins against an alias, one alias per
    distinct path prefix, so "giver.name" and "giver.id" share a join.
    """

    def __init__(self, model):
        self.model = model
        self._joins: dict[tuple[str, ...], tuple[Any, Any]] = {}

    def resolve(self, path: FieldPath) -> _Resolved:
        mapper = sa_inspect(self.model)
        entity = self.model
        prefix: tuple[str, ...] = ()
        last = len(path.segments) - 1

        for index, segment in enumerate(path.segments):
            if segment in mapper.relationships:
                rel = mapper.relationships[segment]
                if rel.uselist:
                    raise _invalid(f"Cannot filter through collection '{segment}' in '{path}'")
                attribute = getattr(entity, segment)
                if index == last:
                    return _Resolved(attribute, True)
                prefix = prefix + (segment,)
                if prefix not in self._joins:
                    self._joins[prefix] = (aliased(rel.mapper.class_), attribute)
                entity = self._joins[prefix][0]
                mapper = rel.mapper
                continue

            if segment in mapper.column_attrs:
                if index != last:
                    raise _invalid(f"'{segment}' in '{path}' is not a relationship")
                return _Resolved(getattr(entity, segment), False)

            raise _invalid(f"Unknown field '{segment}' in '{path}' for {self.model.__name__}")

        raise _invalid(f"Empty field path for {self.model.__name__}")

    def compile(self, predicate: Predicate):
        resolved = self.resolve(predicate.path)
        column = resolved.expression

        if resolved.is_relationship:
            if not isinstance(predicate, IsNull):
                raise _invalid(
                    f"'{predicate.path}' is a relationship; filter on one of its fields instead"
                )
            return column != None if predicate.negated else column == None  # noqa: E711

        if isinstance(predicate, IsNull):
            return column.is_not(None) if predicate.negated else column.is_(None)
        if isinstance(predicate, In):
            return column.in_(list(predicate.values))
        if isinstance(predicate, Between):
            return column.between(_bound(column, predicate.lower), _bound(column, predicate.upper))
        if isinstance(predicate, Like):
            return func.lower(_as_text(column)).like(predicate.pattern.lower())
        if predicate.ignore_case:
            return func.lower(_as_text(column)) == predicate.value.lower()
        return column == predicate.value

    def build(self, predicates: list[Predicate]) -> list:
        return [self.compile(predicate) for predicate in predicates]

    def apply(self, query, criteria: Mapping[str, Any] | None):
        """Resolve every key, then join and filter `query`."""
        for key in (criteria or {}):
            self.resolve(FieldPath.parse(key))
        clauses = self.build(parse_criteria(criteria))
        for alias, attribute in self._joins.values():
            query = query.outerjoin(alias, attribute.of_type(alias))
        if clauses:
            query = query.filter(and_(*clauses))
        return query


def _bound(column, value):
    """Convert a text range bound to the column's Python type."""
    if not isinstance(value, str):
        return value
    try:
        python_type = column.type.python_type
    except (AttributeError, NotImplementedError):
        return value
    if python_type is str:
        return value
    try:
        converted = parse_iso_datetime(value) if python_type is datetime else python_type(value.strip())
    except (ValueError, ArithmeticError):
        converted = None
    if converted is None:
        raise EntityInvalidArgumentError(
            "Criteria", f"Range bound {value!r} is not a valid {python_type.__name__}"
        )
    return converted


def _as_text(column):
    column_type = getattr(column, "type", None)
    if isinstance(column_type, String) and not isinstance(column_type, Enum):
        return column
    return cast(column, String)


def resolve_path(model, path):
    """Resolve `path` (str or FieldPath) on `model` without building a query."""
    if not isinstance(path, FieldPath):
        path = FieldPath.parse(path)
    return CriteriaBuilder(model).resolve(path).expression


def apply_criteria(query, model, criteria: Mapping[str, Any] | None):
    return CriteriaBuilder(model).apply(query, criteria)
