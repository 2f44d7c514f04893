# Overview: Typed error taxonomy surfaced by the service layer.

"""
Every service operation raises one of these; the HTTP layer maps them to
status codes in one place (see create_app).

- code: stable machine-readable identifier, e.g. "PharmacyNotFound"
- message: human-readable description
"""

from __future__ import annotations


class PhTradeError(Exception):
    """Base class for all business-level failures."""

    status_code = 500
    suffix = "Error"

    def __init__(self, entity: str, message: str, *, code: str | None = None):
        super().__init__(message)
        self.entity = entity
        self.message = message
        self.code = code or f"{entity}{self.suffix}"

    def to_dict(self) -> dict:
        return {"code": self.code, "description": self.message}


class EntityNotFoundError(PhTradeError):
    """A referenced user, pharmacy, contact or record does not exist."""
    status_code = 404
    suffix = "NotFound"


class EntityAlreadyExistsError(PhTradeError):
    """A uniqueness rule would be violated."""
    status_code = 409
    suffix = "AlreadyExists"


class EntityNotAuthorizedError(PhTradeError):
    """Acting user lacks the owner/admin relationship the operation needs."""
    status_code = 403
    suffix = "NotAuthorized"


class EntityInvalidArgumentError(PhTradeError):
    """Malformed input reached the service boundary."""
    status_code = 400
    suffix = "InvalidArgument"


class AppServerError(PhTradeError):
    """Persistence failed for reasons unrelated to business rules."""
    status_code = 500
    suffix = "ServerError"
