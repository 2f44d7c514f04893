# Overview: Service-layer unit of work; commit, rollback and row locking.

from __future__ import annotations

from typing import Callable, TypeVar

from flask import current_app

from ..errors import AppServerError, PhTradeError
from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(op: Callable[[], T], *, action: str) -> T:
    """
    Run `op` as one unit of work and commit it.

    - Typed business errors roll back and propagate unchanged.
    - Anything else rolls back, is logged with its traceback and surfaces
      as AppServerError.

    `op` must map entities to read-only DTOs before returning; nothing
    returned from here should still need the session.
    """
    try:
        result = op()
        db.session.commit()
        return result
    except PhTradeError as exc:
        db.session.rollback()
        current_app.logger.warning("%s rejected: %s (%s)", action, exc.message, exc.code)
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise AppServerError("Persistence", f"Failed to {action}") from exc


def run_read_only(op: Callable[[], T], *, action: str) -> T:
    """Queries only: nothing to commit, same error translation as run_in_transaction."""
    try:
        return op()
    except PhTradeError:
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise AppServerError("Persistence", f"Failed to {action}") from exc
