# Overview: Service-layer operations for auth; password hashing and credential checks.

"""
Password handling for ledger users.

- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by default)
- Plaintext passwords are never stored or logged
- authenticate() only answers yes/no; session issuing lives in session_service
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User


DEFAULT_BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    """Hash password using bcrypt; returns the hash as text for the database."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        current_app.logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def authenticate(username: str, password: str) -> User | None:
    """Return the user when username and password match, else None."""
    if not username or not password:
        return None
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
