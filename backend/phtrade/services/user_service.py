# Overview: Service-layer operations for users; encapsulates business logic and database work.

"""
User accounts.

- insert_user never sets more than the requested role; self-registration
  goes through the HTTP layer, which always asks for REGULAR.
- delete_user is admin-only and detaches the user from everything that
  references it before removing the row. Trade records survive with the
  recorder / last-modified-by reference cleared.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..errors import (
    EntityAlreadyExistsError,
    EntityInvalidArgumentError,
    EntityNotAuthorizedError,
    EntityNotFoundError,
)
from ..extensions import db
from ..models import RoleType, TradeRecord, User
from . import mapper
from .auth_service import hash_password, verify_password
from .dtos import ContactReadOnly, PaginatedResult, PharmacyReadOnly, UserInsert, UserReadOnly, UserUpdate
from .repository import Repository
from .session_service import delete_user_sessions
from .transaction import run_in_transaction, run_read_only

users = Repository(User)


def parse_role(value: Any) -> RoleType:
    if isinstance(value, RoleType):
        return value
    try:
        return RoleType(str(value).strip().upper())
    except ValueError:
        raise EntityInvalidArgumentError("User", f"Unknown role {value!r}") from None


def load_user(user_id: int) -> User:
    """Fetch inside a running transaction or raise EntityNotFoundError."""
    user = users.get_by_id(user_id)
    if user is None:
        raise EntityNotFoundError("User", f"User with id {user_id} was not found")
    return user


def insert_user(dto: UserInsert) -> UserReadOnly:
    def _op():
        if users.find_by_field("username", dto.username) is not None:
            raise EntityAlreadyExistsError("User", f"User with username {dto.username} already exists")
        if users.find_by_field("email", dto.email) is not None:
            raise EntityAlreadyExistsError("User", f"User with email {dto.email} already exists")

        user = User(
            username=dto.username,
            email=dto.email,
            password_hash=hash_password(dto.password),
            role=parse_role(dto.role),
        )
        users.insert(user)
        current_app.logger.info("User id=%s username=%s inserted", user.id, user.username)
        return mapper.to_user_dto(user)

    return run_in_transaction(_op, action="insert user")


def update_user(dto: UserUpdate, updater_user_id: int) -> UserReadOnly:
    """Users may edit themselves; admins may edit anyone."""
    def _op():
        user = load_user(dto.id)
        updater = load_user(updater_user_id)
        if updater.id != user.id and not updater.is_admin:
            raise EntityNotAuthorizedError("User", "Only the user or an admin can update this account")

        if dto.username != user.username:
            existing = users.find_by_field("username", dto.username)
            if existing is not None and existing.id != user.id:
                raise EntityAlreadyExistsError("User", f"User with username {dto.username} already exists")
        if dto.email != user.email:
            existing = users.find_by_field("email", dto.email)
            if existing is not None and existing.id != user.id:
                raise EntityAlreadyExistsError("User", f"User with email {dto.email} already exists")

        user.username = dto.username
        user.email = dto.email
        if dto.password:
            user.password_hash = hash_password(dto.password)
        users.update(user)
        current_app.logger.info("User id=%s updated by user id=%s", user.id, updater.id)
        return mapper.to_user_dto(user)

    return run_in_transaction(_op, action="update user")


def delete_user(user_id: int, deleter_user_id: int) -> None:
    def _op():
        deleter = load_user(deleter_user_id)
        if not deleter.is_admin:
            raise EntityNotAuthorizedError("User", "Only an admin can delete users")

        user = users.get_by_id_with_relations(user_id, "pharmacies", "contacts", "records_recorded")
        if user is None:
            raise EntityNotFoundError("User", f"User with id {user_id} was not found")

        modified = db.session.query(TradeRecord).filter(TradeRecord.last_modified_by_id == user.id).all()

        with db.session.no_autoflush:
            for pharmacy in list(user.pharmacies):
                user.remove_pharmacy(pharmacy)

            for contact in list(user.contacts):
                pharmacy = contact.pharmacy
                user.remove_contact(contact)
                if pharmacy is not None:
                    pharmacy.remove_contact_reference(contact)
                db.session.delete(contact)

            for record in list(user.records_recorded):
                user.remove_record_recorder(record)

            for record in modified:
                record.last_modified_by = None

        delete_user_sessions(user.id)
        users.delete(user)
        current_app.logger.info("User id=%s deleted by admin id=%s", user_id, deleter.id)

    run_in_transaction(_op, action="delete user")


def get_user_by_id(user_id: int) -> UserReadOnly:
    return run_read_only(lambda: mapper.to_user_dto(load_user(user_id)), action="get user")


def get_user_by_username(username: str) -> UserReadOnly:
    def _op():
        user = users.find_by_field("username", username)
        if user is None:
            raise EntityNotFoundError("User", f"User with username {username} was not found")
        return mapper.to_user_dto(user)

    return run_read_only(_op, action="get user by username")


def get_all_users() -> list[UserReadOnly]:
    return run_read_only(
        lambda: [mapper.to_user_dto(user) for user in users.get_all()],
        action="list users",
    )


def get_users_by_criteria(criteria: Mapping[str, Any] | None) -> list[UserReadOnly]:
    return run_read_only(
        lambda: [mapper.to_user_dto(user) for user in users.get_by_criteria(criteria)],
        action="filter users",
    )


def get_users_by_criteria_paginated(
    criteria: Mapping[str, Any] | None, page: int, size: int
) -> PaginatedResult[UserReadOnly]:
    return run_read_only(
        lambda: users.get_by_criteria_paginated(criteria, page, size).map(mapper.to_user_dto),
        action="page users",
    )


def get_users_count_by_criteria(criteria: Mapping[str, Any] | None) -> int:
    return run_read_only(lambda: users.count_by_criteria(criteria), action="count users")


def get_user_pharmacies(user_id: int) -> list[PharmacyReadOnly]:
    def _op():
        user = load_user(user_id)
        return [mapper.to_pharmacy_dto(p) for p in sorted(user.pharmacies, key=lambda p: p.id)]

    return run_read_only(_op, action="list user pharmacies")


def get_user_contacts(user_id: int) -> list[ContactReadOnly]:
    def _op():
        user = load_user(user_id)
        return [mapper.to_contact_dto(c) for c in sorted(user.contacts, key=lambda c: c.id)]

    return run_read_only(_op, action="list user contacts")


def is_user_valid(username: str, password: str) -> bool:
    def _op():
        user = users.find_by_field("username", username)
        return user is not None and verify_password(password, user.password_hash)

    return run_read_only(_op, action="check credentials")


def username_exists(username: str) -> bool:
    return run_read_only(lambda: users.find_by_field("username", username) is not None, action="check username")


def email_exists(email: str) -> bool:
    return run_read_only(lambda: users.find_by_field("email", email) is not None, action="check email")


def is_admin(user_id: int) -> bool:
    def _op():
        user = users.get_by_id(user_id)
        return user is not None and user.is_admin

    return run_read_only(_op, action="check admin")
