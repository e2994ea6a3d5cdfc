# Overview: Service-layer operations for users and passwords; encapsulates business logic and database work.

"""
Local user accounts.

WHY: Every device has at least one admin; sales staff log in with their own
account so actions stay attributable.

SECURITY NOTES:
- Passwords hashed with bcrypt (salted, cost factor from BCRYPT_ROUNDS)
- Minimum 6 characters required
- Usernames are case-insensitive (stored lower-case)
"""

from __future__ import annotations

import logging

import bcrypt
from flask import current_app, has_app_context

from ..models import User
from ..models.auth import ROLE_ADMIN, VALID_ROLES
from ..permissions import has_capability
from ..validation import ValidationError, ConflictError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DEFAULT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def _configured_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS))
    return DEFAULT_ROUNDS


def hash_password(password: str, rounds: int | None = None) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds or _configured_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash (e.g. legacy unsalted digest)
        return False


def _normalize_username(username: str) -> str:
    if not username or not str(username).strip():
        raise ValidationError("username is required")
    return str(username).strip().lower()


def _validate_role(role: str) -> str:
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {role}. Must be one of {list(VALID_ROLES)}")
    return role


class UserService:
    """User management over a LedgerStore."""

    def __init__(self, store):
        self.store = store

    def list_users(self) -> list[User]:
        return self.store.select(User, order_by=(User.username.asc(),))

    def get_by_username(self, username: str) -> User | None:
        return self.store.session.query(User).filter_by(username=_normalize_username(username)).first()

    def create_user(self, username: str, full_name: str | None, password: str, role: str = "staff") -> User:
        username = _normalize_username(username)
        _validate_role(role)
        if self.get_by_username(username) is not None:
            raise ConflictError(f"Username already exists: {username}")

        user = self.store.insert(
            User,
            username=username,
            full_name=(full_name or "").strip() or None,
            password_hash=hash_password(password),
            role=role,
        )
        logger.info("User created: %s (%s)", user.username, user.role)
        return user

    def authenticate(self, username: str, password: str) -> User | None:
        """Return the user when the credentials match, else None."""
        try:
            user = self.get_by_username(username)
        except ValidationError:
            return None
        if user is None or not verify_password(password or "", user.password_hash):
            logger.info("Failed login for %r", username)
            return None
        return user

    def change_password(self, user_id: int, new_password: str) -> User:
        return self.store.update(User, user_id, password_hash=hash_password(new_password))

    def update_role(self, user_id: int, role: str) -> User:
        _validate_role(role)
        with self.store.transaction():
            user = self.store.require(User, user_id, "User")
            if user.role == ROLE_ADMIN and role != ROLE_ADMIN:
                self._ensure_other_admin(user)
            user.role = role
        return user

    def delete_user(self, user_id: int) -> None:
        with self.store.transaction() as session:
            user = self.store.require(User, user_id, "User")
            if user.role == ROLE_ADMIN:
                self._ensure_other_admin(user)
            session.delete(user)

    def _ensure_other_admin(self, user: User) -> None:
        others = self.store.session.query(User).filter(
            User.role == ROLE_ADMIN,
            User.id != user.id,
        ).count()
        if others == 0:
            raise ConflictError("Cannot remove the last admin account")

    @staticmethod
    def has_permission(user: User | None, capability: str) -> bool:
        return user is not None and has_capability(user.role, capability)
