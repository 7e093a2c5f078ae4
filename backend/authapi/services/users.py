# authapi/services/users.py
"""
User account helpers.

Responsibilities:
- Lookup by email, or username/email pair
- Creating unverified users
- The one-way Unverified -> Verified transition
- Replacing the stored password hash
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from authapi.core.errors import AlreadyVerifiedError, ConflictError
from authapi.core.security import hash_password
from authapi.core.validators import (
    ensure_valid_email,
    ensure_valid_password,
    ensure_valid_username,
    normalize_email,
)
from authapi.models.user import User

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Look up a user by email address."""
    return db.query(User).filter(User.email == normalize_email(email)).first()


def find_users_by_username_or_email(db: Session, username: str, email: str) -> list[User]:
    """
    Registration lookup. Every row that holds the username or the email; the username
    match comes first so conflict messages name that field first.
    """
    normalized_email = normalize_email(email)
    candidates = (
        db.query(User)
        .filter(or_(User.username == username, User.email == normalized_email))
        .order_by(User.id.asc())
        .all()
    )
    return sorted(candidates, key=lambda candidate: candidate.username != username)


def conflict_for(user: User, username: str, email: str) -> ConflictError:
    if user.username == username:
        return ConflictError(f"User '{username}' already exists.")
    return ConflictError(f"Email '{normalize_email(email)}' is already in use.")


def create_user(db: Session, *, username: str, password: str, email: str) -> User:
    """
    Create a new unverified user. Flushes but does not commit; the caller commits once
    the registration code exists as well.

    Raises:
        ValidationError: username/password too short or email malformed
        ConflictError: username or email already taken
    """
    ensure_valid_username(username)
    ensure_valid_password(password)
    ensure_valid_email(email)

    normalized_email = normalize_email(email)
    existing = find_users_by_username_or_email(db, username, normalized_email)
    if existing:
        raise conflict_for(existing[0], username, normalized_email)

    user = User(
        username=username,
        email=normalized_email,
        password_hash=hash_password(password),
        verified=False,
        eula_accepted=False,
        date_joined=datetime.now(timezone.utc),
    )
    db.add(user)
    db.flush()

    logger.info("Created user id=%s username=%s verified=%s", user.id, user.username, user.verified)
    return user


def mark_verified(db: Session, user: User) -> User:
    if user.verified:
        raise AlreadyVerifiedError(f"User {user.email} is already verified.")

    user.verified = True
    db.add(user)
    db.flush()

    logger.info("Marked user id=%s as verified", user.id)
    return user


def update_password(db: Session, user: User, new_password_hash: str) -> User:
    """
    Replace the stored hash. Callers check the current password and consume a
    PasswordChange/PasswordReset code before getting here.
    """
    user.password_hash = new_password_hash
    db.add(user)
    db.flush()

    logger.info("Updated password for user id=%s", user.id)
    return user
