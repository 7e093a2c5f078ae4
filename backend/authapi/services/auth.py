"""
Request flows: register, verify, login, password change / reset and current user.

Each flow validates its input, then runs its storage steps in a single transaction:
creating a user together with its registration code, consuming a code together with the
state change it unlocks. Any failure rolls the whole step back before it propagates.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authapi.core.errors import (
    AlreadyVerifiedError,
    CodeAlreadyUsedError,
    ConflictError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from authapi.core.security import (
    TokenClaims,
    create_access_token,
    hash_password,
    verify_password,
)
from authapi.core.validators import (
    ensure_valid_email,
    ensure_valid_password,
    ensure_valid_username,
    normalize_email,
    require_fields,
)
from authapi.models.user import User
from authapi.models.verification_code import CodePurpose
from authapi.services import users as user_service
from authapi.services.verification_codes import ResolvedCode, consume_code, resolve_code

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    user: User
    code: ResolvedCode
    # True when this request created the user (201), False when it resumed one (200).
    created: bool


@dataclass
class AuthResult:
    user: User
    token: str


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def _issue_token(user: User) -> str:
    token = create_access_token(user_id=user.id, email=user.email)
    logger.info("Issued access token for user id=%s", user.id)
    return token


def _user_for_token(db: Session, claims: TokenClaims) -> User:
    user = user_service.get_user_by_email(db, claims.email)
    if user is None:
        raise NotFoundError("User with current access token doesn't exist.")
    return user


# -----------------------------
# Registration
# -----------------------------
def register(db: Session, *, username: str | None, password: str | None, email: str | None) -> RegistrationResult:
    require_fields({"username": username, "password": password, "email": email}, "username", "password", "email")
    ensure_valid_username(username)
    ensure_valid_password(password)
    ensure_valid_email(email)

    existing = user_service.find_users_by_username_or_email(db, username, email)
    verified = [user for user in existing if user.verified]
    if verified:
        raise user_service.conflict_for(verified[0], username, email)
    if existing:
        return _resume_registration(db, existing[0])

    try:
        with atomic(db):
            user = user_service.create_user(db, username=username, password=password, email=email)
            resolved = resolve_code(db, user.id, CodePurpose.REGISTER)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same username/email.
        winners = user_service.find_users_by_username_or_email(db, username, email)
        if winners:
            raise user_service.conflict_for(winners[0], username, email) from exc
        raise ConflictError(f"User '{username}' already exists.") from exc

    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return RegistrationResult(user=user, code=resolved, created=True)


def _resume_registration(db: Session, user: User) -> RegistrationResult:
    try:
        with atomic(db):
            resolved = resolve_code(db, user.id, CodePurpose.REGISTER)
    except CodeAlreadyUsedError as exc:
        raise CodeAlreadyUsedError(
            f"User '{user.username}' isn't verified but the code is already used.",
            status_code=409,
        ) from exc

    logger.info(
        "Resumed registration for unverified user id=%s (code id=%s)",
        user.id,
        resolved.record.id,
    )
    return RegistrationResult(user=user, code=resolved, created=False)


def verify_registration(db: Session, *, email: str | None, code: str | None) -> AuthResult:
    require_fields({"email": email, "code": code}, "email", "code")

    user = user_service.get_user_by_email(db, email)
    if user is None:
        raise NotFoundError(f"User {normalize_email(email)} doesn't exist.")
    if user.verified:
        raise AlreadyVerifiedError(f"User {user.email} is already verified.")

    with atomic(db):
        consume_code(db, user.id, CodePurpose.REGISTER, code)
        user_service.mark_verified(db, user)

    logger.info("User id=%s verified their registration", user.id)
    return AuthResult(user=user, token=_issue_token(user))


# -----------------------------
# Login / current user
# -----------------------------
def login(db: Session, *, email: str | None, password: str | None) -> AuthResult:
    require_fields({"email": email, "password": password}, "email", "password")

    user = user_service.get_user_by_email(db, email)
    if user is None:
        raise NotFoundError(f"User {normalize_email(email)} doesn't exist.")

    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("The password doesn't match.")

    logger.info("User id=%s logged in", user.id)
    return AuthResult(user=user, token=_issue_token(user))


def current_user(db: Session, claims: TokenClaims) -> User:
    return _user_for_token(db, claims)


# -----------------------------
# Password change (authenticated)
# -----------------------------
def request_password_change(
    db: Session,
    claims: TokenClaims,
    *,
    current_password: str | None,
    new_password: str | None,
    confirm_password: str | None,
) -> ResolvedCode:
    require_fields(
        {
            "currentPassword": current_password,
            "newPassword": new_password,
            "confirmPassword": confirm_password,
        },
        "currentPassword",
        "newPassword",
        "confirmPassword",
    )
    ensure_valid_password(new_password, label="New password")
    if new_password != confirm_password:
        raise ValidationError("New password and confirmation don't match.")
    if new_password == current_password:
        raise ValidationError("Current and new password can't be same.")

    user = _user_for_token(db, claims)
    if not verify_password(current_password, user.password_hash):
        raise IncorrectPasswordError("Current password isn't correct.")

    with atomic(db):
        resolved = resolve_code(db, user.id, CodePurpose.PASSWORD_CHANGE)
    return resolved


def confirm_password_change(
    db: Session,
    claims: TokenClaims,
    *,
    code: str | None,
    new_password: str | None,
) -> User:
    require_fields({"code": code, "newPassword": new_password}, "code", "newPassword")
    ensure_valid_password(new_password, label="New password")

    user = _user_for_token(db, claims)
    if verify_password(new_password, user.password_hash):
        raise ValidationError("Current and new password can't be same.")

    with atomic(db):
        consume_code(db, user.id, CodePurpose.PASSWORD_CHANGE, code)
        user_service.update_password(db, user, hash_password(new_password))

    logger.info("User id=%s changed their password", user.id)
    return user


# -----------------------------
# Password reset (anonymous)
# -----------------------------
def request_password_reset(db: Session, *, email: str | None) -> ResolvedCode:
    require_fields({"email": email}, "email")
    ensure_valid_email(email)

    user = user_service.get_user_by_email(db, email)
    if user is None:
        raise NotFoundError(f"User {normalize_email(email)} doesn't exist.")

    with atomic(db):
        resolved = resolve_code(db, user.id, CodePurpose.PASSWORD_RESET)
    return resolved


def confirm_password_reset(
    db: Session,
    *,
    email: str | None,
    code: str | None,
    new_password: str | None,
) -> User:
    require_fields(
        {"email": email, "code": code, "newPassword": new_password},
        "email",
        "code",
        "newPassword",
    )
    ensure_valid_password(new_password, label="New password")

    user = user_service.get_user_by_email(db, email)
    if user is None:
        raise NotFoundError(f"User {normalize_email(email)} doesn't exist.")

    with atomic(db):
        consume_code(db, user.id, CodePurpose.PASSWORD_RESET, code)
        user_service.update_password(db, user, hash_password(new_password))

    logger.info("User id=%s reset their password", user.id)
    return user
