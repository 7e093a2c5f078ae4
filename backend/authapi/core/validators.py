from __future__ import annotations

from typing import Mapping

from email_validator import EmailNotValidError, validate_email

from authapi.core.config import settings
from authapi.core.errors import MissingFieldsError, ValidationError


def _min_length(name: str, default: int) -> int:
    return max(int(getattr(settings, name, default) or 0), 1)


def require_fields(values: Mapping[str, object], *names: str) -> None:
    """
    Raise MissingFieldsError naming every field that is absent or blank, in the order given.
    """
    missing = [name for name in names if values.get(name) in (None, "")]
    if missing:
        raise MissingFieldsError(missing)


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def ensure_valid_email(email: str) -> None:
    if not is_valid_email(email):
        raise ValidationError("Email format is invalid.")


def ensure_valid_username(username: str) -> None:
    min_length = _min_length("USERNAME_MIN_LENGTH", 4)
    if len(username) < min_length:
        raise ValidationError(f"Username must be at least {min_length} characters long.")


def ensure_valid_password(password: str, *, label: str = "Password") -> None:
    min_length = _min_length("PASSWORD_MIN_LENGTH", 4)
    if len(password) < min_length:
        raise ValidationError(f"{label} must be at least {min_length} characters long.")
