# authapi/core/security.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import secrets

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from authapi.core.config import settings
from authapi.core.errors import (
    HashingError,
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ACCESS_TOKEN_PURPOSE = "access"


# -------------------------
# Password hashing
# -------------------------
def hash_password(password: str) -> str:
    try:
        return pwd_context.hash(password)
    except (TypeError, ValueError) as exc:
        raise HashingError("Error hashing password") from exc


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (TypeError, ValueError) as exc:
        raise HashingError("Error comparing passwords") from exc


# -------------------------
# Verification codes
# -------------------------
def generate_verification_code(length: int | None = None) -> str:
    """
    Numeric one-time code, each digit drawn uniformly from 0-9.
    Uniqueness across rows is not needed; a code only has to be valid inside its own row.
    """
    size = int(length or settings.VERIFICATION_CODE_LENGTH)
    return "".join(str(secrets.randbelow(10)) for _ in range(size))


# -------------------------
# JWT helpers
# -------------------------
@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_jwt_secret() -> None:
    if not settings.JWT_SECRET or not settings.JWT_SECRET.strip():
        raise RuntimeError("JWT_SECRET must be set (auth is required).")


def create_access_token(user_id: int, email: str) -> str:
    """
    Access token used for API auth: Authorization: Bearer <token>
    Binds the user's id and email; validity is the signature plus the embedded exp.
    """
    _require_jwt_secret()

    now = _now_utc()
    exp = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": str(user_id),
        "user_id": int(user_id),
        "email": email,
        "purpose": ACCESS_TOKEN_PURPOSE,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenClaims:
    _require_jwt_secret()

    try:
        jwt.get_unverified_claims(token)
    except JWTError:
        raise TokenMalformedError("Token is malformed.")

    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError("Token is expired.")
    except JWTError:
        raise TokenSignatureError("Token is invalid.")

    if payload.get("purpose") != ACCESS_TOKEN_PURPOSE:
        raise TokenMalformedError("Invalid token purpose.")

    email = str(payload.get("email") or "").strip().lower()
    try:
        user_id = int(payload.get("user_id"))
    except (TypeError, ValueError):
        raise TokenMalformedError("Invalid token payload.")
    if not email:
        raise TokenMalformedError("Invalid token payload.")

    return TokenClaims(user_id=user_id, email=email)
