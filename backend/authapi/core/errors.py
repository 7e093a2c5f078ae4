# authapi/core/errors.py
"""
Typed failures raised by the services and turned into the uniform error body
({"error", "message", "details"?}) by the handler registered in main.py.
"""
from __future__ import annotations

from typing import Any, Iterable


class AuthServiceError(Exception):
    status_code: int = 500
    error: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


# -----------------------------
# Input
# -----------------------------
class MissingFieldsError(AuthServiceError):
    status_code = 404
    error = "MISSING_FIELDS"

    def __init__(self, fields: Iterable[str]) -> None:
        names = list(fields)
        super().__init__(f"Field(s) {' '.join(names)} missing.", details={"fields": names})
        self.fields = names


class ValidationError(AuthServiceError):
    status_code = 400
    error = "VALIDATION_ERROR"


# -----------------------------
# Users
# -----------------------------
class ConflictError(AuthServiceError):
    status_code = 409
    error = "CONFLICT"


class NotFoundError(AuthServiceError):
    status_code = 404
    error = "NOT_FOUND"


class AlreadyVerifiedError(AuthServiceError):
    status_code = 400
    error = "ALREADY_VERIFIED"


class InvalidCredentialsError(AuthServiceError):
    status_code = 401
    error = "INVALID_CREDENTIALS"


class IncorrectPasswordError(AuthServiceError):
    status_code = 400
    error = "INCORRECT_PASSWORD"


# -----------------------------
# Verification codes
# -----------------------------
class VerificationCodeError(AuthServiceError):
    status_code = 400


class CodeNotFoundError(VerificationCodeError):
    status_code = 404
    error = "CODE_NOT_FOUND"


class CodeAlreadyUsedError(VerificationCodeError):
    error = "CODE_ALREADY_USED"


class CodeMismatchError(VerificationCodeError):
    error = "CODE_MISMATCH"


class CodeExpiredError(VerificationCodeError):
    error = "CODE_EXPIRED"


# -----------------------------
# Tokens
# -----------------------------
class UnauthorizedError(AuthServiceError):
    status_code = 401
    error = "UNAUTHORIZED"


class TokenInvalidError(AuthServiceError):
    status_code = 403
    error = "TOKEN_INVALID"


class TokenExpiredError(TokenInvalidError):
    error = "TOKEN_EXPIRED"


class TokenMalformedError(TokenInvalidError):
    error = "TOKEN_MALFORMED"


class TokenSignatureError(TokenInvalidError):
    error = "TOKEN_INVALID"


# -----------------------------
# Collaborators
# -----------------------------
class HashingError(AuthServiceError):
    status_code = 500
    error = "INTERNAL_ERROR"
