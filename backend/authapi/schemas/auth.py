# authapi/schemas/auth.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from authapi.schemas.user import UserOut

# Request fields are optional at the schema level: a missing field is reported by the
# service with the 404 "Field(s) ... missing." error rather than a generic 422.


class RegisterIn(BaseModel):
    username: str | None = Field(default=None, max_length=100)
    password: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=255)


class VerifyIn(BaseModel):
    email: str | None = Field(default=None, max_length=255)
    code: str | None = Field(default=None, max_length=16)


class LoginIn(BaseModel):
    email: str | None = Field(default=None, max_length=255)
    password: str | None = Field(default=None, max_length=128)


class PasswordResetIn(BaseModel):
    email: str | None = Field(default=None, max_length=255)


class PasswordResetConfirmIn(BaseModel):
    email: str | None = Field(default=None, max_length=255)
    code: str | None = Field(default=None, max_length=16)
    new_password: str | None = Field(default=None, alias="newPassword", max_length=128)

    model_config = ConfigDict(populate_by_name=True)


class RegisterOut(UserOut):
    code: str
    expiration_time: datetime


class AuthOut(BaseModel):
    user: UserOut
    token: str


class CodeChallengeOut(BaseModel):
    code: str
    expiration_time: datetime
