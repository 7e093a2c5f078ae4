from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    verified: bool
    eula_accepted: bool
    date_joined: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("date_joined")
    @classmethod
    def date_joined_as_utc(cls, value: datetime) -> datetime:
        # SQLite drops the offset of timezone-aware columns.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ChangePasswordIn(BaseModel):
    current_password: str | None = Field(default=None, alias="currentPassword", max_length=128)
    new_password: str | None = Field(default=None, alias="newPassword", max_length=128)
    confirm_password: str | None = Field(default=None, alias="confirmPassword", max_length=128)

    model_config = ConfigDict(populate_by_name=True)


class ChangePasswordConfirmIn(BaseModel):
    code: str | None = Field(default=None, max_length=16)
    new_password: str | None = Field(default=None, alias="newPassword", max_length=128)

    model_config = ConfigDict(populate_by_name=True)
