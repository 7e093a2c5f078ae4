"""
Verification-code lifecycle.

One code row per (user, purpose) is live at a time: the most recent row that is not
yet used. Handing out a code either reuses that row, refreshes it in place once it has
expired, or creates the first one. Consuming a code marks the row used for good.

Nothing here commits. Callers own the transaction so that consuming a code and the
state change it unlocks (verifying a user, replacing a password) land together.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from authapi.core.config import settings
from authapi.core.errors import (
    CodeAlreadyUsedError,
    CodeExpiredError,
    CodeMismatchError,
    CodeNotFoundError,
)
from authapi.core.security import generate_verification_code
from authapi.models.verification_code import CodePurpose, VerificationCode

logger = logging.getLogger(__name__)

# Purposes whose owning action cannot be replayed once the code was consumed.
SINGLE_USE_PURPOSES = frozenset({CodePurpose.REGISTER})


@dataclass
class ResolvedCode:
    record: VerificationCode
    just_created: bool

    @property
    def code(self) -> str:
        return self.record.code

    @property
    def expires_at(self) -> datetime:
        return as_utc(self.record.expiration_time)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def code_ttl() -> timedelta:
    return timedelta(seconds=max(int(settings.VERIFICATION_CODE_TTL_SECONDS or 0), 1))


def is_expired(record: VerificationCode, now: datetime | None = None) -> bool:
    now = now or _now_utc()
    return as_utc(record.expiration_time) <= now


def latest_code(
    db: Session,
    user_id: int,
    purpose: CodePurpose,
    *,
    unused_only: bool = False,
) -> VerificationCode | None:
    query = db.query(VerificationCode).filter(
        VerificationCode.user_id == user_id,
        VerificationCode.purpose == purpose.value,
    )
    if unused_only:
        query = query.filter(VerificationCode.used.is_(False))
    return query.order_by(VerificationCode.id.desc()).first()


def resolve_code(
    db: Session,
    user_id: int,
    purpose: CodePurpose,
    *,
    now: datetime | None = None,
) -> ResolvedCode:
    """
    Hand out the live code for (user_id, purpose).

    - no unused row: create one (just_created=True)
    - unused row still valid: return it untouched
    - unused row expired: new value + new expiry on the same row

    Raises CodeAlreadyUsedError for single-use purposes whose latest code was already
    consumed, since the action it guarded has happened.
    """
    now = now or _now_utc()

    record = latest_code(db, user_id, purpose, unused_only=True)

    if record is None:
        if purpose in SINGLE_USE_PURPOSES:
            consumed = latest_code(db, user_id, purpose)
            if consumed is not None and consumed.used:
                raise CodeAlreadyUsedError(
                    f"The {purpose.value} code for user {user_id} is already used.",
                    status_code=409,
                )

        record = VerificationCode(
            user_id=user_id,
            purpose=purpose.value,
            code=generate_verification_code(),
            expiration_time=now + code_ttl(),
            used=False,
            created_at=now,
            updated_at=now,
        )
        db.add(record)
        db.flush()
        logger.info(
            "Created %s verification code id=%s for user_id=%s, expires at %s",
            purpose.value,
            record.id,
            user_id,
            record.expiration_time.isoformat(),
        )
        return ResolvedCode(record=record, just_created=True)

    if not is_expired(record, now):
        logger.info(
            "Reusing live %s verification code id=%s for user_id=%s",
            purpose.value,
            record.id,
            user_id,
        )
        return ResolvedCode(record=record, just_created=False)

    record.code = generate_verification_code()
    record.expiration_time = now + code_ttl()
    record.updated_at = now
    db.add(record)
    db.flush()
    logger.info(
        "Refreshed expired %s verification code id=%s for user_id=%s, expires at %s",
        purpose.value,
        record.id,
        user_id,
        record.expiration_time.isoformat(),
    )
    return ResolvedCode(record=record, just_created=False)


def consume_code(
    db: Session,
    user_id: int,
    purpose: CodePurpose,
    supplied_code: str,
    *,
    now: datetime | None = None,
) -> VerificationCode:
    """
    Mark the latest (user_id, purpose) code used if supplied_code matches it.

    Check order is fixed: missing row, already used, value mismatch, then expiry.
    A used row therefore always reports "already used", whatever value was sent.
    """
    now = now or _now_utc()

    record = latest_code(db, user_id, purpose)
    if record is None:
        raise CodeNotFoundError(f"Verification code for user {user_id} doesn't exist.")

    if record.used:
        raise CodeAlreadyUsedError("The verification code is already used.")

    if not secrets.compare_digest(str(supplied_code).encode("utf-8"), record.code.encode("utf-8")):
        raise CodeMismatchError(f"The verification code '{supplied_code}' doesn't match.")

    if settings.VERIFICATION_CODE_CHECK_EXPIRY_ON_CONSUME and is_expired(record, now):
        raise CodeExpiredError("The verification code is expired. Request a new one.")

    record.mark_used(now)
    db.add(record)
    db.flush()
    logger.info(
        "Consumed %s verification code id=%s for user_id=%s",
        purpose.value,
        record.id,
        user_id,
    )
    return record
