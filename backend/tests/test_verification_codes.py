from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from authapi.core import config as app_config
from authapi.core.errors import (
    CodeAlreadyUsedError,
    CodeExpiredError,
    CodeMismatchError,
    CodeNotFoundError,
)
from authapi.models.verification_code import CodePurpose, VerificationCode
from authapi.services import verification_codes
from authapi.services.verification_codes import as_utc, consume_code, resolve_code


def _codes(db: Session, user_id: int, purpose: CodePurpose) -> list[VerificationCode]:
    return (
        db.query(VerificationCode)
        .filter(VerificationCode.user_id == user_id, VerificationCode.purpose == purpose.value)
        .order_by(VerificationCode.id.asc())
        .all()
    )


def _expire(db: Session, record: VerificationCode) -> None:
    record.expiration_time = datetime.now(timezone.utc) - timedelta(seconds=1)
    db.commit()


def test_resolve_creates_first_code(db_session: Session, make_user):
    user = make_user(verified=False)

    before = datetime.now(timezone.utc)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    db_session.commit()

    assert resolved.just_created is True
    assert re.fullmatch(r"[0-9]{6}", resolved.code)

    rows = _codes(db_session, user.id, CodePurpose.REGISTER)
    assert len(rows) == 1
    assert rows[0].used is False
    expires = as_utc(rows[0].expiration_time)
    assert before + timedelta(seconds=55) <= expires <= before + timedelta(seconds=65)


def test_resolve_reuses_live_code(db_session: Session, make_user):
    user = make_user(verified=False)

    first = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    db_session.commit()
    second = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    db_session.commit()

    assert second.just_created is False
    assert second.record.id == first.record.id
    assert second.code == first.code
    assert len(_codes(db_session, user.id, CodePurpose.REGISTER)) == 1


def test_resolve_refreshes_expired_code_in_place(db_session: Session, make_user, monkeypatch):
    user = make_user(verified=False)

    first = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    first.record.code = "000000"
    _expire(db_session, first.record)

    monkeypatch.setattr(verification_codes, "generate_verification_code", lambda: "111111")
    refreshed = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    db_session.commit()

    assert refreshed.just_created is False
    assert refreshed.record.id == first.record.id
    assert refreshed.code == "111111"
    assert refreshed.record.used is False
    assert refreshed.expires_at > datetime.now(timezone.utc)
    assert len(_codes(db_session, user.id, CodePurpose.REGISTER)) == 1


def test_resolve_respects_configured_length_and_ttl(db_session: Session, make_user):
    app_config.settings.VERIFICATION_CODE_LENGTH = 8
    app_config.settings.VERIFICATION_CODE_TTL_SECONDS = 600
    user = make_user(verified=False)

    resolved = resolve_code(db_session, user.id, CodePurpose.PASSWORD_RESET)
    db_session.commit()

    assert re.fullmatch(r"[0-9]{8}", resolved.code)
    assert resolved.expires_at > datetime.now(timezone.utc) + timedelta(seconds=590)


def test_resolve_rejects_replay_of_consumed_register_code(db_session: Session, make_user):
    user = make_user(verified=False)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    consume_code(db_session, user.id, CodePurpose.REGISTER, resolved.code)
    db_session.commit()

    with pytest.raises(CodeAlreadyUsedError) as exc:
        resolve_code(db_session, user.id, CodePurpose.REGISTER)
    assert exc.value.status_code == 409


def test_resolve_issues_new_password_change_code_after_use(db_session: Session, make_user):
    user = make_user()
    first = resolve_code(db_session, user.id, CodePurpose.PASSWORD_CHANGE)
    consume_code(db_session, user.id, CodePurpose.PASSWORD_CHANGE, first.code)
    db_session.commit()

    second = resolve_code(db_session, user.id, CodePurpose.PASSWORD_CHANGE)
    db_session.commit()

    assert second.just_created is True
    assert second.record.id != first.record.id
    rows = _codes(db_session, user.id, CodePurpose.PASSWORD_CHANGE)
    assert [r.used for r in rows] == [True, False]


def test_purposes_are_independent(db_session: Session, make_user):
    user = make_user()
    change = resolve_code(db_session, user.id, CodePurpose.PASSWORD_CHANGE)
    reset = resolve_code(db_session, user.id, CodePurpose.PASSWORD_RESET)
    db_session.commit()

    assert change.record.id != reset.record.id
    with pytest.raises(CodeNotFoundError):
        consume_code(db_session, user.id, CodePurpose.REGISTER, change.code)


def test_consume_without_code_is_not_found(db_session: Session, make_user):
    user = make_user(verified=False)
    with pytest.raises(CodeNotFoundError) as exc:
        consume_code(db_session, user.id, CodePurpose.REGISTER, "123456")
    assert exc.value.status_code == 404


def test_consume_marks_code_used(db_session: Session, make_user):
    user = make_user(verified=False)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    db_session.commit()
    created_updated_at = as_utc(resolved.record.updated_at)

    record = consume_code(db_session, user.id, CodePurpose.REGISTER, resolved.code)
    db_session.commit()

    assert record.used is True
    assert as_utc(record.updated_at) >= created_updated_at


def test_consume_wrong_value_is_mismatch(db_session: Session, make_user):
    user = make_user(verified=False)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    resolved.record.code = "123456"
    db_session.commit()

    with pytest.raises(CodeMismatchError):
        consume_code(db_session, user.id, CodePurpose.REGISTER, "654321")

    db_session.rollback()
    assert _codes(db_session, user.id, CodePurpose.REGISTER)[0].used is False


def test_used_code_reports_already_used_for_any_value(db_session: Session, make_user):
    user = make_user(verified=False)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    resolved.record.code = "123456"
    consume_code(db_session, user.id, CodePurpose.REGISTER, "123456")
    db_session.commit()

    for supplied in ("123456", "000000", "not-a-code"):
        with pytest.raises(CodeAlreadyUsedError):
            consume_code(db_session, user.id, CodePurpose.REGISTER, supplied)

    assert _codes(db_session, user.id, CodePurpose.REGISTER)[0].used is True


def test_consume_expired_code_is_rejected(db_session: Session, make_user):
    user = make_user(verified=False)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    code = resolved.code
    _expire(db_session, resolved.record)

    with pytest.raises(CodeExpiredError):
        consume_code(db_session, user.id, CodePurpose.REGISTER, code)


def test_consume_expired_code_allowed_when_expiry_only_checked_at_issue(db_session: Session, make_user):
    app_config.settings.VERIFICATION_CODE_CHECK_EXPIRY_ON_CONSUME = False
    user = make_user(verified=False)
    resolved = resolve_code(db_session, user.id, CodePurpose.REGISTER)
    code = resolved.code
    _expire(db_session, resolved.record)

    record = consume_code(db_session, user.id, CodePurpose.REGISTER, code)
    assert record.used is True
