import asyncio
import json
from datetime import datetime, timedelta

import pytest

from blogapi.core.config import settings
from blogapi.core.email import DisabledMailer
from blogapi.models.otp import CodePurpose, OneTimeCode
from blogapi.services.verification import (
    AttemptsExhausted,
    InvalidOrExpiredCode,
    generate_code,
    issue_code,
    pending_payload,
    purge_expired_codes,
    redeem_code,
)


def issue(db, mailer, email="reader@blogmail.com", purpose=CodePurpose.NEWSLETTER, payload=None, now=None):
    return asyncio.run(issue_code(db, mailer, email, purpose, payload, now=now))


def stored(db, handle):
    db.expire_all()
    return db.query(OneTimeCode).filter(OneTimeCode.verification_id == handle.verification_id).one()


def test_generated_codes_are_six_digits():
    for _ in range(200):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()


def test_issue_persists_code_with_expiry_window(db, mailer):
    now = datetime(2026, 3, 1, 9, 0, 0)
    handle = issue(db, mailer, email="Reader@BlogMail.com", now=now)

    record = stored(db, handle)
    assert record.email == "reader@blogmail.com"
    assert record.expires_at == now + timedelta(seconds=600)
    assert not record.consumed
    assert record.attempts == 0
    assert handle.email_sent is True
    assert mailer.last_code("reader@blogmail.com") == record.code
    assert not hasattr(handle, "code")


def test_issue_keeps_code_when_email_fails(db, mailer):
    mailer.failing.add("reader@blogmail.com")
    handle = issue(db, mailer)
    assert handle.email_sent is False
    assert stored(db, handle).code


def test_issue_with_disabled_mailer(db):
    handle = issue(db, DisabledMailer())
    assert handle.email_sent is False
    assert stored(db, handle).consumed is False


def test_redeem_once_then_replay_fails(db, mailer):
    handle = issue(db, mailer)
    code = mailer.last_code("reader@blogmail.com")

    record = redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code)
    assert record.consumed is True

    with pytest.raises(InvalidOrExpiredCode):
        redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code)
    assert stored(db, handle).consumed is True


def test_redeem_after_expiry_fails(db, mailer):
    now = datetime.utcnow()
    issue(db, mailer, now=now)
    code = mailer.last_code("reader@blogmail.com")

    later = now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES, seconds=1)
    with pytest.raises(InvalidOrExpiredCode) as exc:
        redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code, now=later)
    assert exc.value.message == "Invalid or expired OTP"


def test_code_is_bound_to_its_purpose(db, mailer):
    issue(db, mailer, purpose=CodePurpose.COMMENT)
    code = mailer.last_code("reader@blogmail.com")
    with pytest.raises(InvalidOrExpiredCode):
        redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code)


def test_wrong_guesses_exhaust_attempts(db, mailer):
    handle = issue(db, mailer)
    code = mailer.last_code("reader@blogmail.com")
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(settings.OTP_MAX_ATTEMPTS):
        with pytest.raises(InvalidOrExpiredCode):
            redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, wrong)
    assert stored(db, handle).attempts == settings.OTP_MAX_ATTEMPTS

    with pytest.raises(AttemptsExhausted) as exc:
        redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code)
    assert exc.value.status_code == 400
    assert "Maximum OTP attempts exceeded" in exc.value.message

    # the counter stays capped
    with pytest.raises(InvalidOrExpiredCode):
        redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, wrong)
    assert stored(db, handle).attempts == settings.OTP_MAX_ATTEMPTS


def test_earlier_codes_stay_valid(db, mailer):
    first = issue(db, mailer)
    first_code = stored(db, first).code
    issue(db, mailer)

    record = redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, first_code)
    assert record.verification_id == first.verification_id


def test_verification_id_narrows_the_match(db, mailer):
    first = issue(db, mailer)
    second = issue(db, mailer)
    code = stored(db, first).code

    if stored(db, second).code != code:
        with pytest.raises(InvalidOrExpiredCode):
            redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code, verification_id=second.verification_id)
    record = redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code, verification_id=first.verification_id)
    assert record.verification_id == first.verification_id


def test_payload_is_stored_with_the_code(db, mailer):
    handle = issue(db, mailer, purpose=CodePurpose.COMMENT, payload={"blog_id": 7, "comment": "Great read, thanks!"})
    assert json.loads(stored(db, handle).payload)["blog_id"] == 7

    record = redeem_code(db, "reader@blogmail.com", CodePurpose.COMMENT, mailer.last_code("reader@blogmail.com"))
    assert pending_payload(record) == {"blog_id": 7, "comment": "Great read, thanks!"}


def test_purge_removes_only_expired_codes(db, mailer):
    now = datetime.utcnow()
    old = issue(db, mailer, now=now - timedelta(hours=1))
    fresh = issue(db, mailer, now=now)

    assert purge_expired_codes(db, now=now) == 1
    db.expire_all()
    ids = {r.verification_id for r in db.query(OneTimeCode).all()}
    assert ids == {fresh.verification_id}
    assert old.verification_id not in ids


def test_consume_loses_to_a_concurrent_redemption(db, mailer, monkeypatch):
    from blogapi.core.database import SessionLocal
    from blogapi.services import verification

    issue(db, mailer)
    code = mailer.last_code("reader@blogmail.com")
    real_update = verification.update

    def consumed_elsewhere_first(entity):
        with SessionLocal() as other:
            other.query(OneTimeCode).update({OneTimeCode.consumed: True})
            other.commit()
        return real_update(entity)

    monkeypatch.setattr(verification, "update", consumed_elsewhere_first)
    with pytest.raises(InvalidOrExpiredCode):
        redeem_code(db, "reader@blogmail.com", CodePurpose.NEWSLETTER, code)
