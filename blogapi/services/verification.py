"""One-time code verification for email-gated actions.

A code moves through ``issued -> verified | expired | attempts exhausted``.
Issuing persists the code together with the pending action payload and
emails it; redeeming consumes it with a single conditional UPDATE so a
code unlocks its action at most once, even under concurrent submissions.
"""
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import update, delete
from sqlalchemy.orm import Session

from ..core.config import settings, otp_expires
from ..core.email import Mailer, otp_email, send_message
from ..core.errors import ValidationFailed
from ..models.otp import OneTimeCode, CodePurpose

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
DIGITS = "0123456789"


class InvalidOrExpiredCode(ValidationFailed):
    default_message = "Invalid or expired OTP"


class AttemptsExhausted(ValidationFailed):
    default_message = "Maximum OTP attempts exceeded. Please request a new OTP."


@dataclass
class CodeHandle:
    verification_id: str
    email: str
    purpose: str
    expires_at: datetime
    email_sent: bool


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(DIGITS) for _ in range(length))


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def issue_code(
    db: Session,
    mailer: Mailer,
    email: str,
    purpose: CodePurpose,
    payload: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> CodeHandle:
    """Persist a fresh code for (email, purpose) and email it.

    Earlier outstanding codes stay valid. A failed email does not roll
    back the stored code; it is only reported through ``email_sent``.
    """
    now = now or datetime.utcnow()
    email = normalize_email(email)
    record = OneTimeCode(
        email=email,
        code=generate_code(),
        purpose=purpose.value,
        expires_at=now + otp_expires(),
        consumed=False,
        attempts=0,
        verification_id=secrets.token_urlsafe(16),
        payload=json.dumps(payload, default=str) if payload is not None else None,
        created_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    if not mailer.enabled:
        logger.debug("Email disabled; %s code for %s is %s", purpose.value, email, record.code)
    sent = await send_message(mailer, email, otp_email(record.code, purpose.value))
    if not sent:
        logger.warning("OTP email for %s (%s) was not delivered", email, purpose.value)
    logger.info("Issued %s code %s for %s", purpose.value, record.verification_id, email)

    return CodeHandle(
        verification_id=record.verification_id,
        email=email,
        purpose=purpose.value,
        expires_at=record.expires_at,
        email_sent=sent,
    )


def _live_codes(db: Session, email: str, purpose: CodePurpose, now: datetime):
    return db.query(OneTimeCode).filter(
        OneTimeCode.email == email,
        OneTimeCode.purpose == purpose.value,
        OneTimeCode.consumed == False,  # noqa: E712
        OneTimeCode.expires_at > now,
    )


def redeem_code(
    db: Session,
    email: str,
    purpose: CodePurpose,
    code: str,
    verification_id: Optional[str] = None,
    now: Optional[datetime] = None,
    before_consume: Optional[Callable[[OneTimeCode], None]] = None,
) -> OneTimeCode:
    """Consume the matching live code or raise.

    A wrong guess counts against every live code of the same
    (email, purpose); once a code has used up its attempts it can no
    longer be redeemed even with the right value. With ``verification_id``
    only the code issued under that handle can match.

    ``before_consume`` receives the matched record before it is consumed;
    an exception raised there leaves the code unspent.
    """
    now = now or datetime.utcnow()
    email = normalize_email(email)
    code = (code or "").strip()

    candidates = _live_codes(db, email, purpose, now).filter(OneTimeCode.code == code)
    if verification_id:
        candidates = candidates.filter(OneTimeCode.verification_id == verification_id)
    record = (
        candidates
        .order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc())
        .first()
    )

    if record is None:
        bumped = (
            _live_codes(db, email, purpose, now)
            .filter(OneTimeCode.attempts < settings.OTP_MAX_ATTEMPTS)
            .update({OneTimeCode.attempts: OneTimeCode.attempts + 1}, synchronize_session=False)
        )
        db.commit()
        logger.info("Rejected %s code for %s (%d live code(s) charged an attempt)", purpose.value, email, bumped)
        raise InvalidOrExpiredCode()

    if record.attempts >= settings.OTP_MAX_ATTEMPTS:
        logger.info("Code %s for %s has no attempts left", record.verification_id, email)
        raise AttemptsExhausted()

    if before_consume is not None:
        before_consume(record)

    result = db.execute(
        update(OneTimeCode)
        .where(
            OneTimeCode.id == record.id,
            OneTimeCode.consumed == False,  # noqa: E712
            OneTimeCode.attempts < settings.OTP_MAX_ATTEMPTS,
        )
        .values(consumed=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        # Another request consumed it between the read and the update
        raise InvalidOrExpiredCode()

    db.refresh(record)
    logger.info("Redeemed %s code %s for %s", purpose.value, record.verification_id, email)
    return record


def pending_payload(record: OneTimeCode) -> Optional[dict[str, Any]]:
    if not record.payload:
        return None
    return json.loads(record.payload)


def purge_expired_codes(db: Session, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    result = db.execute(
        delete(OneTimeCode).where(OneTimeCode.expires_at <= now).execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info("Purged %d expired verification code(s)", result.rowcount)
    return result.rowcount
