from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.email import Mailer
from ..core.errors import Conflict, NotFound
from ..dependencies import admin_required, get_mailer
from ..models.newsletter import Newsletter
from ..models.otp import CodePurpose
from ..models.user import User
from ..schemas.common import ok, dump, dump_all
from ..schemas.newsletter import SubscribeRequest, VerifyRequest, UnsubscribeRequest, SubscriberOut
from ..services.newsletter import find_subscriber, subscribe_newsletter, unsubscribe
from ..services.verification import issue_code, redeem_code, pending_payload

router = APIRouter(prefix="/newsletter", tags=["newsletter"])


@router.post("/subscribe")
async def subscribe(
    payload: SubscribeRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    existing = find_subscriber(db, payload.email)
    if existing and existing.is_active:
        raise Conflict("Email is already subscribed")
    handle = await issue_code(db, mailer, payload.email, CodePurpose.NEWSLETTER, {"name": payload.name})
    return ok(
        {
            "email": handle.email,
            "requiresOTP": True,
            "verificationId": handle.verification_id,
            "expiresAt": handle.expires_at.isoformat(),
        },
        "OTP sent to your email. Please verify to complete subscription.",
    )


@router.post("/verify", status_code=201)
async def verify(
    payload: VerifyRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    record = redeem_code(db, payload.email, CodePurpose.NEWSLETTER, payload.otp, payload.verification_id)
    stored = pending_payload(record) or {}
    name = stored.get("name") or payload.name
    subscriber = await subscribe_newsletter(db, mailer, record.email, name)
    return ok(dump(SubscriberOut, subscriber), "Successfully subscribed to newsletter")


@router.post("/unsubscribe")
def unsubscribe_email(payload: UnsubscribeRequest, db: Session = Depends(get_db)):
    subscriber = find_subscriber(db, payload.email)
    if not subscriber:
        raise NotFound("Subscription not found")
    unsubscribe(db, subscriber)
    return ok(message="Successfully unsubscribed from newsletter")


@router.get("")
def list_subscribers(
    is_active: bool = Query(True, alias="isActive"),
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    subscribers = (
        db.query(Newsletter)
        .filter(Newsletter.is_active == is_active)
        .order_by(Newsletter.subscribed_at.desc(), Newsletter.id.desc())
        .all()
    )
    return ok(dump_all(SubscriberOut, subscribers), count=len(subscribers))
