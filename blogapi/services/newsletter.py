import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..core.email import Mailer, newsletter_welcome_email, send_message
from ..models.newsletter import Newsletter

logger = logging.getLogger(__name__)


def find_subscriber(db: Session, email: str) -> Optional[Newsletter]:
    return db.query(Newsletter).filter(Newsletter.email == email.strip().lower()).first()


async def subscribe_newsletter(db: Session, mailer: Mailer, email: str, name: Optional[str] = None) -> Newsletter:
    """Create or reactivate the subscription for ``email`` and send the welcome email."""
    email = email.strip().lower()
    now = datetime.utcnow()
    subscriber = find_subscriber(db, email)
    if subscriber is None:
        subscriber = Newsletter(email=email, name=name, is_active=True, subscribed_at=now)
        db.add(subscriber)
    else:
        subscriber.is_active = True
        subscriber.subscribed_at = now
        subscriber.unsubscribed_at = None
        if name:
            subscriber.name = name
    db.commit()
    db.refresh(subscriber)
    logger.info("Newsletter subscription active for %s", email)

    if not await send_message(mailer, email, newsletter_welcome_email(subscriber.name)):
        logger.warning("Welcome email to %s was not delivered", email)
    return subscriber


def unsubscribe(db: Session, subscriber: Newsletter) -> Newsletter:
    subscriber.is_active = False
    subscriber.unsubscribed_at = datetime.utcnow()
    db.commit()
    db.refresh(subscriber)
    logger.info("Newsletter subscription cancelled for %s", subscriber.email)
    return subscriber
