from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from .common import CamelModel, OtpCode


class SubscribeRequest(CamelModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=100)


class VerifyRequest(CamelModel):
    email: EmailStr
    otp: OtpCode
    name: Optional[str] = Field(default=None, max_length=100)
    verification_id: Optional[str] = None


class UnsubscribeRequest(CamelModel):
    email: EmailStr


class SubscriberOut(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    is_active: bool
    subscribed_at: datetime
    unsubscribed_at: Optional[datetime] = None
    created_at: datetime
