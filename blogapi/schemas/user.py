from datetime import datetime
from typing import Optional, Literal

from pydantic import EmailStr, Field

from .common import CamelModel

Role = Literal["admin", "author", "user"]


class UserOut(CamelModel):
    id: int
    email: str
    name: str
    role: str
    bio: Optional[str] = None
    image: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelModel):
    id: int
    name: str
    email: str


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=1, max_length=100)
    role: Role = "user"
    bio: Optional[str] = None
    image: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    youtube: Optional[str] = None


class UserUpdate(CamelModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[Role] = None
    bio: Optional[str] = None
    image: Optional[str] = None
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    is_active: Optional[bool] = None


class PasswordUpdate(CamelModel):
    password: str = Field(min_length=6, max_length=128)
