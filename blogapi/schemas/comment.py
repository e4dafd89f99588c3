from datetime import datetime
from typing import Optional, Literal

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel, OtpCode

CommentStatus = Literal["pending", "approved", "rejected"]


class CommentSubmit(CamelModel):
    blog_id: int
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    mobile: Optional[str] = Field(default=None, max_length=30)
    country_code: str = Field(default="+1", max_length=8)
    comment: str = Field(min_length=10, max_length=1000)
    hear_about: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name", "comment")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class CommentVerify(CamelModel):
    """Verification request. Only ``email`` and ``otp`` are required when
    the code was issued with a stored comment; the other fields are a
    fallback for codes without one."""

    email: EmailStr
    otp: OtpCode
    verification_id: Optional[str] = None
    blog_id: Optional[int] = None
    name: Optional[str] = None
    mobile: Optional[str] = None
    country_code: Optional[str] = None
    comment: Optional[str] = None
    hear_about: Optional[str] = None


class ModerateRequest(CamelModel):
    status: CommentStatus


class CommentBlog(CamelModel):
    id: int
    title: str
    slug: str


class CommentOut(CamelModel):
    id: int
    name: str
    email: str
    mobile: Optional[str] = None
    country_code: str
    comment: str
    hear_about: Optional[str] = None
    status: str
    blog_id: int
    blog: Optional[CommentBlog] = None
    created_at: datetime
    updated_at: datetime


class PublicCommentOut(CamelModel):
    id: int
    name: str
    comment: str
    status: str
    blog_id: int
    created_at: datetime
