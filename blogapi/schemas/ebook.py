from datetime import datetime
from typing import Optional, Literal

from pydantic import EmailStr, Field, field_validator

from .common import CamelModel, split_list


class EbookFields(CamelModel):
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[list[str]] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    page_count: Optional[int] = Field(default=None, ge=0)
    author: Optional[str] = Field(default=None, max_length=255)
    publish_year: Optional[int] = None
    language: Optional[str] = Field(default=None, max_length=50)
    status: Optional[Literal[0, 1]] = None
    position: Optional[int] = None
    featured: Optional[bool] = None

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v):
        return split_list(v)


class EbookCreate(EbookFields):
    name: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=280)
    image: str = Field(min_length=1)
    brochure: str = Field(min_length=1)


class EbookUpdate(EbookFields):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=280)
    image: Optional[str] = Field(default=None, min_length=1)
    brochure: Optional[str] = Field(default=None, min_length=1)


class EbookOut(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image: str
    brochure: str
    category: Optional[str] = None
    tags: list[str] = []
    file_size: Optional[int] = None
    page_count: Optional[int] = None
    author: Optional[str] = None
    publish_year: Optional[int] = None
    language: str = Field(validation_alias="book_language")
    status: int
    position: int
    download_count: int
    view_count: int
    featured: bool
    created_at: datetime
    updated_at: datetime


class DownloadRequest(CamelModel):
    ebook_id: int
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    mobile: Optional[str] = Field(default=None, max_length=30)
    country_code: Optional[str] = Field(default=None, max_length=8)
    state_id: Optional[int] = None
    city_id: Optional[int] = None
    hear_about: Optional[str] = Field(default=None, max_length=255)


class SendEbookRequest(CamelModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)
    ebook_id: int


class BulkSendRequest(CamelModel):
    ebook_id: int
    emails: list[EmailStr] = Field(min_length=1, max_length=500)


class EbookRef(CamelModel):
    id: int
    name: str
    slug: str


class EbookUserOut(CamelModel):
    id: int
    name: str
    email: str
    mobile: Optional[str] = None
    country_code: str
    state_id: Optional[int] = None
    city_id: Optional[int] = None
    ebook_name: str
    ebook_id: int
    ebook: Optional[EbookRef] = None
    type: int
    type_description: Optional[str] = None
    hear_about: Optional[str] = None
    ip_address: Optional[str] = None
    downloaded_at: datetime
    email_sent: bool
    sent_by: str
    sent_by_user_id: Optional[int] = None
    created_at: datetime
