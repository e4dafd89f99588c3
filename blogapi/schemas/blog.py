from datetime import datetime
from typing import Optional, Literal

from pydantic import Field, field_validator

from .common import CamelModel, split_list
from .user import UserSummary

BlogStatus = Literal["draft", "published", "archived"]
CategoryStatus = Literal["active", "inactive"]


# ==================== Categories ====================

class CategoryCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = Field(default=None, max_length=300)
    status: CategoryStatus = "active"
    position: int = 0


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = Field(default=None, max_length=300)
    status: Optional[CategoryStatus] = None
    position: Optional[int] = None


class CategoryOut(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    status: str
    position: int
    post_count: int
    created_at: datetime
    updated_at: datetime


class CategorySummary(CamelModel):
    id: int
    name: str
    slug: str


# ==================== Blogs ====================

class BlogFields(CamelModel):
    slug: Optional[str] = Field(default=None, max_length=220)
    cover_image_url: Optional[str] = None
    excerpt: Optional[str] = Field(default=None, max_length=300)
    tags: Optional[list[str]] = None
    is_video: Optional[bool] = None
    video_type: Optional[Literal["file", "embed"]] = None
    video_url: Optional[str] = None
    position: Optional[int] = None
    meta_title: Optional[str] = Field(default=None, max_length=60)
    meta_description: Optional[str] = Field(default=None, max_length=160)
    meta_keywords: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, v):
        return split_list(v)


class BlogCreate(BlogFields):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    status: BlogStatus = "draft"
    category_id: int


class BlogUpdate(BlogFields):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[BlogStatus] = None
    category_id: Optional[int] = None


class BlogOut(CamelModel):
    id: int
    title: str
    slug: str
    description: str
    cover_image: str
    excerpt: Optional[str] = None
    tags: list[str] = []
    is_video: bool
    video_type: Optional[str] = None
    video_url: Optional[str] = None
    status: str
    published_at: Optional[datetime] = None
    view_count: int
    position: int
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    category_id: int
    author_id: int
    category: Optional[CategorySummary] = None
    author: Optional[UserSummary] = None
    created_at: datetime
    updated_at: datetime


class RelatedBlogOut(CamelModel):
    id: int
    title: str
    slug: str
    cover_image: str
    excerpt: Optional[str] = None
    published_at: Optional[datetime] = None
