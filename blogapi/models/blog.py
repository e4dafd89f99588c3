from sqlalchemy import Integer, String, DateTime, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from ..core.database import Base
from .user import User  # noqa: F401

BLOG_STATUSES = ("draft", "published", "archived")
CATEGORY_STATUSES = ("active", "inactive")
PLACEHOLDER_COVER = "https://placehold.co/800x400?font=roboto"


class BlogCategory(Base):
    __tablename__ = "blog_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(300), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    # Denormalized count of published blogs; see services.post_counts
    post_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Blog(Base):
    __tablename__ = "blogs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(220), unique=True, index=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cover_image: Mapped[str] = mapped_column(String(1024), default=PLACEHOLDER_COVER)
    excerpt: Mapped[str | None] = mapped_column(String(300), nullable=True)
    is_video: Mapped[bool] = mapped_column(Boolean, default=False)
    video_type: Mapped[str | None] = mapped_column(String(10), nullable=True)  # file, embed
    video_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    position: Mapped[int] = mapped_column(Integer, default=0)
    meta_title: Mapped[str | None] = mapped_column(String(60), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(String(160), nullable=True)
    meta_keywords: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("blog_categories.id"), nullable=False, index=True)
    author_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category: Mapped["BlogCategory"] = relationship("BlogCategory")
    author: Mapped["User"] = relationship("User")
    tag_rows: Mapped[list["BlogTag"]] = relationship(
        "BlogTag", back_populates="blog", cascade="all, delete-orphan", order_by="BlogTag.id"
    )

    @property
    def tags(self) -> list[str]:
        return [t.tag for t in self.tag_rows]

    @tags.setter
    def tags(self, values: list[str]):
        wanted = []
        for value in values or []:
            value = value.strip()
            if value and value not in wanted:
                wanted.append(value)
        # Reuse surviving rows so (blog_id, tag) never collides during flush
        existing = {t.tag: t for t in self.tag_rows}
        self.tag_rows = [existing.get(v) or BlogTag(tag=v) for v in wanted]


class BlogTag(Base):
    __tablename__ = "blog_tags"
    __table_args__ = (UniqueConstraint("blog_id", "tag"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blog_id: Mapped[int] = mapped_column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, index=True)
    tag: Mapped[str] = mapped_column(String(60), nullable=False, index=True)

    blog: Mapped["Blog"] = relationship("Blog", back_populates="tag_rows")
