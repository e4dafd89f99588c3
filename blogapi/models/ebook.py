from sqlalchemy import Integer, String, DateTime, Boolean, Text, ForeignKey, JSON, BigInteger
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from ..core.database import Base

DOWNLOAD_TYPE_USER = 1
DOWNLOAD_TYPE_ADMIN = 2


class Ebook(Base):
    __tablename__ = "ebooks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(280), unique=True, index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    image: Mapped[str] = mapped_column(String(1024), nullable=False)
    brochure: Mapped[str] = mapped_column(String(1024), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    publish_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    book_language: Mapped[str] = mapped_column(String(50), default="English")
    status: Mapped[int] = mapped_column(Integer, default=1, index=True)  # 1 active, 0 inactive
    position: Mapped[int] = mapped_column(Integer, default=0)
    download_count: Mapped[int] = mapped_column(Integer, default=0)
    view_count: Mapped[int] = mapped_column(Integer, default=0)
    featured: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EbookUser(Base):
    """One row per ebook delivered to an email address."""
    __tablename__ = "ebook_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    mobile: Mapped[str | None] = mapped_column(String(30), nullable=True)
    country_code: Mapped[str] = mapped_column(String(8), default="+91")
    state_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    city_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ebook_name: Mapped[str] = mapped_column(String(255), nullable=False)
    ebook_id: Mapped[int] = mapped_column(Integer, ForeignKey("ebooks.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[int] = mapped_column(Integer, default=DOWNLOAD_TYPE_USER, index=True)
    type_description: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hear_about: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    downloaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    email_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    sent_by: Mapped[str] = mapped_column(String(10), default="user")
    sent_by_user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ebook: Mapped["Ebook"] = relationship("Ebook")
