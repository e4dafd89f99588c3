import enum
from sqlalchemy import Integer, String, DateTime, Boolean, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from ..core.database import Base


class CodePurpose(str, enum.Enum):
    COMMENT = "comment"
    NEWSLETTER = "newsletter"
    PASSWORD_RESET = "password-reset"


class OneTimeCode(Base):
    __tablename__ = "one_time_codes"
    __table_args__ = (Index("ix_one_time_codes_lookup", "email", "purpose", "consumed"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    consumed: Mapped[bool] = mapped_column(Boolean, default=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    # Handle returned to the client and the pending action it unlocks
    verification_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
