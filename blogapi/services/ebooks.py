"""Ebook delivery and download analytics."""
import asyncio
import csv
import io
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.email import Mailer, ebook_download_email, send_message
from ..models.ebook import Ebook, EbookUser, DOWNLOAD_TYPE_USER, DOWNLOAD_TYPE_ADMIN

logger = logging.getLogger(__name__)

SEND_CONCURRENCY = 5

CSV_HEADER = ["Name", "Email", "Mobile", "Ebook Name", "Type", "Type Description", "Downloaded At", "IP Address"]


def download_url(ebook: Ebook) -> str:
    """Brochures are either absolute URLs or bare file names under ``FILE_BASE_URL``."""
    if ebook.brochure.startswith("http"):
        return ebook.brochure
    return f"{settings.FILE_BASE_URL.rstrip('/')}/uploads/ebook/{ebook.brochure}"


def count_downloads(db: Session, ebook: Ebook, amount: int = 1):
    db.execute(
        update(Ebook)
        .where(Ebook.id == ebook.id)
        .values(download_count=Ebook.download_count + amount)
        .execution_options(synchronize_session=False)
    )


async def deliver(mailer: Mailer, email: str, name: str, ebook: Ebook) -> bool:
    """Email the download link. A disabled mailer counts as delivered."""
    sent = await send_message(mailer, email, ebook_download_email(name, ebook.name, download_url(ebook)))
    if not mailer.enabled:
        return True
    return sent


async def deliver_many(mailer: Mailer, emails: list[str], ebook: Ebook) -> tuple[list[str], list[str]]:
    semaphore = asyncio.Semaphore(SEND_CONCURRENCY)

    async def send_one(email: str) -> bool:
        async with semaphore:
            return await deliver(mailer, email, "Valued User", ebook)

    results = await asyncio.gather(*(send_one(e) for e in emails))
    sent = [e for e, ok in zip(emails, results) if ok]
    failed = [e for e, ok in zip(emails, results) if not ok]
    return sent, failed


def filter_downloads(
    query,
    search: Optional[str] = None,
    ebook_id: Optional[int] = None,
    download_type: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(EbookUser.email.ilike(pattern), EbookUser.name.ilike(pattern)))
    if ebook_id:
        query = query.filter(EbookUser.ebook_id == ebook_id)
    if download_type:
        query = query.filter(EbookUser.type == download_type)
    if start_date and end_date:
        query = query.filter(EbookUser.created_at >= start_date, EbookUser.created_at <= end_date)
    return query


def dashboard(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()

    def count(*criteria) -> int:
        return db.query(func.count(EbookUser.id)).filter(*criteria).scalar() or 0

    top = (
        db.query(EbookUser.ebook_id, func.max(EbookUser.ebook_name), func.count(EbookUser.id).label("count"))
        .group_by(EbookUser.ebook_id)
        .order_by(func.count(EbookUser.id).desc())
        .limit(10)
        .all()
    )
    day = func.date(EbookUser.created_at)
    by_date = (
        db.query(day, func.count(EbookUser.id))
        .filter(EbookUser.created_at >= now - timedelta(days=30))
        .group_by(day)
        .order_by(day)
        .all()
    )
    return {
        "totalDownloads": count(),
        "userDownloads": count(EbookUser.type == DOWNLOAD_TYPE_USER),
        "adminSends": count(EbookUser.type == DOWNLOAD_TYPE_ADMIN),
        "uniqueUsers": db.query(func.count(func.distinct(EbookUser.email))).scalar() or 0,
        "topEbooks": [{"ebookId": ebook_id, "ebookName": name, "count": n} for ebook_id, name, n in top],
        "downloadsByDate": [{"date": str(d), "count": n} for d, n in by_date],
    }


def email_counts(db: Session, ebook_id: int) -> dict:
    base = db.query(func.count(EbookUser.id)).filter(EbookUser.ebook_id == ebook_id)
    return {
        "totalCount": base.scalar() or 0,
        "userDownloads": base.filter(EbookUser.type == DOWNLOAD_TYPE_USER).scalar() or 0,
        "adminSends": base.filter(EbookUser.type == DOWNLOAD_TYPE_ADMIN).scalar() or 0,
        "uniqueEmails": db.query(func.count(func.distinct(EbookUser.email)))
        .filter(EbookUser.ebook_id == ebook_id)
        .scalar() or 0,
    }


def export_csv(rows) -> str:
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([
            row.name or "",
            row.email or "",
            row.mobile or "",
            row.ebook_name or "",
            "User Download" if row.type == DOWNLOAD_TYPE_USER else "Admin Send",
            row.type_description or "",
            (row.downloaded_at or row.created_at).strftime("%Y-%m-%d %H:%M:%S"),
            row.ip_address or "",
        ])
    return out.getvalue()
