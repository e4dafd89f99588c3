import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.email import Mailer
from ..core.errors import NotFound
from ..core.pagination import PageParams, page_params, paginate
from ..dependencies import client_ip, get_mailer
from ..models.ebook import Ebook, EbookUser, DOWNLOAD_TYPE_USER
from ..schemas.common import ok, dump, dump_all
from ..schemas.ebook import EbookOut, DownloadRequest
from ..services.ebooks import count_downloads, deliver, download_url
from ..services.verification import normalize_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ebooks", tags=["ebooks"])

ACTIVE = 1


@router.get("")
def list_ebooks(
    category: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params(default_limit=12)),
    db: Session = Depends(get_db),
):
    query = db.query(Ebook).filter(Ebook.status == ACTIVE)
    if category:
        query = query.filter(Ebook.category == category)
    if featured:
        query = query.filter(Ebook.featured == True)  # noqa: E712
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Ebook.name.ilike(pattern), Ebook.description.ilike(pattern)))
    ebooks, pagination = paginate(query.order_by(Ebook.position, Ebook.created_at.desc(), Ebook.id.desc()), params)
    return ok(dump_all(EbookOut, ebooks), pagination=pagination)


@router.get("/popular")
def popular_ebooks(limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    ebooks = (
        db.query(Ebook)
        .filter(Ebook.status == ACTIVE)
        .order_by(Ebook.download_count.desc(), Ebook.id)
        .limit(limit)
        .all()
    )
    return ok(dump_all(EbookOut, ebooks))


@router.get("/{id_or_slug}")
def get_ebook(id_or_slug: str, db: Session = Depends(get_db)):
    match = Ebook.slug == id_or_slug
    if id_or_slug.isdigit():
        match = or_(Ebook.id == int(id_or_slug), match)
    ebook = db.query(Ebook).filter(match, Ebook.status == ACTIVE).first()
    if not ebook:
        raise NotFound("Ebook not found")
    ebook.view_count = Ebook.view_count + 1
    db.commit()
    db.refresh(ebook)
    return ok(dump(EbookOut, ebook))


@router.post("/download")
async def download_ebook(
    payload: DownloadRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    ebook = db.get(Ebook, payload.ebook_id)
    if not ebook or ebook.status != ACTIVE:
        raise NotFound("Ebook not found or inactive")

    email = normalize_email(payload.email)
    record = EbookUser(
        name=payload.name,
        email=email,
        mobile=payload.mobile or "",
        country_code=payload.country_code or "+91",
        state_id=payload.state_id,
        city_id=payload.city_id,
        ebook_name=ebook.name,
        ebook_id=ebook.id,
        hear_about=payload.hear_about,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        type=DOWNLOAD_TYPE_USER,
        type_description="user-direct-download",
        sent_by="user",
        email_sent=False,
    )
    db.add(record)
    count_downloads(db, ebook)
    db.commit()

    url = download_url(ebook)
    # the link is returned even when the email cannot be sent
    record.email_sent = await deliver(mailer, email, payload.name, ebook)
    db.commit()
    if not record.email_sent:
        logger.warning("Download email for ebook %d to %s was not delivered", ebook.id, email)

    return ok(
        {"downloadUrl": url, "ebookName": ebook.name, "fileName": ebook.brochure, "email": email},
        "Ebook sent to your email successfully!",
    )
