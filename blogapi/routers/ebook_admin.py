import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from slugify import slugify
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..core.blob import BlobStore
from ..core.database import get_db
from ..core.email import Mailer
from ..core.errors import Conflict, NotFound, UpstreamFailure, ValidationFailed
from ..core.pagination import PageParams, page_params, paginate
from ..dependencies import admin_required, get_blob_store, get_mailer
from ..models.ebook import Ebook, EbookUser, DOWNLOAD_TYPE_ADMIN
from ..models.user import User
from ..schemas.common import ok, dump, dump_all
from ..schemas.ebook import EbookCreate, EbookUpdate, EbookOut, EbookUserOut, SendEbookRequest, BulkSendRequest
from ..services import ebooks as delivery
from ..services.uploads import EBOOK_IMAGE, EBOOK_PDF, store_upload
from ..services.verification import normalize_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/ebooks", tags=["ebook-admin"], dependencies=[Depends(admin_required)])


def _get_ebook(db: Session, ebook_id: int) -> Ebook:
    ebook = db.get(Ebook, ebook_id)
    if not ebook:
        raise NotFound("Ebook not found")
    return ebook


def _ensure_slug_free(db: Session, slug: str, exclude_id: Optional[int] = None):
    if not slug:
        raise ValidationFailed("Ebook slug cannot be empty")
    query = db.query(Ebook.id).filter(Ebook.slug == slug)
    if exclude_id is not None:
        query = query.filter(Ebook.id != exclude_id)
    if query.first():
        raise Conflict("An ebook with this name already exists")


def _admin_record(ebook: Ebook, email: str, name: str, description: str, admin: User) -> EbookUser:
    return EbookUser(
        name=name,
        email=email,
        mobile="",
        country_code="+91",
        ebook_name=ebook.name,
        ebook_id=ebook.id,
        email_sent=True,
        type=DOWNLOAD_TYPE_ADMIN,
        type_description=description,
        sent_by="admin",
        sent_by_user_id=admin.id,
    )


# ==================== Uploads ====================

@router.post("/upload/image")
async def upload_ebook_image(
    file: Optional[UploadFile] = File(None),
    store: BlobStore = Depends(get_blob_store),
):
    if file is None or not file.filename:
        raise ValidationFailed("No file uploaded")
    stored = await store_upload(store, file, EBOOK_IMAGE)
    return ok(stored.to_dict(), "Image uploaded successfully")


@router.post("/upload/pdf")
async def upload_ebook_pdf(
    file: Optional[UploadFile] = File(None),
    store: BlobStore = Depends(get_blob_store),
):
    if file is None or not file.filename:
        raise ValidationFailed("No file uploaded")
    stored = await store_upload(store, file, EBOOK_PDF)
    return ok(stored.to_dict(), "PDF uploaded successfully")


# ==================== Ebooks ====================

@router.get("/ebooks")
def list_ebooks(
    search: Optional[str] = None,
    status: Optional[int] = None,
    params: PageParams = Depends(page_params(default_limit=20)),
    db: Session = Depends(get_db),
):
    query = db.query(Ebook)
    if status is not None:
        query = query.filter(Ebook.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Ebook.name.ilike(pattern), Ebook.description.ilike(pattern)))
    ebooks, pagination = paginate(query.order_by(Ebook.created_at.desc(), Ebook.id.desc()), params)
    return ok(dump_all(EbookOut, ebooks), pagination=pagination)


@router.post("/ebooks", status_code=201)
def create_ebook(payload: EbookCreate, db: Session = Depends(get_db)):
    slug = slugify(payload.slug or payload.name)
    _ensure_slug_free(db, slug)
    data = payload.model_dump(exclude={"slug", "language", "status", "position", "featured", "tags"})
    ebook = Ebook(
        slug=slug,
        tags=payload.tags or [],
        book_language=payload.language or "English",
        status=1 if payload.status is None else payload.status,
        position=payload.position or 0,
        featured=bool(payload.featured),
        **data,
    )
    db.add(ebook)
    db.commit()
    db.refresh(ebook)
    logger.info("Created ebook %d (%s)", ebook.id, ebook.slug)
    return ok(dump(EbookOut, ebook), "Ebook created successfully")


@router.put("/ebooks/{ebook_id}")
def update_ebook(ebook_id: int, payload: EbookUpdate, db: Session = Depends(get_db)):
    ebook = _get_ebook(db, ebook_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "slug" in changes:
        changes["slug"] = slugify(changes["slug"])
    elif changes.get("name") and changes["name"] != ebook.name:
        changes["slug"] = slugify(changes["name"])
    if "slug" in changes:
        _ensure_slug_free(db, changes["slug"], ebook.id)
    if "language" in changes:
        changes["book_language"] = changes.pop("language")
    for field, value in changes.items():
        setattr(ebook, field, value)
    db.commit()
    db.refresh(ebook)
    return ok(dump(EbookOut, ebook), "Ebook updated successfully")


@router.delete("/ebooks/{ebook_id}")
def delete_ebook(ebook_id: int, db: Session = Depends(get_db)):
    ebook = _get_ebook(db, ebook_id)
    db.query(EbookUser).filter(EbookUser.ebook_id == ebook.id).delete(synchronize_session=False)
    db.delete(ebook)
    db.commit()
    return ok(message="Ebook deleted successfully")


@router.get("/ebooks/{ebook_id}/email-count")
def ebook_email_count(ebook_id: int, db: Session = Depends(get_db)):
    _get_ebook(db, ebook_id)
    return ok(delivery.email_counts(db, ebook_id))


# ==================== Downloads ====================

@router.get("/downloads/dashboard")
def downloads_dashboard(db: Session = Depends(get_db)):
    return ok(delivery.dashboard(db))


@router.get("/downloads")
def list_downloads(
    search: Optional[str] = None,
    ebook_id: Optional[int] = Query(None, alias="ebookId"),
    download_type: Optional[int] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    params: PageParams = Depends(page_params(default_limit=50, max_limit=500)),
    db: Session = Depends(get_db),
):
    query = delivery.filter_downloads(
        db.query(EbookUser).options(joinedload(EbookUser.ebook)),
        search, ebook_id, download_type, start_date, end_date,
    )
    rows, pagination = paginate(query.order_by(EbookUser.created_at.desc(), EbookUser.id.desc()), params)
    return ok(dump_all(EbookUserOut, rows), pagination=pagination)


@router.get("/downloads/export")
def export_downloads(
    ebook_id: Optional[int] = Query(None, alias="ebookId"),
    download_type: Optional[int] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    query = delivery.filter_downloads(db.query(EbookUser), None, ebook_id, download_type, start_date, end_date)
    rows = query.order_by(EbookUser.created_at.desc(), EbookUser.id.desc()).all()
    return Response(
        content=delivery.export_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=ebook-downloads.csv"},
    )


# ==================== Sending ====================

@router.post("/send-ebook")
async def send_ebook(
    payload: SendEbookRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    admin: User = Depends(admin_required),
):
    ebook = _get_ebook(db, payload.ebook_id)
    email = normalize_email(payload.email)
    if not await delivery.deliver(mailer, email, payload.name or "Valued User", ebook):
        raise UpstreamFailure("Failed to send ebook", f"Email delivery to {email} failed")

    db.add(_admin_record(ebook, email, payload.name or "Admin Send", "admin-single-send", admin))
    delivery.count_downloads(db, ebook)
    db.commit()
    logger.info("Admin %s sent ebook %d to %s", admin.email, ebook.id, email)
    return ok({"email": email, "ebookName": ebook.name}, "Ebook sent successfully")


@router.post("/bulk-send-ebook")
async def bulk_send_ebook(
    payload: BulkSendRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    admin: User = Depends(admin_required),
):
    ebook = _get_ebook(db, payload.ebook_id)
    emails = list(dict.fromkeys(normalize_email(e) for e in payload.emails))
    sent, failed = await delivery.deliver_many(mailer, emails, ebook)

    db.add_all(_admin_record(ebook, email, "Bulk Send", "admin-bulk-send", admin) for email in sent)
    if sent:
        delivery.count_downloads(db, ebook, len(sent))
    db.commit()
    if failed:
        logger.warning("Bulk send of ebook %d: %d of %d emails failed", ebook.id, len(failed), len(emails))
    return ok(
        {
            "totalSent": len(sent),
            "totalFailed": len(failed),
            "successEmails": sent,
            "failedEmails": failed,
            "ebookName": ebook.name,
        },
        f"Sent to {len(sent)} emails",
    )
