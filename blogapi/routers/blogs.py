import logging
import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from slugify import slugify
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..core.blob import BlobStore
from ..core.database import get_db
from ..core.errors import Conflict, Forbidden, NotFound, ValidationFailed, UpstreamFailure
from ..core.pagination import PageParams, page_params, paginate
from ..dependencies import author_required, get_blob_store, is_admin
from ..models.blog import Blog, BlogCategory, BlogTag, PLACEHOLDER_COVER
from ..models.comment import BlogComment
from ..models.user import User
from ..schemas.blog import BlogCreate, BlogUpdate, BlogOut, RelatedBlogOut
from ..schemas.common import ok, dump, dump_all, parse_payload
from ..services import post_counts
from ..services.uploads import COVER, check_type, store_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blogs", tags=["blogs"])

PREVIEW_COVER = "https://placehold.co/800x400?font=roboto&text=Image+Preview"
FAILED_COVER = "https://placehold.co/800x400?font=roboto&text=Upload+Failed"

SORTS = {
    "-publishedAt": (Blog.published_at.desc(),),
    "publishedAt": (Blog.published_at.asc(),),
    "-createdAt": (Blog.created_at.desc(),),
    "createdAt": (Blog.created_at.asc(),),
    "-viewCount": (Blog.view_count.desc(),),
    "position": (Blog.position.asc(), Blog.published_at.desc()),
    "title": (Blog.title.asc(),),
}

TAG_RE = re.compile(r"<[^>]*>")


def make_excerpt(description: str) -> str:
    return TAG_RE.sub("", description)[:297] + "..."


def blog_form(
    title: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    cover_image_url: Optional[str] = Form(None, alias="coverImageUrl"),
    excerpt: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_video: Optional[str] = Form(None, alias="isVideo"),
    video_type: Optional[str] = Form(None, alias="videoType"),
    video_url: Optional[str] = Form(None, alias="videoUrl"),
    status: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None, alias="categoryId"),
    position: Optional[str] = Form(None),
    meta_title: Optional[str] = Form(None, alias="metaTitle"),
    meta_description: Optional[str] = Form(None, alias="metaDescription"),
    meta_keywords: Optional[str] = Form(None, alias="metaKeywords"),
) -> dict:
    """Collect the submitted blog form fields, dropping those left out."""
    fields = {
        "title": title,
        "slug": slug,
        # editors send the body as ``content``
        "description": content or description,
        "cover_image_url": cover_image_url,
        "excerpt": excerpt,
        "tags": tags,
        "is_video": is_video,
        "video_type": video_type,
        "video_url": video_url,
        "status": status,
        "category_id": category_id,
        "position": position,
        "meta_title": meta_title,
        "meta_description": meta_description,
        "meta_keywords": meta_keywords,
    }
    return {k: v for k, v in fields.items() if v is not None}


async def resolve_cover(store: BlobStore, file: Optional[UploadFile]) -> Optional[str]:
    """Upload the cover image, falling back to a placeholder URL when storage fails."""
    if file is None or not file.filename:
        return None
    check_type(file, COVER)
    if not store.available:
        logger.warning("Blob storage not configured; using placeholder cover for %s", file.filename)
        return PREVIEW_COVER
    try:
        stored = await store_upload(store, file, COVER)
    except UpstreamFailure as e:
        logger.warning("Cover upload failed, using placeholder: %s", e)
        return FAILED_COVER
    return stored.url


def _load_blog(db: Session, blog_id: int) -> Blog:
    blog = (
        db.query(Blog)
        .options(joinedload(Blog.category), joinedload(Blog.author))
        .filter(Blog.id == blog_id)
        .first()
    )
    if not blog:
        raise NotFound("Blog not found")
    return blog


def _check_owner(user: User, blog: Blog, action: str):
    if not is_admin(user) and blog.author_id != user.id:
        raise Forbidden(f"You do not have permission to {action} this blog")


def _check_category(db: Session, category_id: int):
    if not db.get(BlogCategory, category_id):
        raise ValidationFailed("Category not found")


def _check_slug(db: Session, slug: str, exclude_id: Optional[int] = None):
    if not slug:
        raise ValidationFailed("Blog slug cannot be empty")
    query = db.query(Blog.id).filter(Blog.slug == slug)
    if exclude_id is not None:
        query = query.filter(Blog.id != exclude_id)
    if query.first():
        raise Conflict("Blog with this slug already exists")


@router.get("")
def list_blogs(
    status: str = "published",
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "-publishedAt",
    params: PageParams = Depends(page_params()),
    db: Session = Depends(get_db),
):
    query = db.query(Blog).options(joinedload(Blog.category), joinedload(Blog.author))
    if status and status != "all":
        query = query.filter(Blog.status == status)
    if category:
        found = db.query(BlogCategory).filter(BlogCategory.slug == category).first()
        if found:
            query = query.filter(Blog.category_id == found.id)
    if tag:
        query = query.filter(Blog.tag_rows.any(BlogTag.tag == tag))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Blog.title.ilike(pattern), Blog.description.ilike(pattern), Blog.excerpt.ilike(pattern)))
    order = SORTS.get(sort, SORTS["-publishedAt"])
    blogs, pagination = paginate(query.order_by(*order, Blog.id.desc()), params)
    return ok(dump_all(BlogOut, blogs), pagination=pagination)


@router.get("/slug/{slug}")
def get_blog_by_slug(slug: str, db: Session = Depends(get_db)):
    blog = db.query(Blog).filter(Blog.slug == slug).first()
    if not blog:
        raise NotFound("Blog not found")
    db.query(Blog).filter(Blog.id == blog.id).update(
        {Blog.view_count: Blog.view_count + 1}, synchronize_session=False
    )
    db.commit()
    return ok(dump(BlogOut, _load_blog(db, blog.id)))


@router.get("/{blog_id}/related")
def related_blogs(blog_id: int, limit: int = Query(3, ge=1, le=20), db: Session = Depends(get_db)):
    blog = db.get(Blog, blog_id)
    if not blog:
        raise NotFound("Blog not found")
    matches = [Blog.category_id == blog.category_id]
    if blog.tags:
        matches.append(Blog.tag_rows.any(BlogTag.tag.in_(blog.tags)))
    related = (
        db.query(Blog)
        .filter(Blog.id != blog.id, Blog.status == "published", or_(*matches))
        .order_by(Blog.published_at.desc(), Blog.id.desc())
        .limit(limit)
        .all()
    )
    return ok(dump_all(RelatedBlogOut, related))


@router.get("/{blog_id}")
def get_blog(blog_id: int, db: Session = Depends(get_db), _: User = Depends(author_required)):
    return ok(dump(BlogOut, _load_blog(db, blog_id)))


@router.post("", status_code=201)
async def create_blog(
    form: dict = Depends(blog_form),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    user: User = Depends(author_required),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    payload = parse_payload(BlogCreate, form)
    slug = slugify(payload.slug or payload.title)
    _check_slug(db, slug)
    _check_category(db, payload.category_id)

    cover = await resolve_cover(store, cover_image) or payload.cover_image_url or PLACEHOLDER_COVER
    now = datetime.utcnow()
    blog = Blog(
        title=payload.title,
        slug=slug,
        description=payload.description,
        cover_image=cover,
        excerpt=payload.excerpt or make_excerpt(payload.description),
        is_video=bool(payload.is_video),
        video_type=payload.video_type,
        video_url=payload.video_url,
        status=payload.status,
        published_at=now if payload.status == "published" else None,
        position=payload.position or 0,
        meta_title=payload.meta_title,
        meta_description=payload.meta_description,
        meta_keywords=payload.meta_keywords,
        category_id=payload.category_id,
        author_id=user.id,
    )
    blog.tags = payload.tags or []
    db.add(blog)
    db.flush()
    post_counts.apply_transition(db, None, None, blog.status, blog.category_id)
    db.commit()
    logger.info("Blog %d (%s) created by %s", blog.id, blog.status, user.email)
    return ok(dump(BlogOut, _load_blog(db, blog.id)), "Blog created successfully")


@router.put("/{blog_id}")
async def update_blog(
    blog_id: int,
    form: dict = Depends(blog_form),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    user: User = Depends(author_required),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    blog = _load_blog(db, blog_id)
    _check_owner(user, blog, "update")
    payload = parse_payload(BlogUpdate, form)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "slug" in changes:
        changes["slug"] = slugify(changes["slug"])
        _check_slug(db, changes["slug"], blog.id)
    if "category_id" in changes:
        _check_category(db, changes["category_id"])

    cover_url = changes.pop("cover_image_url", None)
    cover = await resolve_cover(store, cover_image) or cover_url
    if cover:
        blog.cover_image = cover
    if "tags" in changes:
        blog.tags = changes.pop("tags")

    old_status, old_category_id = blog.status, blog.category_id
    for field, value in changes.items():
        setattr(blog, field, value)
    if blog.status == "published" and blog.published_at is None:
        blog.published_at = datetime.utcnow()

    db.flush()
    post_counts.apply_transition(db, old_status, old_category_id, blog.status, blog.category_id)
    db.commit()
    logger.info("Blog %d updated by %s", blog.id, user.email)
    return ok(dump(BlogOut, _load_blog(db, blog.id)), "Blog updated successfully")


@router.delete("/{blog_id}")
def delete_blog(blog_id: int, user: User = Depends(author_required), db: Session = Depends(get_db)):
    blog = _load_blog(db, blog_id)
    _check_owner(user, blog, "delete")
    post_counts.apply_transition(db, blog.status, blog.category_id, None, None)
    db.query(BlogComment).filter(BlogComment.blog_id == blog.id).delete(synchronize_session=False)
    db.delete(blog)
    db.commit()
    logger.info("Blog %d deleted by %s", blog_id, user.email)
    return ok(message="Blog deleted successfully")
