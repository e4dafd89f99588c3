from typing import Optional

from fastapi import APIRouter, Depends
from slugify import slugify
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import Conflict, NotFound, ValidationFailed
from ..dependencies import admin_required
from ..models.blog import Blog, BlogCategory
from ..models.user import User
from ..schemas.blog import CategoryCreate, CategoryUpdate, CategoryOut
from ..schemas.common import ok, dump, dump_all

router = APIRouter(prefix="/categories", tags=["categories"])


def _get_category(db: Session, category_id: int) -> BlogCategory:
    category = db.get(BlogCategory, category_id)
    if not category:
        raise NotFound("Category not found")
    return category


def _ensure_unique(db: Session, name: str, slug: str, exclude_id: Optional[int] = None):
    query = db.query(BlogCategory).filter(or_(BlogCategory.name == name, BlogCategory.slug == slug))
    if exclude_id is not None:
        query = query.filter(BlogCategory.id != exclude_id)
    if query.first():
        raise Conflict("Category with this name or slug already exists")


@router.get("")
def list_categories(status: Optional[str] = "active", db: Session = Depends(get_db)):
    query = db.query(BlogCategory)
    if status and status != "all":
        query = query.filter(BlogCategory.status == status)
    categories = query.order_by(BlogCategory.position, BlogCategory.name).all()
    return ok(dump_all(CategoryOut, categories))


@router.get("/{slug}")
def get_category(slug: str, db: Session = Depends(get_db)):
    category = db.query(BlogCategory).filter(BlogCategory.slug == slug).first()
    if not category:
        raise NotFound("Category not found")
    return ok(dump(CategoryOut, category))


@router.post("", status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), _: User = Depends(admin_required)):
    name = payload.name.strip()
    slug = slugify(payload.slug or name)
    if not slug:
        raise ValidationFailed("Category slug cannot be empty")
    _ensure_unique(db, name, slug)
    category = BlogCategory(
        name=name,
        slug=slug,
        description=payload.description,
        status=payload.status,
        position=payload.position,
        post_count=0,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    return ok(dump(CategoryOut, category), "Category created successfully")


@router.put("/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    category = _get_category(db, category_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    if "slug" in changes:
        changes["slug"] = slugify(changes["slug"])
    elif "name" in changes and changes["name"] != category.name:
        changes["slug"] = slugify(changes["name"])
    _ensure_unique(db, changes.get("name", category.name), changes.get("slug", category.slug), category.id)
    for field, value in changes.items():
        setattr(category, field, value)
    db.commit()
    db.refresh(category)
    return ok(dump(CategoryOut, category), "Category updated successfully")


@router.delete("/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db), _: User = Depends(admin_required)):
    category = _get_category(db, category_id)
    in_use = db.query(func.count(Blog.id)).filter(Blog.category_id == category.id).scalar()
    if in_use:
        raise ValidationFailed(f"Cannot delete category with {in_use} existing posts. Please move them first.")
    db.delete(category)
    db.commit()
    return ok(message="Category deleted successfully")
