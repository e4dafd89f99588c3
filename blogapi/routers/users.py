from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import Conflict, NotFound, ValidationFailed
from ..core.pagination import PageParams, page_params, paginate
from ..core.security import get_password_hash
from ..dependencies import admin_required
from ..models.blog import Blog
from ..models.user import User, ROLES
from ..schemas.common import ok, dump
from ..schemas.user import UserOut, UserCreate, UserUpdate, PasswordUpdate
from ..services.verification import normalize_email

router = APIRouter(prefix="/admin/users", tags=["users"])


def _post_count(db: Session, user_id: int) -> int:
    return db.query(func.count(Blog.id)).filter(Blog.author_id == user_id).scalar() or 0


def _user_with_count(db: Session, user: User) -> dict:
    data = dump(UserOut, user)
    data["postCount"] = _post_count(db, user.id)
    return data


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@router.get("")
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    params: PageParams = Depends(page_params()),
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    query = db.query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)
    users, pagination = paginate(query.order_by(User.created_at.desc(), User.id.desc()), params)
    return ok([_user_with_count(db, u) for u in users], pagination=pagination)


@router.get("/stats")
def user_stats(db: Session = Depends(get_db), _: User = Depends(admin_required)):
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    active = db.query(func.count(User.id)).filter(User.is_active == True).scalar()  # noqa: E712
    total = db.query(func.count(User.id)).scalar()
    return ok({
        "total": total,
        "byRole": {r: by_role.get(r, 0) for r in ROLES},
        "byStatus": {"active": active, "inactive": total - active},
    })


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), _: User = Depends(admin_required)):
    return ok(_user_with_count(db, _get_user(db, user_id)))


@router.post("", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), _: User = Depends(admin_required)):
    email = normalize_email(payload.email)
    if db.query(User).filter(User.email == email).first():
        raise Conflict("User with this email already exists")
    data = payload.model_dump(exclude={"password", "email"})
    user = User(email=email, password_hash=get_password_hash(payload.password), **data)
    db.add(user)
    db.commit()
    db.refresh(user)
    return ok(dump(UserOut, user), "User created successfully")


@router.put("/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    user = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("email"):
        changes["email"] = normalize_email(changes["email"])
        taken = db.query(User).filter(User.email == changes["email"], User.id != user.id).first()
        if taken:
            raise Conflict("Email already in use by another user")
    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return ok(dump(UserOut, user), "User updated successfully")


@router.patch("/{user_id}/password")
def update_password(
    user_id: int,
    payload: PasswordUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    user = _get_user(db, user_id)
    user.password_hash = get_password_hash(payload.password)
    db.commit()
    return ok(message="Password updated successfully")


@router.patch("/{user_id}/toggle-status")
def toggle_status(user_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_required)):
    if user_id == admin.id:
        raise ValidationFailed("You cannot deactivate your own account")
    user = _get_user(db, user_id)
    user.is_active = not user.is_active
    db.commit()
    db.refresh(user)
    state = "activated" if user.is_active else "deactivated"
    return ok(dump(UserOut, user), f"User {state} successfully")


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_required)):
    if user_id == admin.id:
        raise ValidationFailed("You cannot delete your own account")
    user = _get_user(db, user_id)
    posts = _post_count(db, user.id)
    if posts > 0:
        raise ValidationFailed(
            f"Cannot delete user with {posts} existing posts. Please reassign or delete their posts first."
        )
    db.delete(user)
    db.commit()
    return ok(message="User deleted successfully")
