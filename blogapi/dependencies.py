from fastapi import Request

from .core.blob import BlobStore, UnavailableBlobStore
from .core.email import Mailer, DisabledMailer
from .core.security import require_roles
from .models.user import User


def get_mailer(request: Request) -> Mailer:
    return getattr(request.app.state, "mailer", None) or DisabledMailer()


def get_blob_store(request: Request) -> BlobStore:
    return getattr(request.app.state, "blob_store", None) or UnavailableBlobStore()


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


admin_required = require_roles("admin")
author_required = require_roles("author", "admin")


def is_admin(user: User) -> bool:
    return user.role == "admin"
