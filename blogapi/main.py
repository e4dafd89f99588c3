import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.blob import build_blob_store
from .core.config import settings
from .core.database import SessionLocal, init_db
from .core.email import build_mailer
from .core.errors import register_error_handlers
from .core.security import get_password_hash
from .models.user import User
from .routers.auth import router as auth_router
from .routers.blogs import router as blogs_router
from .routers.categories import router as categories_router
from .routers.comments import router as comments_router
from .routers.ebook_admin import router as ebook_admin_router
from .routers.ebooks import router as ebooks_router
from .routers.files import router as files_router
from .routers.newsletter import router as newsletter_router
from .routers.uploads import router as uploads_router
from .routers.users import router as users_router
from .services.verification import purge_expired_codes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def seed_admin():
    """Create the configured admin account on first start."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return
    email = settings.ADMIN_EMAIL.strip().lower()
    with SessionLocal() as db:
        if db.query(User).filter(User.email == email).first():
            return
        db.add(User(email=email, password_hash=get_password_hash(settings.ADMIN_PASSWORD), name="Admin", role="admin"))
        db.commit()
        logger.info("Seeded admin user %s", email)


def purge_codes() -> int:
    with SessionLocal() as db:
        return purge_expired_codes(db)


async def purge_codes_periodically(interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(purge_codes)
        except Exception:
            logger.exception("Purging expired verification codes failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    seed_admin()
    app.state.mailer = build_mailer()
    app.state.blob_store = build_blob_store()

    reaper = None
    if settings.OTP_PURGE_INTERVAL_SECONDS > 0:
        reaper = asyncio.create_task(purge_codes_periodically(settings.OTP_PURGE_INTERVAL_SECONDS))
    try:
        yield
    finally:
        if reaper is not None:
            reaper.cancel()
            try:
                await reaper
            except asyncio.CancelledError:
                pass


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Configure CORS
raw_origins = settings.CORS_ORIGINS or "*"
origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
allow_credentials = "*" not in origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routers
for router in (
    auth_router,
    users_router,
    categories_router,
    blogs_router,
    comments_router,
    newsletter_router,
    uploads_router,
    files_router,
    ebooks_router,
    ebook_admin_router,
):
    app.include_router(router, prefix="/api")


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/api/health")
def health():
    return {"status": True, "message": "Server is running", "timestamp": datetime.utcnow().isoformat()}
