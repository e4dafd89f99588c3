import os
import re

import pytest

# Test-friendly environment prior to importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BREVO_API_KEY"] = ""
os.environ["BLOB_READ_WRITE_TOKEN"] = ""
os.environ["OTP_PURGE_INTERVAL_SECONDS"] = "0"

from fastapi.testclient import TestClient  # noqa: E402

from blogapi.core.blob import BlobStore, BlobStoreError, BlobPage, StoredBlob  # noqa: E402
from blogapi.core.database import Base, SessionLocal, engine, init_db  # noqa: E402
from blogapi.core.email import Mailer  # noqa: E402
from blogapi.core.security import create_access_token, get_password_hash, token_claims  # noqa: E402
from blogapi.dependencies import get_blob_store, get_mailer  # noqa: E402
from blogapi.main import app  # noqa: E402
from blogapi.models.user import User  # noqa: E402

CODE_RE = re.compile(r"Your OTP code is: (\d{6})")


class FakeMailer(Mailer):
    enabled = True

    def __init__(self):
        self.sent = []
        self.failing = set()

    async def send(self, to_email, subject, html_body, text_body=None):
        self.sent.append({"to": to_email, "subject": subject, "html": html_body, "text": text_body or ""})
        return to_email not in self.failing

    def last_code(self, email):
        for message in reversed(self.sent):
            if message["to"] == email:
                found = CODE_RE.search(message["text"])
                if found:
                    return found.group(1)
        raise AssertionError(f"no code emailed to {email}")


class FakeBlobStore(BlobStore):
    available = True

    def __init__(self):
        self.puts = []
        self.deleted = []
        self.broken = set()
        self.fail_puts = False

    async def put(self, pathname, data, content_type):
        if self.fail_puts:
            raise BlobStoreError("storage is down")
        self.puts.append((pathname, content_type, len(data)))
        return StoredBlob(url=f"https://cdn.l2hblog.com/{pathname}", pathname=pathname, size=len(data), content_type=content_type)

    async def delete(self, urls):
        for url in urls:
            if url in self.broken:
                raise BlobStoreError(f"cannot delete {url}")
        self.deleted.extend(urls)

    async def list(self, prefix=None, limit=100, cursor=None):
        blobs = [
            StoredBlob(url=f"https://cdn.l2hblog.com/{p}", pathname=p, size=n, uploaded_at="2026-01-01T00:00:00Z")
            for p, _, n in self.puts
            if not prefix or p.startswith(prefix)
        ]
        return BlobPage(blobs=blobs[:limit], cursor=None, has_more=len(blobs) > limit)


@pytest.fixture(autouse=True)
def reset_db():
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def client(mailer, blob_store):
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def factory(email="author@l2hblog.com", role="author", password="secret123", name=None, is_active=True):
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name or email.split("@")[0].title(),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def auth():
    def headers(user):
        return {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}

    return headers


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@l2hblog.com", role="admin")


@pytest.fixture
def author(make_user):
    return make_user(email="author@l2hblog.com", role="author")
