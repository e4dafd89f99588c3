import asyncio
import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from blogapi import main
from blogapi.core.blob import UnavailableBlobStore
from blogapi.core.config import settings
from blogapi.core.email import DisabledMailer
from blogapi.main import app
from blogapi.models.otp import OneTimeCode
from blogapi.models.user import User


@pytest.fixture
def started_app(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", " Owner@L2HBlog.com ")
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "owner-pass")
    monkeypatch.setattr(settings, "OTP_PURGE_INTERVAL_SECONDS", 0)
    yield
    for name in ("mailer", "blob_store"):
        if hasattr(app.state, name):
            delattr(app.state, name)


def add_code(db, verification_id, expires_at):
    db.add(OneTimeCode(
        email="reader@blogmail.com",
        code="123456",
        purpose="newsletter",
        expires_at=expires_at,
        verification_id=verification_id,
    ))
    db.commit()


def test_startup_builds_collaborators_and_seeds_admin(started_app, db):
    with TestClient(app) as client:
        assert isinstance(app.state.mailer, DisabledMailer)
        assert isinstance(app.state.blob_store, UnavailableBlobStore)
        assert client.get("/api/upload/health").json()["configured"] is False

        resp = client.post("/api/auth/login", json={"email": "owner@l2hblog.com", "password": "owner-pass"})
        assert resp.status_code == 200

    # a second start finds the account and leaves it alone
    with TestClient(app):
        pass
    admins = db.query(User).filter(User.email == "owner@l2hblog.com").all()
    assert [u.role for u in admins] == ["admin"]


def test_running_app_purges_expired_codes(started_app, db, monkeypatch):
    now = datetime.utcnow()
    add_code(db, "stale", now - timedelta(minutes=5))
    add_code(db, "live", now + timedelta(minutes=5))
    monkeypatch.setattr(settings, "OTP_PURGE_INTERVAL_SECONDS", 0.05)

    with TestClient(app):
        deadline = time.monotonic() + 3
        while time.monotonic() < deadline:
            db.expire_all()
            if db.query(OneTimeCode).filter(OneTimeCode.verification_id == "stale").count() == 0:
                break
            time.sleep(0.05)

    db.expire_all()
    assert [c.verification_id for c in db.query(OneTimeCode).all()] == ["live"]


def test_reaper_keeps_running_after_a_failed_purge(monkeypatch):
    calls = []

    def flaky_purge():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database is locked")
        return 0

    monkeypatch.setattr(main, "purge_codes", flaky_purge)

    async def run_for_a_while():
        task = asyncio.create_task(main.purge_codes_periodically(0.01))
        for _ in range(200):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run_for_a_while())
    assert len(calls) >= 2
