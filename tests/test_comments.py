import pytest

from blogapi.models.blog import Blog, BlogCategory
from blogapi.models.comment import BlogComment
from blogapi.models.otp import OneTimeCode


@pytest.fixture
def blog(db, author):
    category = BlogCategory(name="Careers", slug="careers")
    db.add(category)
    db.commit()
    blog = Blog(title="Interview prep", slug="interview-prep", description="Body", status="published",
                category_id=category.id, author_id=author.id)
    db.add(blog)
    db.commit()
    return blog


def submit(client, blog_id, **overrides):
    payload = {
        "blogId": blog_id,
        "name": "Ravi",
        "email": "ravi@blogmail.com",
        "mobile": "5551234",
        "comment": "This helped me prepare, thank you!",
    }
    payload.update(overrides)
    return client.post("/api/comments/submit", json=payload)


def test_comment_requires_verification(client, db, mailer, blog):
    resp = submit(client, blog.id)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["requiresOTP"] is True
    assert data["verificationId"]
    assert db.query(BlogComment).count() == 0

    code = mailer.last_code("ravi@blogmail.com")
    resp = client.post(
        "/api/comments/verify",
        json={"email": "ravi@blogmail.com", "otp": code, "verificationId": data["verificationId"]},
        headers={"User-Agent": "pytest-browser", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["status"] == "pending"

    comment = db.query(BlogComment).one()
    assert comment.comment == "This helped me prepare, thank you!"
    assert comment.mobile == "5551234"
    assert comment.ip_address == "203.0.113.9"
    assert comment.user_agent == "pytest-browser"


def test_stored_comment_wins_over_resubmitted_fields(client, db, mailer, blog):
    submit(client, blog.id)
    code = mailer.last_code("ravi@blogmail.com")
    resp = client.post(
        "/api/comments/verify",
        json={"email": "ravi@blogmail.com", "otp": code, "comment": "Swapped text after the code was sent"},
    )
    assert resp.status_code == 201
    assert db.query(BlogComment).one().comment == "This helped me prepare, thank you!"


def test_wrong_code_creates_nothing(client, db, mailer, blog):
    submit(client, blog.id)
    code = mailer.last_code("ravi@blogmail.com")
    wrong = "123456" if code != "123456" else "654321"
    resp = client.post("/api/comments/verify", json={"email": "ravi@blogmail.com", "otp": wrong})
    assert resp.status_code == 400
    assert resp.json() == {"status": False, "message": "Invalid or expired OTP"}
    assert db.query(BlogComment).count() == 0


def test_submit_validation(client, blog):
    resp = submit(client, blog.id, comment="too short")
    assert resp.status_code == 400
    assert submit(client, 999).status_code == 404


def test_moderation(client, db, mailer, blog, admin, auth):
    submit(client, blog.id)
    client.post("/api/comments/verify", json={"email": "ravi@blogmail.com", "otp": mailer.last_code("ravi@blogmail.com")})
    comment_id = db.query(BlogComment).one().id

    assert client.get(f"/api/comments/blog/{blog.id}").json()["data"] == []

    resp = client.get("/api/comments", headers=auth(admin), params={"status": "pending"})
    assert resp.status_code == 200
    assert resp.json()["data"][0]["blog"]["slug"] == "interview-prep"

    resp = client.put(f"/api/comments/{comment_id}/moderate", headers=auth(admin), json={"status": "approved"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Comment approved successfully"

    public = client.get(f"/api/comments/blog/{blog.id}").json()["data"]
    assert [c["id"] for c in public] == [comment_id]
    assert "email" not in public[0]

    resp = client.put(f"/api/comments/{comment_id}/moderate", headers=auth(admin), json={"status": "spam"})
    assert resp.status_code == 400

    assert client.delete(f"/api/comments/{comment_id}", headers=auth(admin)).status_code == 200
    assert client.delete(f"/api/comments/{comment_id}", headers=auth(admin)).status_code == 404


def test_code_survives_when_blog_is_gone(client, db, mailer, blog):
    submit(client, blog.id)
    code = mailer.last_code("ravi@blogmail.com")
    db.delete(blog)
    db.commit()

    resp = client.post("/api/comments/verify", json={"email": "ravi@blogmail.com", "otp": code})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Blog not found"
    assert db.query(BlogComment).count() == 0
    record = db.query(OneTimeCode).one()
    assert record.consumed is False
    assert record.attempts == 0


@pytest.mark.parametrize("path, extra", [
    ("/api/comments/verify", {}),
    ("/api/newsletter/verify", {}),
    ("/api/auth/reset-password", {"newPassword": "fresh-pass"}),
])
@pytest.mark.parametrize("otp", ["12a456", "\uff11\uff12\uff13\uff14\uff15\uff16", "12 456"])
def test_codes_must_be_ascii_digits(client, path, extra, otp):
    resp = client.post(path, json={"email": "ravi@blogmail.com", "otp": otp, **extra})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Validation failed"
    assert any(e["field"] == "otp" for e in resp.json()["error"])
