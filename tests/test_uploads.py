import pytest

from blogapi.core.blob import UnavailableBlobStore
from blogapi.dependencies import get_blob_store
from blogapi.main import app


@pytest.mark.parametrize(
    "path,field,filename,mime",
    [
        ("/api/upload/image", "image", "notes.txt", "text/plain"),
        ("/api/upload/direct", "file", "clip.mp4", "video/mp4"),
        ("/api/upload/video", "video", "photo.png", "image/png"),
        ("/api/admin/ebooks/upload/image", "file", "anim.gif", "image/gif"),
        ("/api/admin/ebooks/upload/pdf", "file", "book.epub", "application/epub+zip"),
    ],
)
def test_disallowed_type_never_reaches_storage(client, blob_store, admin, auth, path, field, filename, mime):
    resp = client.post(path, headers=auth(admin), files={field: (filename, b"data", mime)})
    assert resp.status_code == 400
    assert resp.json()["status"] is False
    assert resp.json()["message"].startswith("Invalid file type")
    assert blob_store.puts == []


def test_image_upload(client, blob_store, author, auth):
    resp = client.post("/api/upload/image", headers=auth(author), files={"image": ("team.jpg", b"jpeg-bytes", "image/jpeg")})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["key"].startswith("blog-images/team-")
    assert data["url"].endswith(data["key"])
    assert data["size"] == len(b"jpeg-bytes")
    assert data["mimetype"] == "image/jpeg"


def test_size_limit(client, blob_store, author, auth):
    too_big = b"0" * (5 * 1024 * 1024 + 1)
    resp = client.post("/api/upload/image", headers=auth(author), files={"image": ("big.png", too_big, "image/png")})
    assert resp.status_code == 400
    assert resp.json()["message"] == "File size exceeds 5MB limit"
    assert blob_store.puts == []


def test_storage_failure_is_a_server_error(client, blob_store, author, auth):
    blob_store.fail_puts = True
    resp = client.post("/api/upload/video", headers=auth(author), files={"video": ("clip.webm", b"webm", "video/webm")})
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to upload file"


def test_storage_not_configured(client, author, auth):
    app.dependency_overrides[get_blob_store] = lambda: UnavailableBlobStore()
    assert client.get("/api/upload/health").json()["configured"] is False
    resp = client.post("/api/upload/direct", headers=auth(author), files={"file": ("a.png", b"png", "image/png")})
    assert resp.status_code == 500


def test_multiple_images_skip_invalid_files(client, blob_store, author, auth):
    files = [
        ("images", ("one.png", b"1", "image/png")),
        ("images", ("notes.txt", b"2", "text/plain")),
        ("images", ("two.webp", b"3", "image/webp")),
    ]
    resp = client.post("/api/upload/images", headers=auth(author), files=files)
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 2
    assert body["skipped"] == 1
    assert body["failed"] == 0
    assert body["message"] == "2 images uploaded successfully"


def test_uploads_need_author_role(client, make_user, auth):
    reader = make_user(email="reader@l2hblog.com", role="user")
    resp = client.post("/api/upload/image", headers=auth(reader), files={"image": ("a.png", b"png", "image/png")})
    assert resp.status_code == 403


def test_ebook_pdf_upload(client, blob_store, admin, auth):
    resp = client.post("/api/admin/ebooks/upload/pdf", headers=auth(admin), files={"file": ("guide.pdf", b"%PDF", "application/pdf")})
    assert resp.status_code == 200
    assert resp.json()["data"]["key"].startswith("ebook-pdfs/guide-")
