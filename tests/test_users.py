from blogapi.models.blog import Blog, BlogCategory
from blogapi.models.user import User


def add_blog(db, author, slug="first-post"):
    category = db.query(BlogCategory).first()
    if category is None:
        category = BlogCategory(name="Careers", slug="careers")
        db.add(category)
        db.commit()
    blog = Blog(title="First post", slug=slug, description="Body", category_id=category.id, author_id=author.id)
    db.add(blog)
    db.commit()
    return blog


def test_delete_user_with_blogs_is_refused(client, db, admin, author, auth):
    add_blog(db, author)

    resp = client.delete(f"/api/admin/users/{author.id}", headers=auth(admin))
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Cannot delete user with 1 existing posts")

    db.expire_all()
    assert db.get(User, author.id) is not None


def test_delete_user_without_blogs(client, db, admin, make_user, auth):
    reader = make_user(email="reader@l2hblog.com", role="user")
    reader_id = reader.id
    resp = client.delete(f"/api/admin/users/{reader_id}", headers=auth(admin))
    assert resp.status_code == 200
    db.expire_all()
    assert db.get(User, reader_id) is None


def test_admin_cannot_remove_or_disable_self(client, admin, auth):
    resp = client.delete(f"/api/admin/users/{admin.id}", headers=auth(admin))
    assert resp.status_code == 400
    assert resp.json()["message"] == "You cannot delete your own account"

    resp = client.patch(f"/api/admin/users/{admin.id}/toggle-status", headers=auth(admin))
    assert resp.status_code == 400


def test_toggle_status(client, admin, author, auth):
    resp = client.patch(f"/api/admin/users/{author.id}/toggle-status", headers=auth(admin))
    assert resp.status_code == 200
    assert resp.json()["data"]["isActive"] is False
    assert resp.json()["message"] == "User deactivated successfully"

    resp = client.patch(f"/api/admin/users/{author.id}/toggle-status", headers=auth(admin))
    assert resp.json()["data"]["isActive"] is True


def test_list_users_with_post_counts(client, db, admin, author, make_user, auth):
    make_user(email="reader@l2hblog.com", role="user", name="Casual Reader")
    add_blog(db, author)
    add_blog(db, author, slug="second-post")

    resp = client.get("/api/admin/users", headers=auth(admin), params={"role": "author"})
    assert resp.status_code == 200
    body = resp.json()
    assert [u["email"] for u in body["data"]] == [author.email]
    assert body["data"][0]["postCount"] == 2
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "pages": 1}

    resp = client.get("/api/admin/users", headers=auth(admin), params={"search": "casual"})
    assert [u["email"] for u in resp.json()["data"]] == ["reader@l2hblog.com"]


def test_create_and_update_user(client, admin, author, auth):
    resp = client.post(
        "/api/admin/users",
        headers=auth(admin),
        json={"email": "editor@l2hblog.com", "password": "secret123", "name": "Editor", "role": "author"},
    )
    assert resp.status_code == 201
    new_id = resp.json()["data"]["id"]

    resp = client.post(
        "/api/admin/users",
        headers=auth(admin),
        json={"email": "editor@l2hblog.com", "password": "secret123", "name": "Dup"},
    )
    assert resp.status_code == 400

    resp = client.put(f"/api/admin/users/{new_id}", headers=auth(admin), json={"email": author.email})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already in use by another user"

    resp = client.put(f"/api/admin/users/{new_id}", headers=auth(admin), json={"name": "Chief Editor", "role": "admin"})
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "admin"

    resp = client.patch(f"/api/admin/users/{new_id}/password", headers=auth(admin), json={"password": "123"})
    assert resp.status_code == 400
    resp = client.patch(f"/api/admin/users/{new_id}/password", headers=auth(admin), json={"password": "longer-pass"})
    assert resp.status_code == 200
    assert client.post("/api/auth/login", json={"email": "editor@l2hblog.com", "password": "longer-pass"}).status_code == 200


def test_user_stats(client, admin, author, auth):
    resp = client.get("/api/admin/users/stats", headers=auth(admin))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 2
    assert data["byRole"] == {"admin": 1, "author": 1, "user": 0}
    assert data["byStatus"] == {"active": 2, "inactive": 0}


def test_missing_user(client, admin, auth):
    resp = client.get("/api/admin/users/999", headers=auth(admin))
    assert resp.status_code == 404
    assert resp.json() == {"status": False, "message": "User not found"}
