from blogapi.models.blog import Blog, BlogCategory
from blogapi.services.post_counts import recalculate_post_counts


def test_category_crud(client, admin, auth):
    headers = auth(admin)
    resp = client.post("/api/categories", headers=headers, json={"name": "Career Advice", "position": 2})
    assert resp.status_code == 201
    category = resp.json()["data"]
    assert category["slug"] == "career-advice"
    assert category["postCount"] == 0

    resp = client.post("/api/categories", headers=headers, json={"name": "Career Advice"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Category with this name or slug already exists"

    resp = client.put(f"/api/categories/{category['id']}", headers=headers, json={"name": "Job Hunting"})
    assert resp.status_code == 200
    assert resp.json()["data"]["slug"] == "job-hunting"

    assert client.get("/api/categories/job-hunting").status_code == 200
    assert client.delete(f"/api/categories/{category['id']}", headers=headers).status_code == 200
    assert client.get("/api/categories/job-hunting").status_code == 404


def test_public_list_orders_and_filters(client, admin, auth):
    headers = auth(admin)
    client.post("/api/categories", headers=headers, json={"name": "Zeta", "position": 1})
    client.post("/api/categories", headers=headers, json={"name": "Alpha", "position": 1})
    client.post("/api/categories", headers=headers, json={"name": "First", "position": 0})
    client.post("/api/categories", headers=headers, json={"name": "Hidden", "status": "inactive"})

    names = [c["name"] for c in client.get("/api/categories").json()["data"]]
    assert names == ["First", "Alpha", "Zeta"]
    inactive = [c["name"] for c in client.get("/api/categories", params={"status": "inactive"}).json()["data"]]
    assert inactive == ["Hidden"]


def test_category_writes_need_admin(client, author, auth):
    resp = client.post("/api/categories", headers=auth(author), json={"name": "Nope"})
    assert resp.status_code == 403


def test_category_with_posts_cannot_be_deleted(client, db, admin, author, auth):
    category = BlogCategory(name="Careers", slug="careers")
    db.add(category)
    db.commit()
    db.add(Blog(title="Kept", slug="kept", description="Body", category_id=category.id, author_id=author.id))
    db.commit()

    resp = client.delete(f"/api/categories/{category.id}", headers=auth(admin))
    assert resp.status_code == 400


def test_recalculate_post_counts(db, author):
    careers = BlogCategory(name="Careers", slug="careers", post_count=9)
    tech = BlogCategory(name="Technology", slug="technology", post_count=0)
    db.add_all([careers, tech])
    db.commit()
    for i, (category, status) in enumerate([(careers, "published"), (careers, "draft"), (tech, "published"), (tech, "published")]):
        db.add(Blog(title=f"Post {i}", slug=f"post-{i}", description="Body", status=status, category_id=category.id, author_id=author.id))
    db.commit()

    assert recalculate_post_counts(db) == {"careers": 1, "technology": 2}
    db.expire_all()
    assert db.get(BlogCategory, careers.id).post_count == 1
