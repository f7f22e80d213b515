from datetime import datetime, timedelta

from models import User, Role


def _make_admin(db, user_id):
    db.get(User, user_id).role = Role.ADMIN
    db.commit()


def test_list_users_is_admin_only(client, register, db):
    user, headers = register(name="Plain")
    admin, admin_headers = register(name="Boss")
    assert client.get("/api/users", headers=headers).status_code == 403

    _make_admin(db, admin["id"])
    res = client.get("/api/users?search=plain", headers=admin_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert [u["id"] for u in data["items"]] == [user["id"]]
    assert data["pagination"]["total"] == 1

    admins = client.get("/api/users?role=ADMIN", headers=admin_headers).json()["data"]["items"]
    assert [u["id"] for u in admins] == [admin["id"]]


def test_user_detail_access_and_counts(client, project, register, db):
    proj, owner, headers = project
    other, other_headers = register()
    client.post("/api/tasks", json={"title": "Mine", "projectId": proj["id"], "assigneeId": owner["id"]},
                headers=headers)

    res = client.get(f"/api/users/{owner['id']}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["counts"] == {"ownedProjects": 1, "tasks": 1, "assignedTasks": 1}

    denied = client.get(f"/api/users/{owner['id']}", headers=other_headers)
    assert denied.status_code == 403
    assert denied.json()["message"] == "Access denied"

    _make_admin(db, other["id"])
    assert client.get(f"/api/users/{owner['id']}", headers=other_headers).status_code == 200
    assert client.get("/api/users/missing", headers=other_headers).status_code == 404


def test_member_search_excludes_current_members(client, project, register, db):
    proj, _, headers = project
    joined, _ = register(name="Searchable Joined")
    candidate, _ = register(name="Searchable Candidate")
    inactive, _ = register(name="Searchable Inactive")
    client.post(f"/api/projects/{proj['id']}/members", json={"userId": joined["id"]}, headers=headers)
    db.get(User, inactive["id"]).is_active = False
    db.commit()

    res = client.get(f"/api/users/search/members?q=searchable&projectId={proj['id']}", headers=headers)
    assert res.status_code == 200
    assert [u["id"] for u in res.json()["data"]] == [candidate["id"]]

    everyone = client.get("/api/users/search/members?q=searchable", headers=headers).json()["data"]
    assert {u["name"] for u in everyone} == {"Searchable Joined", "Searchable Candidate"}
    assert client.get("/api/users/search/members?q=", headers=headers).status_code == 400


def test_default_blog_settings(client, register):
    _, headers = register()
    data = client.get("/api/users/settings", headers=headers).json()["data"]
    assert data["blogspotConnected"] is False
    assert data["blogspotStatus"] == "disconnected"
    assert data["adsenseEnabled"] is False
    assert data["adsensePlacement"] == "middle"
    assert data["affiliateLinks"] == []
    assert data["seoAutoGenerateMeta"] is True


def test_blogspot_settings_require_connection(client, register, db):
    user, headers = register()
    res = client.put("/api/users/settings/blogspot", json={"blogId": "b-9"}, headers=headers)
    assert res.status_code == 400

    row = db.get(User, user["id"])
    row.blogspot_access_token = "access"
    row.blogspot_refresh_token = "refresh"
    row.blogspot_expires_at = datetime.now() - timedelta(minutes=5)
    db.commit()

    res = client.put("/api/users/settings/blogspot", json={"blogId": "b-9", "blogUrl": "https://b9.blogspot.com"},
                     headers=headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["blogspotBlogId"] == "b-9"
    assert data["blogspotStatus"] == "token_expired"


def test_adsense_affiliate_and_seo_settings(client, register):
    _, headers = register()
    res = client.put("/api/users/settings/adsense",
                     json={"isEnabled": True, "adCode": "<ins>ad</ins>", "placement": "top"}, headers=headers)
    assert res.json()["data"]["adsenseCode"] == "<ins>ad</ins>"

    # leaving adCode out keeps the stored snippet
    res = client.put("/api/users/settings/adsense", json={"isEnabled": False}, headers=headers)
    data = res.json()["data"]
    assert data["adsenseEnabled"] is False
    assert data["adsenseCode"] == "<ins>ad</ins>"
    assert data["adsensePlacement"] == "top"

    res = client.put("/api/users/settings/affiliate", json={
        "isEnabled": True, "links": [{"keyword": "laptop", "url": "https://shop.example.com/laptop"}],
    }, headers=headers)
    assert res.json()["data"]["affiliateLinks"] == [
        {"keyword": "laptop", "url": "https://shop.example.com/laptop", "description": ""},
    ]
    bad = client.put("/api/users/settings/affiliate",
                     json={"isEnabled": True, "links": [{"keyword": "x", "url": "ftp://nope"}]}, headers=headers)
    assert bad.status_code == 400

    res = client.put("/api/users/settings/seo", json={"autoGenerateTags": False, "defaultTags": ["Tech", "tech", "AI"]},
                     headers=headers)
    data = res.json()["data"]
    assert data["seoAutoGenerateTags"] is False
    assert data["seoAutoGenerateMeta"] is True
    assert data["seoDefaultTags"] == ["tech", "ai"]


def test_delete_account(client, register, make_post, db):
    user, headers = register()
    post = make_post(headers)
    client.post(f"/api/posts/{post['id']}/publish", headers=headers)

    res = client.delete("/api/users/account", headers=headers)
    assert res.status_code == 400

    client.post(f"/api/posts/{post['id']}/unpublish", headers=headers)
    assert client.delete("/api/users/account", headers=headers).status_code == 200
    db.expire_all()
    assert db.get(User, user["id"]) is None
    assert client.get("/api/auth/me", headers=headers).status_code == 401
