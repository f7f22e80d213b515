def _add(client, project_id, user_id, headers, role="MEMBER"):
    return client.post(f"/api/projects/{project_id}/members", json={"userId": user_id, "role": role},
                       headers=headers)


def test_create_project_adds_owner_membership(client, project):
    proj, owner, _ = project
    assert proj["owner"]["id"] == owner["id"]
    assert proj["color"] == "#3b82f6"
    assert [(m["user"]["id"], m["role"]) for m in proj["members"]] == [(owner["id"], "OWNER")]
    assert proj["taskCount"] == 0


def test_invalid_color_is_rejected(client, register):
    _, headers = register()
    res = client.post("/api/projects", json={"name": "Bad", "color": "blue"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "color"


def test_outsider_cannot_see_project(client, project, register):
    proj, _, _ = project
    _, outsider = register()
    res = client.get(f"/api/projects/{proj['id']}", headers=outsider)
    assert res.status_code == 404
    assert res.json()["message"] == "Project not found or access denied"
    assert client.get("/api/projects", headers=outsider).json()["data"] == []


def test_member_management(client, project, register):
    proj, owner, headers = project
    admin, admin_headers = register(name="Admin")
    member, member_headers = register(name="Member")

    assert _add(client, proj["id"], admin["id"], headers, role="ADMIN").status_code == 201
    # project admins may add members too
    res = _add(client, proj["id"], member["id"], admin_headers)
    assert res.status_code == 201
    assert len(res.json()["data"]["members"]) == 3

    assert _add(client, proj["id"], member["id"], headers).status_code == 409
    assert _add(client, proj["id"], "no-such-user", headers).status_code == 404
    assert _add(client, proj["id"], member["id"], headers, role="OWNER").status_code == 400

    # plain members cannot manage the project
    assert client.put(f"/api/projects/{proj['id']}", json={"name": "Renamed"},
                      headers=member_headers).status_code == 403
    assert client.delete(f"/api/projects/{proj['id']}/members/{admin['id']}",
                         headers=member_headers).status_code == 403

    res = client.delete(f"/api/projects/{proj['id']}/members/{owner['id']}", headers=admin_headers)
    assert res.status_code == 400

    res = client.delete(f"/api/projects/{proj['id']}/members/{member['id']}", headers=headers)
    assert res.status_code == 200
    assert member["id"] not in [m["user"]["id"] for m in res.json()["data"]["members"]]
    assert client.get(f"/api/projects/{proj['id']}", headers=member_headers).status_code == 404


def test_update_and_delete_project(client, project, register):
    proj, _, headers = project
    admin, admin_headers = register()
    _add(client, proj["id"], admin["id"], headers, role="ADMIN")

    res = client.put(f"/api/projects/{proj['id']}", json={"description": "<b>Moon</b> shot"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["description"] == "Moon shot"
    assert res.json()["data"]["name"] == "Apollo"

    # only the owner deletes
    assert client.delete(f"/api/projects/{proj['id']}", headers=admin_headers).status_code == 403
    client.post("/api/tasks", json={"title": "Doomed", "projectId": proj["id"]}, headers=headers)
    assert client.delete(f"/api/projects/{proj['id']}", headers=headers).status_code == 200
    assert client.get("/api/tasks", headers=headers).json()["data"]["items"] == []
