from pagination import Page


def test_page_arithmetic():
    """47 rows at 20 per page: three pages, the last one partial."""
    first = Page(page=1, limit=20, total=47)
    assert first.offset == 0
    assert first.to_dict() == {
        "page": 1, "limit": 20, "total": 47, "totalPages": 3, "hasNextPage": True, "hasPrevPage": False,
    }

    last = Page(page=3, limit=20, total=47)
    assert last.offset == 40
    assert last.to_dict()["hasNextPage"] is False
    assert last.to_dict()["hasPrevPage"] is True


def test_empty_result():
    meta = Page(page=1, limit=20, total=0).to_dict()
    assert meta["totalPages"] == 0
    assert meta["hasNextPage"] is False
    assert meta["hasPrevPage"] is False


def test_task_list_pages(client, project):
    proj, _, headers = project
    for i in range(47):
        res = client.post("/api/tasks", json={"title": f"Task {i:02d}", "projectId": proj["id"]}, headers=headers)
        assert res.status_code == 201

    res = client.get("/api/tasks?page=3&limit=20&sortBy=title&sortOrder=asc", headers=headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert len(data["items"]) == 7
    assert data["items"][0]["title"] == "Task 40"
    assert data["pagination"] == {
        "page": 3, "limit": 20, "total": 47, "totalPages": 3, "hasNextPage": False, "hasPrevPage": True,
    }


def test_limit_out_of_range(client, project):
    _, _, headers = project
    assert client.get("/api/tasks?limit=101", headers=headers).status_code == 400
    assert client.get("/api/tasks?page=0", headers=headers).status_code == 400
