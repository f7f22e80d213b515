from datetime import datetime, timedelta
from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from auth_utils import create_state_token
from errors import UpstreamError
from models import User
from services.blogspot_service import BloggerClient


class RecordingSession:
    """Minimal stand-in for `requests.Session` that replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        status, body = result
        return SimpleNamespace(ok=status < 400, status_code=status, text=str(body), json=lambda: body)


def _connect(client, headers):
    auth_url = client.get("/api/blogspot/auth", headers=headers).json()["data"]["authUrl"]
    state = parse_qs(urlparse(auth_url).query)["state"][0]
    return client.get("/api/blogspot/callback", params={"code": "ok", "state": state}, follow_redirects=False)


# --- BloggerClient ---
def test_auth_url_carries_offline_consent(settings):
    settings.google_client_id = "client-123"
    url = BloggerClient(settings).build_auth_url("signed-state")
    query = parse_qs(urlparse(url).query)
    assert url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
    assert query["client_id"] == ["client-123"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["state"] == ["signed-state"]
    assert "https://www.googleapis.com/auth/blogger" in query["scope"][0].split()


def test_client_posts_to_blogger(settings):
    session = RecordingSession((200, {"id": "remote-1"}))
    remote = BloggerClient(settings, session=session).insert_post("tok", "blog-1", "Title", "<p>x</p>", ["a"])
    assert remote == {"id": "remote-1"}

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://www.googleapis.com/blogger/v3/blogs/blog-1/posts/"
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["json"]["labels"] == ["a"]
    assert kwargs["timeout"] == settings.http_timeout_seconds


def test_client_wraps_failures(settings):
    session = RecordingSession((403, {"error": "forbidden"}), requests.ConnectionError("down"),
                               (429, {"error": "rateLimitExceeded"}))
    client = BloggerClient(settings, session=session)
    with pytest.raises(UpstreamError, match="status 403") as exc:
        client.list_blogs("tok")
    assert exc.value.status_code == 500
    with pytest.raises(UpstreamError, match="unavailable"):
        client.list_blogs("tok")
    with pytest.raises(UpstreamError, match="Rate limit exceeded") as exc:
        client.list_blogs("tok")
    assert exc.value.status_code == 429


# --- OAuth callback ---
def test_callback_connects_account(client, register, db):
    user, headers = register()
    res = _connect(client, headers)
    assert res.status_code == 302
    assert res.headers["location"] == "http://localhost:3000/dashboard?blogspot=connected"

    row = db.get(User, user["id"])
    assert row.blogspot_refresh_token == "refresh-1"
    assert row.blogspot_blog_id == "blog-1"

    status = client.get("/api/blogspot/status", headers=headers).json()["data"]
    assert status["connected"] is True
    assert status["status"] == "connected"
    assert status["blogUrl"] == "https://example.blogspot.com/"


def test_callback_failures_redirect_to_error(client, register, settings, fake_blogger):
    user, _ = register()
    error_url = "http://localhost:3000/dashboard?blogspot=error"
    state = create_state_token(user["id"], settings)

    assert client.get("/api/blogspot/callback", params={"code": "ok", "state": "forged"},
                      follow_redirects=False).headers["location"] == error_url
    assert client.get("/api/blogspot/callback", params={"code": "bad-code", "state": state},
                      follow_redirects=False).headers["location"] == error_url

    fake_blogger.tokens = {"access_token": "only-access"}
    assert client.get("/api/blogspot/callback", params={"code": "ok", "state": state},
                      follow_redirects=False).headers["location"] == error_url

    missing = client.get("/api/blogspot/callback", params={"state": state})
    assert missing.status_code == 400
    assert missing.json()["message"] == "Authorization code not received"


# --- Connected operations ---
def test_not_connected(client, register, make_post):
    _, headers = register()
    post = make_post(headers)
    assert client.get("/api/blogspot/status", headers=headers).json()["data"]["status"] == "disconnected"
    res = client.get("/api/blogspot/blogs", headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Blogspot not connected. Please connect your account first."
    assert client.post("/api/blogspot/publish", json={"postId": post["id"]}, headers=headers).status_code == 400


def test_expired_token_is_refreshed(client, register, db, fake_blogger):
    user, headers = register()
    _connect(client, headers)
    row = db.get(User, user["id"])
    row.blogspot_expires_at = datetime.now() - timedelta(minutes=1)
    db.commit()

    res = client.get("/api/blogspot/blogs", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["blogs"][0]["id"] == "blog-1"
    assert fake_blogger.refreshed == 1

    db.expire_all()
    row = db.get(User, user["id"])
    assert row.blogspot_access_token == "access-refreshed-1"
    assert row.blogspot_expires_at > datetime.now()


def test_failed_refresh_requires_reconnect(client, register, db, fake_blogger):
    user, headers = register()
    _connect(client, headers)
    row = db.get(User, user["id"])
    row.blogspot_expires_at = datetime.now() - timedelta(minutes=1)
    db.commit()
    fake_blogger.refresh_error = True

    res = client.get("/api/blogspot/blogs", headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Blogspot authorization expired. Please reconnect your account."


def test_publish_composes_monetized_content(client, register, make_post, fake_blogger):
    _, headers = register()
    _connect(client, headers)
    client.put("/api/users/settings/adsense", json={"isEnabled": True, "adCode": "<ins>ad</ins>",
                                                    "placement": "bottom"}, headers=headers)
    client.put("/api/users/settings/affiliate", json={
        "isEnabled": True, "links": [{"keyword": "productivity", "url": "https://shop.example.com/p"}],
    }, headers=headers)
    post = make_post(headers, tags=["tools", "teams"])

    res = client.post("/api/blogspot/publish", json={"postId": post["id"], "blogId": "blog-2"}, headers=headers)
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["post"]["id"] == "remote-1"
    local = data["localPost"]
    assert local["status"] == "published"
    assert local["blogspot"]["url"] == "https://example.blogspot.com/p/1"
    assert local["blogspot"]["publishedAt"] is not None
    assert local["publishedAt"] is not None

    sent = fake_blogger.inserted[0]
    assert sent["blog_id"] == "blog-2"
    assert sent["labels"] == ["tools", "teams"]
    assert sent["content"].endswith("<ins>ad</ins>")
    assert '<a href="https://shop.example.com/p" target="_blank" rel="nofollow sponsored">Productivity</a>' \
        in sent["content"]

    # a post that is live on Blogspot cannot be deleted locally
    assert client.delete(f"/api/posts/{post['id']}", headers=headers).status_code == 400


def test_disconnect(client, register):
    _, headers = register()
    _connect(client, headers)
    res = client.delete("/api/blogspot/disconnect", headers=headers)
    assert res.status_code == 200
    status = client.get("/api/blogspot/status", headers=headers).json()["data"]
    assert status == {"status": "disconnected", "connected": False, "blogId": None, "blogUrl": None,
                      "expiresAt": None}
