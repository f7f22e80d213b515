import os
from dataclasses import fields

from cryptography.fernet import Fernet
from fastapi.testclient import TestClient
from sqlalchemy import text

from config import AUTH_RATE_LIMIT, GENERATION_RATE_LIMIT, RATE_LIMIT, Settings
from conftest import PASSWORD
from dependencies import limiter
from models import User
from schemas import TaskCreate, CommentCreate


# --- Test 1: Content Security Policy (HTTP Headers) ---
def test_security_headers(client):
    """
    Verify that the SecurityHeadersMiddleware adds the expected headers.
    """
    response = client.get("/health")
    assert response.status_code == 200
    headers = response.headers

    assert "default-src 'self'" in headers["content-security-policy"]
    assert headers.get("x-content-type-options") == "nosniff"
    assert headers.get("x-frame-options") == "DENY"


def test_untrusted_host_is_rejected(app):
    evil = TestClient(app, base_url="http://evil.example.com")
    assert evil.get("/health").status_code == 400


# --- Test 2: Input Sanitization (Bleach / XSS) ---
def test_input_sanitization():
    """
    Verify that HTML tags are stripped from task and comment inputs.
    """
    unsafe_input = "<script>alert('XSS')</script>Meeting<b onmouseover=alert(1)>bold</b>"

    task = TaskCreate(title=unsafe_input, projectId="p1")
    assert "<script>" not in task.title
    assert "<b>" not in task.title
    # strip=True keeps the inner text
    assert "Meeting" in task.title
    assert "bold" in task.title

    comment = CommentCreate(content="<img src=x onerror=alert(1)>Looks good")
    assert comment.content == "Looks good"


def test_sanitized_title_is_stored(client, project):
    proj, _, headers = project
    res = client.post("/api/tasks", json={"title": "<i>Plan</i> sprint", "projectId": proj["id"]}, headers=headers)
    assert res.json()["data"]["title"] == "Plan sprint"


# --- Test 3: Encryption at rest ---
def test_encryption_logic():
    """The configured key round-trips and the ciphertext does not leak the plaintext."""
    key = os.getenv("DB_ENCRYPTION_KEY")
    assert key is not None, "DB_ENCRYPTION_KEY is missing in environment!"

    fernet = Fernet(key)
    plain_text = "Secret refresh token 123"
    encrypted = fernet.encrypt(plain_text.encode("utf-8")).decode("utf-8")
    assert encrypted != plain_text
    assert "Secret" not in encrypted
    assert fernet.decrypt(encrypted.encode("utf-8")).decode("utf-8") == plain_text


def test_blogspot_tokens_are_encrypted_in_the_database(register, db):
    user, _ = register()
    row = db.get(User, user["id"])
    row.blogspot_access_token = "ya29.plain-access"
    row.blogspot_refresh_token = "1//plain-refresh"
    db.commit()

    raw = db.execute(
        text("SELECT blogspot_access_token, blogspot_refresh_token FROM users WHERE id = :id"),
        {"id": user["id"]},
    ).one()
    assert raw[0] != "ya29.plain-access"
    assert "plain-refresh" not in raw[1]

    db.expire_all()
    assert db.get(User, user["id"]).blogspot_refresh_token == "1//plain-refresh"


# --- Test 4: Rate Limiting ---
def test_rate_limiting_login(client, register):
    """
    Verify that the login endpoint blocks requests after the limit (10/min).
    """
    user, _ = register()
    limiter.reset()
    limiter.enabled = True

    payload = {"email": user["email"], "password": "WrongPassword1"}
    statuses = [client.post("/api/auth/login", json=payload).status_code for _ in range(12)]

    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
    body = client.post("/api/auth/login", json={"email": user["email"], "password": PASSWORD}).json()
    assert body["success"] is False
    assert body["message"].startswith("Too many requests")


def test_rate_limits_are_process_wide():
    assert RATE_LIMIT == os.getenv("RATE_LIMIT", "100 per 15 minutes")
    assert AUTH_RATE_LIMIT == os.getenv("AUTH_RATE_LIMIT", "10/minute")
    assert GENERATION_RATE_LIMIT == os.getenv("GENERATION_RATE_LIMIT", "10 per 15 minutes")
    # per-app settings cannot carry limits the decorators never read
    assert not {f.name for f in fields(Settings)} & {"rate_limit", "auth_rate_limit", "generation_rate_limit"}
