import os
import uuid
from types import SimpleNamespace

from cryptography.fernet import Fernet

# must be in place before config/encryption read the environment
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from fastapi.testclient import TestClient

from config import Settings
from dependencies import limiter, get_ai_client, get_blogger_client
from errors import UpstreamError
from main import create_app

PASSWORD = "Password123"


class FakeCompletions:
    def __init__(self):
        self.calls = []
        self.reply = "generated text"
        self.tokens = 1000
        self.error = None

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)],
                               usage=SimpleNamespace(total_tokens=self.tokens))


class FakeOpenAI:
    """Stands in for `openai.OpenAI`; only `chat.completions.create` is used."""

    def __init__(self):
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)


class FakeBloggerClient:
    def __init__(self):
        self.blogs = [{"id": "blog-1", "url": "https://example.blogspot.com/", "name": "Example"}]
        self.tokens = {"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600}
        self.refresh_error = False
        self.refreshed = 0
        self.inserted = []

    def build_auth_url(self, state):
        return f"https://accounts.google.com/o/oauth2/v2/auth?state={state}"

    def exchange_code(self, code):
        if code == "bad-code":
            raise UpstreamError("Blogspot request failed with status 400")
        return dict(self.tokens)

    def refresh_access_token(self, refresh_token):
        if self.refresh_error:
            raise UpstreamError("Blogspot request failed with status 400")
        self.refreshed += 1
        return {"access_token": f"access-refreshed-{self.refreshed}", "expires_in": 3600}

    def list_blogs(self, access_token):
        return list(self.blogs)

    def insert_post(self, access_token, blog_id, title, content, labels):
        self.inserted.append({"access_token": access_token, "blog_id": blog_id, "title": title,
                              "content": content, "labels": labels})
        return {"id": f"remote-{len(self.inserted)}", "url": f"https://example.blogspot.com/p/{len(self.inserted)}",
                "published": "2024-05-01T10:00:00Z"}


@pytest.fixture
def settings():
    return Settings(
        env="test",
        database_url="sqlite://",
        jwt_secret="test-secret-that-is-long-enough-for-hs256",
        bcrypt_rounds=4,
        openai_api_key="sk-test",
        frontend_url="http://localhost:3000",
    )


@pytest.fixture
def fake_ai():
    return FakeOpenAI()


@pytest.fixture
def fake_blogger():
    return FakeBloggerClient()


@pytest.fixture
def app(settings, fake_ai, fake_blogger):
    application = create_app(settings)
    application.dependency_overrides[get_ai_client] = lambda: fake_ai
    application.dependency_overrides[get_blogger_client] = lambda: fake_blogger
    limiter.enabled = False
    yield application
    limiter.enabled = True
    limiter.reset()
    application.state.db.dispose()


@pytest.fixture
def client(app):
    # Host header must pass TrustedHostMiddleware
    return TestClient(app, base_url="http://localhost:8000")


@pytest.fixture
def db(app):
    session = app.state.db.session()
    yield session
    session.close()


@pytest.fixture
def register(client):
    """Signs up a fresh user and returns (user, auth headers)."""
    def _register(name="Test User", email=None, password=PASSWORD):
        email = email or f"user_{uuid.uuid4().hex[:10]}@example.com"
        res = client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})
        assert res.status_code == 201, res.text
        data = res.json()["data"]
        # drop the cookies so every request authenticates through its own header
        client.cookies.clear()
        return data["user"], {"Authorization": f"Bearer {data['accessToken']}"}
    return _register


@pytest.fixture
def project(client, register):
    """A project owned by a fresh user: (project, owner, owner headers)."""
    owner, headers = register(name="Owner")
    res = client.post("/api/projects", json={"name": "Apollo"}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"], owner, headers


POST_BODY = "<p>" + "Productivity tools help teams ship faster and plan better. " * 5 + "</p>"


@pytest.fixture
def make_post(client):
    def _make_post(headers, title="Ten Tips For Focus", **extra):
        payload = {"title": title, "content": POST_BODY, **extra}
        res = client.post("/api/posts", json=payload, headers=headers)
        assert res.status_code == 201, res.text
        return res.json()["data"]
    return _make_post
