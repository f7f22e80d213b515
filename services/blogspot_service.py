"""
Blogspot connection (Google OAuth2) and publishing through the Blogger v3
API. `BloggerClient` is the only code that talks HTTP; the functions below
it own the per-user connection state.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import requests
from sqlalchemy.orm import Session

from auth_utils import create_state_token, decode_state_token
from config import Settings
from errors import ReconnectRequiredError, UpstreamError, ValidationError
from models import User
from schemas import to_naive_local
from services.content import compose_publish_content
from services.post_service import get_post, mark_published
from services.user_service import is_blogspot_connected, blogspot_connection_status

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
BLOGGER_API = "https://www.googleapis.com/blogger/v3"
SCOPES = [
    "https://www.googleapis.com/auth/blogger",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]
DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)
NOT_CONNECTED = "Blogspot not connected. Please connect your account first."


class BloggerClient:
    """Google OAuth2 token endpoint plus the two Blogger calls the app needs."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = settings.http_timeout_seconds

    def build_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return requests.Request("GET", GOOGLE_AUTH_URL, params=params).prepare().url

    def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("Blogger request %s %s failed: %s", method, url, e)
            raise UpstreamError("Blogspot service is unavailable")
        if resp.status_code == 429:
            logger.warning("Blogger request %s %s was rate limited", method, url)
            raise UpstreamError("Rate limit exceeded. Please try again later.", status_code=429)
        if not resp.ok:
            logger.error("Blogger request %s %s returned %s: %s", method, url, resp.status_code, resp.text[:200])
            raise UpstreamError(f"Blogspot request failed with status {resp.status_code}")
        return resp.json()

    def exchange_code(self, code: str) -> dict:
        return self._request("POST", GOOGLE_TOKEN_URL, data={
            "code": code,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "redirect_uri": self.settings.google_redirect_uri,
            "grant_type": "authorization_code",
        })

    def refresh_access_token(self, refresh_token: str) -> dict:
        return self._request("POST", GOOGLE_TOKEN_URL, data={
            "refresh_token": refresh_token,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "grant_type": "refresh_token",
        })

    def list_blogs(self, access_token: str) -> List[dict]:
        data = self._request("GET", f"{BLOGGER_API}/users/self/blogs",
                             headers={"Authorization": f"Bearer {access_token}"})
        return data.get("items") or []

    def insert_post(self, access_token: str, blog_id: str, title: str, content: str, labels: List[str]) -> dict:
        body = {
            "kind": "blogger#post",
            "blog": {"id": blog_id},
            "title": title,
            "content": content,
            "labels": labels,
        }
        return self._request("POST", f"{BLOGGER_API}/blogs/{blog_id}/posts/",
                             params={"isDraft": "false"}, json=body,
                             headers={"Authorization": f"Bearer {access_token}"})


def _expiry(token_response: dict, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now()
    expires_in = token_response.get("expires_in")
    if expires_in:
        return now + timedelta(seconds=int(expires_in))
    return now + DEFAULT_TOKEN_LIFETIME


def _parse_published(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return to_naive_local(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        logger.warning("Unparseable Blogger publish time %r", value)
        return None


def _connected_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user or not is_blogspot_connected(user):
        raise ValidationError(NOT_CONNECTED)
    return user


def get_auth_url(client: BloggerClient, settings: Settings, user_id: str) -> str:
    return client.build_auth_url(create_state_token(user_id, settings))


def handle_callback(db: Session, client: BloggerClient, settings: Settings, code: str,
                    state: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Finishes the consent flow and returns the frontend URL to redirect to.
    Failures never propagate: the browser is sent to the error landing page.
    """
    error_url = f"{settings.frontend_url}/dashboard?blogspot=error"

    user_id = decode_state_token(state, settings)
    user = db.get(User, user_id) if user_id else None
    if not user:
        logger.warning("Blogspot callback with invalid or expired state")
        return error_url

    try:
        tokens = client.exchange_code(code)
        access_token = tokens.get("access_token")
        refresh_token = tokens.get("refresh_token")
        if not access_token or not refresh_token:
            logger.warning("Blogspot token exchange for %s did not return both tokens", user.id)
            return error_url
        blogs = client.list_blogs(access_token)
    except UpstreamError:
        return error_url

    primary = blogs[0] if blogs else {}
    user.blogspot_access_token = access_token
    user.blogspot_refresh_token = refresh_token
    user.blogspot_expires_at = _expiry(tokens, now)
    user.blogspot_blog_id = primary.get("id")
    user.blogspot_blog_url = primary.get("url")
    db.commit()
    logger.info("Blogspot connected for user %s", user.id)
    return f"{settings.frontend_url}/dashboard?blogspot=connected"


def ensure_fresh_token(db: Session, client: BloggerClient, user: User, now: Optional[datetime] = None) -> str:
    """Returns a usable access token, refreshing and saving it first if it has expired."""
    now = now or datetime.now()
    if user.blogspot_expires_at and user.blogspot_expires_at > now:
        return user.blogspot_access_token

    try:
        tokens = client.refresh_access_token(user.blogspot_refresh_token)
    except UpstreamError:
        logger.warning("Blogspot token refresh failed for user %s", user.id)
        raise ReconnectRequiredError()
    if not tokens.get("access_token"):
        raise ReconnectRequiredError()

    user.blogspot_access_token = tokens["access_token"]
    user.blogspot_expires_at = _expiry(tokens, now)
    db.commit()
    return user.blogspot_access_token


def list_blogs(db: Session, client: BloggerClient, user_id: str) -> List[dict]:
    user = _connected_user(db, user_id)
    return client.list_blogs(ensure_fresh_token(db, client, user))


def connection_status(db: Session, user_id: str) -> dict:
    user = db.get(User, user_id)
    return {
        "status": blogspot_connection_status(user),
        "connected": is_blogspot_connected(user),
        "blogId": user.blogspot_blog_id,
        "blogUrl": user.blogspot_blog_url,
        "expiresAt": user.blogspot_expires_at.isoformat() if user.blogspot_expires_at else None,
    }


def publish(db: Session, client: BloggerClient, user_id: str, post_id: str,
            blog_id: Optional[str] = None, now: Optional[datetime] = None):
    """
    Sends the post to Blogger, then records the result locally. These are two
    separate steps: a crash in between leaves a remote post the local row
    does not know about.
    """
    user = _connected_user(db, user_id)
    post = get_post(db, post_id, user_id)
    target_blog = blog_id or user.blogspot_blog_id
    if not target_blog:
        raise ValidationError("No blog selected. Choose a blog in your Blogspot settings.")

    access_token = ensure_fresh_token(db, client, user, now)
    content = compose_publish_content(post, user)
    remote = client.insert_post(access_token, target_blog, post.title, content,
                                [row.tag for row in post.tag_rows])

    now = now or datetime.now()
    post.blogspot_post_id = remote.get("id")
    post.blogspot_url = remote.get("url")
    post.blogspot_published_at = _parse_published(remote.get("published")) or now
    post.blogspot_last_sync_at = now
    mark_published(post, now)
    db.commit()
    db.refresh(post)
    logger.info("Post %s published to blog %s as %s", post.id, target_blog, post.blogspot_post_id)
    return remote, post


def disconnect(db: Session, user_id: str) -> None:
    user = db.get(User, user_id)
    user.blogspot_access_token = None
    user.blogspot_refresh_token = None
    user.blogspot_expires_at = None
    user.blogspot_blog_id = None
    user.blogspot_blog_url = None
    db.commit()
    logger.info("Blogspot disconnected for user %s", user_id)
