from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from openai import OpenAI
from slowapi import Limiter
from slowapi.util import get_remote_address

from auth_utils import decode_access_token
from config import RATE_LIMIT, Settings
from errors import AuthenticationError, AuthorizationError, UpstreamError
from models import User, Role
from services.blogspot_service import BloggerClient

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(frozen=True)
class CurrentUser:
    """Identity of the caller, passed explicitly into the service layer."""
    id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


# --- Settings / Database ---
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request):
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()


# --- Auth ---
def _extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization")
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return request.cookies.get(ACCESS_COOKIE)


def get_current_user(request: Request, db: Session = Depends(get_db),
                     settings: Settings = Depends(get_settings)) -> CurrentUser:
    """
    Verifies the access token and re-loads the user on every request, so a
    user deleted or deactivated after the token was issued is rejected.
    """
    token = _extract_token(request)
    if not token:
        raise AuthenticationError("Access token is required")
    payload = decode_access_token(token, settings)

    user = db.get(User, payload["id"])
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account has been deactivated")
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def require_role(*roles: Role):
    def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise AuthorizationError("Insufficient permissions")
        return current_user
    return checker


# --- Upstream clients ---
def get_ai_client(settings: Settings = Depends(get_settings)) -> OpenAI:
    if not settings.openai_api_key:
        raise UpstreamError("AI service configuration error. Please contact support.")
    # completions for long posts take far longer than ordinary provider calls
    return OpenAI(api_key=settings.openai_api_key, timeout=float(settings.http_timeout_seconds) * 4)


def get_blogger_client(settings: Settings = Depends(get_settings)) -> BloggerClient:
    return BloggerClient(settings)


# --- Rate Limiter ---
limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT])
