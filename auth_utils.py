import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from passlib.context import CryptContext
from jose import jwt, JWTError, ExpiredSignatureError

from config import Settings
from errors import AuthenticationError

_contexts = {}


def _pwd_context(rounds: int) -> CryptContext:
    if rounds not in _contexts:
        _contexts[rounds] = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
    return _contexts[rounds]


def hash_password(password: str, rounds: int = 12) -> str:
    return _pwd_context(rounds).hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return _pwd_context(12).verify(plain_password, hashed_password)


def create_access_token(user_id: str, email: str, role: str, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expires_minutes)
    payload = {"id": user_id, "email": email, "role": role, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError:
        raise AuthenticationError("Invalid token")
    if not payload.get("id"):
        raise AuthenticationError("Invalid token")
    return payload


def generate_refresh_token() -> str:
    # opaque; only its presence in the refresh_tokens table gives it meaning
    return str(uuid.uuid4())


def refresh_token_expiry(settings: Settings) -> datetime:
    return datetime.now() + timedelta(days=settings.refresh_token_days)


def create_state_token(user_id: str, settings: Settings, minutes: int = 10) -> str:
    """Signed OAuth `state` value tying a provider callback back to the user who started it."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode({"sub": user_id, "purpose": "blogspot_oauth", "exp": expire},
                      settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_state_token(state: Optional[str], settings: Settings) -> Optional[str]:
    if not state:
        return None
    try:
        payload = jwt.decode(state, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("purpose") != "blogspot_oauth":
        return None
    return payload.get("sub")
