"""Account registration, login and refresh-token rotation."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from auth_utils import (
    hash_password, verify_password, create_access_token,
    generate_refresh_token, refresh_token_expiry,
)
from config import Settings
from errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from models import User, RefreshToken

logger = logging.getLogger(__name__)


@dataclass
class AuthTokens:
    access_token: str
    refresh_token: str

    def to_dict(self) -> dict:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


def _issue_tokens(db: Session, user: User, settings: Settings) -> AuthTokens:
    access_token = create_access_token(user.id, user.email, user.role.value, settings)
    refresh_token = generate_refresh_token()
    db.add(RefreshToken(token=refresh_token, user_id=user.id, expires_at=refresh_token_expiry(settings)))
    db.commit()
    return AuthTokens(access_token=access_token, refresh_token=refresh_token)


def signup(db: Session, settings: Settings, name: str, email: str, password: str):
    email = email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")

    user = User(name=name, email=email, hashed_password=hash_password(password, settings.bcrypt_rounds))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered: %s", user.id)
    return user, _issue_tokens(db, user, settings)


def login(db: Session, settings: Settings, email: str, password: str):
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user:
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account has been deactivated")
    if not verify_password(password, user.hashed_password):
        logger.info("Failed login for user %s", user.id)
        raise AuthenticationError("Invalid email or password")
    return user, _issue_tokens(db, user, settings)


def refresh(db: Session, settings: Settings, refresh_token: Optional[str]) -> AuthTokens:
    """
    Exchanges a refresh token for a new pair. The stored row is rotated in
    place, so the presented token stops working as soon as this returns.
    """
    if not refresh_token:
        raise AuthenticationError("Refresh token is required")

    stored = db.query(RefreshToken).filter(RefreshToken.token == refresh_token).first()
    if not stored:
        raise AuthenticationError("Invalid refresh token")

    if stored.expires_at < datetime.now():
        db.delete(stored)
        db.commit()
        raise AuthenticationError("Refresh token expired")

    user = stored.user
    if not user.is_active:
        raise AuthenticationError("Account has been deactivated")

    new_refresh = generate_refresh_token()
    stored.token = new_refresh
    stored.expires_at = refresh_token_expiry(settings)
    db.commit()

    access_token = create_access_token(user.id, user.email, user.role.value, settings)
    return AuthTokens(access_token=access_token, refresh_token=new_refresh)


def logout(db: Session, refresh_token: str) -> None:
    db.query(RefreshToken).filter(RefreshToken.token == refresh_token).delete()
    db.commit()


def logout_all(db: Session, user_id: str) -> int:
    count = db.query(RefreshToken).filter(RefreshToken.user_id == user_id).delete()
    db.commit()
    return count


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account has been deactivated")
    return user


def change_password(db: Session, settings: Settings, user_id: str, current_password: str, new_password: str) -> None:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if not verify_password(current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")

    user.hashed_password = hash_password(new_password, settings.bcrypt_rounds)
    db.commit()
    # every session has to log in again with the new password
    revoked = logout_all(db, user_id)
    logger.info("Password changed for user %s, %d sessions revoked", user_id, revoked)


def update_profile(db: Session, user_id: str, **fields) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    for key, value in fields.items():
        if value is not None:
            setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user
