from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from config import AUTH_RATE_LIMIT, Settings
from dependencies import (
    get_db, get_settings, get_current_user, limiter, CurrentUser, ACCESS_COOKIE, REFRESH_COOKIE,
)
from schemas import (
    SignupRequest, LoginRequest, RefreshRequest, ChangePasswordRequest, UpdateProfileRequest,
    UserOut, dump, envelope,
)
from services import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_auth_cookies(response: Response, tokens: auth_service.AuthTokens, settings: Settings) -> None:
    common = {"httponly": True, "secure": settings.is_production, "samesite": "strict"}
    response.set_cookie(ACCESS_COOKIE, tokens.access_token, max_age=settings.jwt_expires_minutes * 60, **common)
    response.set_cookie(REFRESH_COOKIE, tokens.refresh_token, max_age=settings.refresh_token_days * 24 * 3600, **common)


def _clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)


def _session_payload(user, tokens: auth_service.AuthTokens) -> dict:
    return {"user": dump(UserOut.model_validate(user)), **tokens.to_dict()}


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
def signup(request: Request, response: Response, body: SignupRequest,
           db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """
    Registers a new account and logs it in straight away.

    Returns:
        dict: the user plus an access/refresh token pair (also set as httpOnly cookies).

    Raises:
        ConflictError: if the email is already registered.
    """
    user, tokens = auth_service.signup(db, settings, body.name, body.email, body.password)
    _set_auth_cookies(response, tokens, settings)
    return envelope(_session_payload(user, tokens), "User registered successfully")


@router.post("/login")
@limiter.limit(AUTH_RATE_LIMIT)
def login(request: Request, response: Response, body: LoginRequest,
          db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """
    Authenticates with email and password. Rate limited per client IP
    against brute forcing.
    """
    user, tokens = auth_service.login(db, settings, body.email, body.password)
    _set_auth_cookies(response, tokens, settings)
    return envelope(_session_payload(user, tokens), "Login successful")


@router.post("/refresh")
def refresh(request: Request, response: Response, body: Optional[RefreshRequest] = None,
            db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    tokens = auth_service.refresh(db, settings, token)
    _set_auth_cookies(response, tokens, settings)
    return envelope(tokens.to_dict(), "Token refreshed successfully")


@router.post("/logout")
def logout(request: Request, response: Response, body: Optional[RefreshRequest] = None,
           db: Session = Depends(get_db)):
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    if token:
        auth_service.logout(db, token)
    _clear_auth_cookies(response)
    return envelope(message="Logout successful")


@router.post("/logout-all")
def logout_all(response: Response, db: Session = Depends(get_db),
               current_user: CurrentUser = Depends(get_current_user)):
    auth_service.logout_all(db, current_user.id)
    _clear_auth_cookies(response)
    return envelope(message="Logged out from all devices")


@router.get("/me")
def me(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    user = auth_service.get_user(db, current_user.id)
    return envelope(dump(UserOut.model_validate(user)))


@router.put("/password")
def change_password(response: Response, body: ChangePasswordRequest, db: Session = Depends(get_db),
                    settings: Settings = Depends(get_settings),
                    current_user: CurrentUser = Depends(get_current_user)):
    auth_service.change_password(db, settings, current_user.id, body.current_password, body.new_password)
    # all sessions were revoked, the browser has to log in again
    _clear_auth_cookies(response)
    return envelope(message="Password changed successfully. Please login again.")


@router.put("/profile")
def update_profile(body: UpdateProfileRequest, db: Session = Depends(get_db),
                   current_user: CurrentUser = Depends(get_current_user)):
    user = auth_service.update_profile(db, current_user.id, **body.model_dump(exclude_unset=True))
    return envelope(dump(UserOut.model_validate(user)), "Profile updated successfully")
