from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from config import Settings
from dependencies import get_db, get_settings, get_current_user, get_blogger_client, CurrentUser
from errors import ValidationError
from schemas import BlogspotPublishRequest, envelope
from services import blogspot_service, post_service
from services.blogspot_service import BloggerClient

router = APIRouter(prefix="/blogspot", tags=["blogspot"])


@router.get("/auth")
def start_auth(settings: Settings = Depends(get_settings), client: BloggerClient = Depends(get_blogger_client),
               current_user: CurrentUser = Depends(get_current_user)):
    auth_url = blogspot_service.get_auth_url(client, settings, current_user.id)
    return envelope({"authUrl": auth_url}, "OAuth2 URL generated successfully")


@router.get("/callback")
def oauth_callback(code: Optional[str] = None, state: Optional[str] = None, db: Session = Depends(get_db),
                   settings: Settings = Depends(get_settings), client: BloggerClient = Depends(get_blogger_client)):
    """
    Landing point for Google's consent redirect. Public: the user is
    identified by the signed `state`, not by a session.
    """
    if not code:
        raise ValidationError("Authorization code not received")
    redirect_to = blogspot_service.handle_callback(db, client, settings, code, state)
    return RedirectResponse(redirect_to, status_code=302)


@router.get("/blogs")
def list_blogs(db: Session = Depends(get_db), client: BloggerClient = Depends(get_blogger_client),
               current_user: CurrentUser = Depends(get_current_user)):
    blogs = blogspot_service.list_blogs(db, client, current_user.id)
    return envelope({"blogs": blogs}, "Blogs retrieved successfully")


@router.get("/status")
def connection_status(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    return envelope(blogspot_service.connection_status(db, current_user.id))


@router.post("/publish")
def publish(body: BlogspotPublishRequest, db: Session = Depends(get_db),
            client: BloggerClient = Depends(get_blogger_client),
            current_user: CurrentUser = Depends(get_current_user)):
    remote, post = blogspot_service.publish(db, client, current_user.id, body.post_id, body.blog_id)
    return envelope({"post": remote, "localPost": post_service.post_to_out(post)},
                    "Post published to Blogspot successfully")


@router.delete("/disconnect")
def disconnect(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    blogspot_service.disconnect(db, current_user.id)
    return envelope(message="Blogspot account disconnected successfully")
