from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from dependencies import get_db, get_current_user, CurrentUser
from post_models import PostStatus
from schemas import PostCreate, PostUpdate, envelope
from services import post_service
from services.post_service import PostFilters

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("")
def list_posts(status_filter: Optional[PostStatus] = Query(None, alias="status"),
               search: Optional[str] = Query(None, max_length=200),
               tags: Optional[str] = None,
               page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
               db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    filters = PostFilters(status=status_filter, search=search, tags=tags, page=page, limit=limit)
    posts, meta = post_service.list_posts(db, current_user.id, filters)
    return envelope({"items": [post_service.post_to_out(p) for p in posts], "pagination": meta.to_dict()},
                    "Posts retrieved successfully")


@router.get("/stats/overview")
def post_stats(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    return envelope(post_service.post_stats(db, current_user.id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_post(body: PostCreate, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    """
    Creates a draft, or a scheduled post when `scheduledFor` lies in the
    future. A slug is derived from the title unless one is supplied.
    """
    post = post_service.create_post(db, current_user.id, body.model_dump(exclude_unset=True))
    return envelope(post_service.post_to_out(post), "Post created successfully")


@router.get("/{post_id}")
def get_post(post_id: str, db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    post = post_service.get_post(db, post_id, current_user.id)
    return envelope(post_service.post_to_out(post))


@router.put("/{post_id}")
def update_post(post_id: str, body: PostUpdate, db: Session = Depends(get_db),
                current_user: CurrentUser = Depends(get_current_user)):
    post = post_service.update_post(db, post_id, current_user.id, body.model_dump(exclude_unset=True))
    return envelope(post_service.post_to_out(post), "Post updated successfully")


@router.delete("/{post_id}")
def delete_post(post_id: str, db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    post_service.delete_post(db, post_id, current_user.id)
    return envelope(message="Post deleted successfully")


@router.post("/{post_id}/publish")
def publish_post(post_id: str, db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    post = post_service.publish_post(db, post_id, current_user.id)
    return envelope(post_service.post_to_out(post), "Post published successfully")


@router.post("/{post_id}/unpublish")
def unpublish_post(post_id: str, db: Session = Depends(get_db),
                   current_user: CurrentUser = Depends(get_current_user)):
    post = post_service.unpublish_post(db, post_id, current_user.id)
    return envelope(post_service.post_to_out(post), "Post unpublished successfully")
