import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, func, select
from sqlalchemy.orm import Session

from database import LIKE_ESCAPE, like_pattern
from errors import AuthorizationError, NotFoundError, ValidationError
from models import User, Role
from pagination import paginate
from post_models import Post, PostStatus
from schemas import BlogSettingsOut, UserOut, UserSummary, dump
from task_models import Project, ProjectMember, Task

logger = logging.getLogger(__name__)

MEMBER_SEARCH_LIMIT = 10


# --- Blogspot connection state ---
def is_blogspot_connected(user: User) -> bool:
    return bool(user.blogspot_access_token and user.blogspot_refresh_token)


def blogspot_connection_status(user: User, now: Optional[datetime] = None) -> str:
    if not is_blogspot_connected(user):
        return "disconnected"
    now = now or datetime.now()
    if user.blogspot_expires_at and user.blogspot_expires_at <= now:
        return "token_expired"
    return "connected"


def _search_clause(term: str):
    pattern = like_pattern(term)
    return or_(func.lower(User.name).like(pattern, escape=LIKE_ESCAPE),
               func.lower(User.email).like(pattern, escape=LIKE_ESCAPE))


def list_users(db: Session, search: Optional[str] = None, role: Optional[Role] = None,
               page: int = 1, limit: int = 20):
    query = db.query(User)
    if search:
        query = query.filter(_search_clause(search))
    if role:
        query = query.filter(User.role == role)
    return paginate(query.order_by(User.created_at.desc()), page, limit)


def get_user_detail(db: Session, user_id: str, requester_id: str, requester_is_admin: bool) -> dict:
    if user_id != requester_id and not requester_is_admin:
        raise AuthorizationError("Access denied")
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    data = dump(UserOut.model_validate(user))
    data["counts"] = {
        "ownedProjects": db.query(Project).filter(Project.owner_id == user_id).count(),
        "tasks": db.query(Task).filter(Task.creator_id == user_id).count(),
        "assignedTasks": db.query(Task).filter(Task.assignee_id == user_id).count(),
    }
    return data


def search_members(db: Session, q: str, project_id: Optional[str] = None):
    """Active users matching `q`, minus anyone already on `project_id`."""
    query = db.query(User).filter(User.is_active.is_(True), _search_clause(q))
    if project_id:
        owners = select(Project.owner_id).where(Project.id == project_id)
        members = select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
        query = query.filter(User.id.notin_(owners), User.id.notin_(members))
    users = query.order_by(User.name.asc()).limit(MEMBER_SEARCH_LIMIT).all()
    return [dump(UserSummary.model_validate(u)) for u in users]


# --- Blog settings ---
def get_account(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def blog_settings_to_out(user: User) -> dict:
    out = BlogSettingsOut(
        blogspot_connected=is_blogspot_connected(user),
        blogspot_status=blogspot_connection_status(user),
        blogspot_blog_id=user.blogspot_blog_id,
        blogspot_blog_url=user.blogspot_blog_url,
        adsense_enabled=user.adsense_enabled,
        adsense_code=user.adsense_code,
        adsense_placement=user.adsense_placement,
        affiliate_enabled=user.affiliate_enabled,
        affiliate_links=user.affiliate_links or [],
        seo_auto_generate_meta=user.seo_auto_generate_meta,
        seo_auto_generate_tags=user.seo_auto_generate_tags,
        seo_default_tags=user.seo_default_tags or [],
    )
    return dump(out)


def update_blogspot_settings(db: Session, user_id: str, blog_id: Optional[str] = None,
                             blog_url: Optional[str] = None) -> User:
    user = get_account(db, user_id)
    if not is_blogspot_connected(user):
        raise ValidationError("Blogspot not connected. Please connect your account first.")
    if blog_id:
        user.blogspot_blog_id = blog_id
    if blog_url:
        user.blogspot_blog_url = blog_url
    db.commit()
    db.refresh(user)
    return user


def update_adsense_settings(db: Session, user_id: str, is_enabled: bool, ad_code: Optional[str] = None,
                            placement=None, ad_code_sent: bool = False) -> User:
    user = get_account(db, user_id)
    user.adsense_enabled = is_enabled
    if ad_code_sent:
        user.adsense_code = ad_code
    if placement:
        user.adsense_placement = placement
    db.commit()
    db.refresh(user)
    return user


def update_affiliate_settings(db: Session, user_id: str, is_enabled: bool, links=None) -> User:
    user = get_account(db, user_id)
    user.affiliate_enabled = is_enabled
    if links is not None:
        user.affiliate_links = links
    db.commit()
    db.refresh(user)
    return user


def update_seo_settings(db: Session, user_id: str, auto_generate_meta: Optional[bool] = None,
                        auto_generate_tags: Optional[bool] = None, default_tags=None) -> User:
    user = get_account(db, user_id)
    if auto_generate_meta is not None:
        user.seo_auto_generate_meta = auto_generate_meta
    if auto_generate_tags is not None:
        user.seo_auto_generate_tags = auto_generate_tags
    if default_tags is not None:
        user.seo_default_tags = default_tags
    db.commit()
    db.refresh(user)
    return user


def delete_account(db: Session, user_id: str) -> None:
    user = get_account(db, user_id)
    published = db.query(Post).filter(Post.user_id == user_id, Post.status == PostStatus.PUBLISHED).count()
    if published:
        raise ValidationError("Cannot delete account with published posts. Please unpublish or delete them first.")

    for post in db.query(Post).filter(Post.user_id == user_id).all():
        db.delete(post)
    db.delete(user)
    db.commit()
    logger.info("Account %s deleted", user_id)
