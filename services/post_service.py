"""
Blog posts. All operations are scoped to the owning user; touching someone
else's post is an AuthorizationError rather than a 404.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from database import LIKE_ESCAPE, like_pattern
from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from pagination import paginate
from post_models import Post, PostStatus, PostTag
from schemas import (
    PostOut, SeoOut, BlogspotOut, AiGenerationOut, MonetizationOut, AnalyticsOut, dump,
)
from services.content import slugify, reading_time, word_count

logger = logging.getLogger(__name__)


@dataclass
class PostFilters:
    status: Optional[PostStatus] = None
    search: Optional[str] = None
    tags: Optional[str] = None
    page: int = 1
    limit: int = 10


def _status_for(scheduled_for: Optional[datetime], now: Optional[datetime] = None) -> PostStatus:
    now = now or datetime.now()
    if scheduled_for and scheduled_for > now:
        return PostStatus.SCHEDULED
    return PostStatus.DRAFT


def _slug_taken(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Post.id).filter(Post.seo_slug == slug)
    if exclude_id:
        query = query.filter(Post.id != exclude_id)
    return query.first() is not None


def unique_slug(db: Session, title: str, exclude_id: Optional[str] = None) -> str:
    """Slug derived from `title`, suffixed -2, -3, ... until it is free."""
    base = slugify(title)
    slug, n = base, 1
    while _slug_taken(db, slug, exclude_id):
        n += 1
        slug = f"{base}-{n}"
    return slug


def _claim_slug(db: Session, slug: str, exclude_id: Optional[str] = None) -> str:
    if _slug_taken(db, slug, exclude_id):
        raise ConflictError("A post with this slug already exists")
    return slug


def _set_tags(post: Post, tags: List[str]) -> None:
    existing = {row.tag: row for row in post.tag_rows}
    rows = []
    for position, tag in enumerate(tags):
        row = existing.get(tag) or PostTag(tag=tag)
        row.position = position
        rows.append(row)
    post.tag_rows = rows


def _apply_seo(post: Post, seo: dict) -> None:
    for key in ("meta_title", "meta_description", "canonical_url"):
        if key in seo:
            setattr(post, f"seo_{key}", seo[key])


def _apply_monetization(post: Post, monetization: dict) -> None:
    if monetization.get("ad_sense_enabled") is not None:
        post.adsense_enabled = monetization["ad_sense_enabled"]
    if "ad_sense_code" in monetization:
        post.adsense_code = monetization["ad_sense_code"]
    if monetization.get("affiliate_links") is not None:
        post.affiliate_links = monetization["affiliate_links"]


def list_posts(db: Session, user_id: str, filters: PostFilters):
    query = db.query(Post).filter(Post.user_id == user_id)
    if filters.status:
        query = query.filter(Post.status == filters.status)
    if filters.search:
        pattern = like_pattern(filters.search)
        tag_match = Post.tag_rows.any(func.lower(PostTag.tag).like(pattern, escape=LIKE_ESCAPE))
        query = query.filter(or_(
            func.lower(Post.title).like(pattern, escape=LIKE_ESCAPE),
            func.lower(Post.content).like(pattern, escape=LIKE_ESCAPE),
            tag_match,
        ))
    if filters.tags:
        wanted = [t.strip().lower() for t in filters.tags.split(",") if t.strip()]
        if wanted:
            query = query.filter(Post.tag_rows.any(PostTag.tag.in_(wanted)))
    query = query.order_by(Post.created_at.desc(), Post.id)
    return paginate(query, filters.page, filters.limit)


def get_post(db: Session, post_id: str, user_id: str) -> Post:
    post = db.get(Post, post_id)
    if not post:
        raise NotFoundError("Post not found")
    if post.user_id != user_id:
        raise AuthorizationError("Not authorized to access this post")
    return post


def create_post(db: Session, user_id: str, data: dict, now: Optional[datetime] = None) -> Post:
    seo = data.get("seo") or {}
    ai = data.get("ai_generation") or {}

    post = Post(
        user_id=user_id,
        title=data["title"],
        content=data["content"],
        excerpt=data.get("excerpt"),
        featured_image=data.get("featured_image") or "",
        scheduled_for=data.get("scheduled_for"),
        status=_status_for(data.get("scheduled_for"), now),
        ai_prompt=ai.get("prompt") or data.get("ai_prompt") or "Manual creation",
        ai_model=ai.get("model") or "manual",
        ai_tokens_used=ai.get("tokens_used") or 0,
        ai_cost=ai.get("cost") or 0.0,
    )
    if seo.get("slug"):
        post.seo_slug = _claim_slug(db, seo["slug"])
    else:
        post.seo_slug = unique_slug(db, data["title"])
    _apply_seo(post, seo)
    _apply_monetization(post, data.get("monetization") or {})
    _set_tags(post, data.get("tags") or [])

    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("Post %s created by %s (%s)", post.id, user_id, post.status.value)
    return post


def update_post(db: Session, post_id: str, user_id: str, changes: dict, now: Optional[datetime] = None) -> Post:
    post = get_post(db, post_id, user_id)

    for key in ("title", "content", "excerpt", "featured_image"):
        if changes.get(key) is not None:
            setattr(post, key, changes[key])
    if changes.get("tags") is not None:
        _set_tags(post, changes["tags"])

    seo = changes.get("seo")
    if seo:
        if seo.get("slug") and seo["slug"] != post.seo_slug:
            post.seo_slug = _claim_slug(db, seo["slug"], exclude_id=post.id)
        _apply_seo(post, seo)
    if changes.get("monetization"):
        _apply_monetization(post, changes["monetization"])

    if changes.get("scheduled_for"):
        post.scheduled_for = changes["scheduled_for"]
        post.status = _status_for(post.scheduled_for, now)

    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, post_id: str, user_id: str) -> None:
    post = get_post(db, post_id, user_id)
    if post.status == PostStatus.PUBLISHED and post.blogspot_post_id:
        raise ValidationError("Cannot delete published post. Unpublish it first.")
    db.delete(post)
    db.commit()
    logger.info("Post %s deleted by %s", post_id, user_id)


def mark_published(post: Post, now: Optional[datetime] = None) -> None:
    post.status = PostStatus.PUBLISHED
    if post.published_at is None:
        post.published_at = now or datetime.now()


def publish_post(db: Session, post_id: str, user_id: str, now: Optional[datetime] = None) -> Post:
    post = get_post(db, post_id, user_id)
    if post.status == PostStatus.PUBLISHED:
        raise ValidationError("Post is already published")
    mark_published(post, now)
    db.commit()
    db.refresh(post)
    return post


def unpublish_post(db: Session, post_id: str, user_id: str) -> Post:
    post = get_post(db, post_id, user_id)
    if post.status != PostStatus.PUBLISHED:
        raise ValidationError("Post is not published")
    # published_at records the first publication and survives this
    post.status = PostStatus.DRAFT
    db.commit()
    db.refresh(post)
    return post


def post_stats(db: Session, user_id: str) -> dict:
    def by_status(status):
        return func.coalesce(func.sum(case((Post.status == status, 1), else_=0)), 0)

    row = db.query(
        func.count(Post.id),
        by_status(PostStatus.PUBLISHED),
        by_status(PostStatus.DRAFT),
        by_status(PostStatus.SCHEDULED),
        func.coalesce(func.sum(Post.views), 0),
        func.coalesce(func.sum(Post.likes), 0),
        func.coalesce(func.sum(Post.shares), 0),
        func.coalesce(func.sum(Post.comments), 0),
    ).filter(Post.user_id == user_id).one()

    keys = ("totalPosts", "publishedPosts", "draftPosts", "scheduledPosts",
            "totalViews", "totalLikes", "totalShares", "totalComments")
    return {key: int(value or 0) for key, value in zip(keys, row)}


# --- Serialization ---
def post_to_out(post: Post) -> dict:
    out = PostOut(
        id=post.id,
        user_id=post.user_id,
        title=post.title,
        content=post.content,
        excerpt=post.excerpt,
        featured_image=post.featured_image,
        tags=[row.tag for row in post.tag_rows],
        status=post.status,
        seo=SeoOut(
            meta_title=post.seo_meta_title,
            meta_description=post.seo_meta_description,
            slug=post.seo_slug,
            canonical_url=post.seo_canonical_url,
        ),
        blogspot=BlogspotOut(
            post_id=post.blogspot_post_id,
            published_at=post.blogspot_published_at,
            url=post.blogspot_url,
            last_sync_at=post.blogspot_last_sync_at,
        ),
        ai_generation=AiGenerationOut(
            prompt=post.ai_prompt,
            model=post.ai_model,
            tokens_used=post.ai_tokens_used,
            cost=post.ai_cost,
        ),
        monetization=MonetizationOut(
            ad_sense_enabled=post.adsense_enabled,
            ad_sense_code=post.adsense_code,
            affiliate_links=post.affiliate_links or [],
        ),
        analytics=AnalyticsOut(views=post.views, likes=post.likes, shares=post.shares, comments=post.comments),
        scheduled_for=post.scheduled_for,
        published_at=post.published_at,
        reading_time=reading_time(post.content),
        word_count=word_count(post.content),
        created_at=post.created_at,
        updated_at=post.updated_at,
    )
    return dump(out)
