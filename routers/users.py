from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dependencies import get_db, get_current_user, require_role, CurrentUser
from models import Role
from schemas import (
    BlogspotSettingsRequest, AdSenseSettingsRequest, AffiliateSettingsRequest, SeoSettingsRequest,
    UserOut, dump, envelope,
)
from services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(search: Optional[str] = Query(None, max_length=100), role: Optional[Role] = None,
               page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
               db: Session = Depends(get_db), current_user: CurrentUser = Depends(require_role(Role.ADMIN))):
    users, meta = user_service.list_users(db, search, role, page, limit)
    return envelope({"items": [dump(UserOut.model_validate(u)) for u in users], "pagination": meta.to_dict()})


@router.get("/search/members")
def search_members(q: str = Query(min_length=1, max_length=100), project_id: Optional[str] = Query(None, alias="projectId"),
                   db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    """Candidates for adding to a project. Users already on `projectId` are left out."""
    return envelope(user_service.search_members(db, q.strip(), project_id))


@router.get("/settings")
def get_blog_settings(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    user = user_service.get_account(db, current_user.id)
    return envelope(user_service.blog_settings_to_out(user))


@router.put("/settings/blogspot")
def update_blogspot_settings(body: BlogspotSettingsRequest, db: Session = Depends(get_db),
                             current_user: CurrentUser = Depends(get_current_user)):
    user = user_service.update_blogspot_settings(db, current_user.id, body.blog_id, body.blog_url)
    return envelope(user_service.blog_settings_to_out(user), "Blogspot settings updated successfully")


@router.put("/settings/adsense")
def update_adsense_settings(body: AdSenseSettingsRequest, db: Session = Depends(get_db),
                            current_user: CurrentUser = Depends(get_current_user)):
    user = user_service.update_adsense_settings(
        db, current_user.id, body.is_enabled, body.ad_code, body.placement,
        ad_code_sent="ad_code" in body.model_fields_set,
    )
    return envelope(user_service.blog_settings_to_out(user), "AdSense settings updated successfully")


@router.put("/settings/affiliate")
def update_affiliate_settings(body: AffiliateSettingsRequest, db: Session = Depends(get_db),
                              current_user: CurrentUser = Depends(get_current_user)):
    links = [link.model_dump() for link in body.links] if body.links is not None else None
    user = user_service.update_affiliate_settings(db, current_user.id, body.is_enabled, links)
    return envelope(user_service.blog_settings_to_out(user), "Affiliate settings updated successfully")


@router.put("/settings/seo")
def update_seo_settings(body: SeoSettingsRequest, db: Session = Depends(get_db),
                        current_user: CurrentUser = Depends(get_current_user)):
    user = user_service.update_seo_settings(
        db, current_user.id, body.auto_generate_meta, body.auto_generate_tags, body.default_tags,
    )
    return envelope(user_service.blog_settings_to_out(user), "SEO settings updated successfully")


@router.delete("/account")
def delete_account(db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    user_service.delete_account(db, current_user.id)
    return envelope(message="Account deleted successfully")


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), current_user: CurrentUser = Depends(get_current_user)):
    return envelope(user_service.get_user_detail(db, user_id, current_user.id, current_user.is_admin))
