import re
from datetime import datetime
from typing import Any, List, Literal, Optional

import bleach
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from models import Role, AdPlacement
from task_models import TaskStatus, TaskPriority, MemberRole
from post_models import PostStatus

URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


def clean_text(v: Optional[str]) -> Optional[str]:
    """Strips all HTML tags and attributes from plain-text input."""
    if v:
        return bleach.clean(v, tags=[], attributes={}, strip=True).strip()
    return v


def to_naive_local(v: Optional[datetime]) -> Optional[datetime]:
    # timestamps are stored as naive local time
    if v is not None and v.tzinfo is not None:
        return v.astimezone().replace(tzinfo=None)
    return v


def check_password_strength(v: str) -> str:
    if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
        raise ValueError("Password must contain at least one lowercase letter, one uppercase letter, and one number")
    return v


def check_url(v: Optional[str], message: str) -> Optional[str]:
    if v and not URL_RE.match(v):
        raise ValueError(message)
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def dump(model: BaseModel) -> dict:
    return model.model_dump(by_alias=True, mode="json")


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


# --- Auth ---
class SignupRequest(CamelModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("name")
    @classmethod
    def sanitize_name(cls, v: str) -> str:
        return clean_text(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    timezone: Optional[str] = Field(None, max_length=64)
    avatar: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "bio", "timezone")
    @classmethod
    def sanitize(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)


# --- Users ---
class UserSummary(CamelModel):
    id: str
    name: str
    email: str
    avatar: Optional[str] = None


class UserOut(UserSummary):
    role: Role
    is_active: bool
    bio: Optional[str] = None
    timezone: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AffiliateLink(CamelModel):
    keyword: str = Field(min_length=1, max_length=100)
    url: str = Field(min_length=1, max_length=500)
    description: str = Field("", max_length=200)

    @field_validator("url")
    @classmethod
    def valid_url(cls, v: str) -> str:
        return check_url(v, "URL must be a valid http(s) URL")


class PostAffiliateLink(AffiliateLink):
    position: Optional[int] = Field(None, ge=0)


class BlogspotSettingsRequest(CamelModel):
    blog_id: Optional[str] = Field(None, max_length=64)
    blog_url: Optional[str] = Field(None, max_length=500)


class AdSenseSettingsRequest(CamelModel):
    is_enabled: bool
    ad_code: Optional[str] = None
    placement: Optional[AdPlacement] = None


class AffiliateSettingsRequest(CamelModel):
    is_enabled: bool
    links: Optional[List[AffiliateLink]] = None


class SeoSettingsRequest(CamelModel):
    auto_generate_meta: Optional[bool] = None
    auto_generate_tags: Optional[bool] = None
    default_tags: Optional[List[str]] = None

    @field_validator("default_tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_tag_list(v)


class BlogSettingsOut(CamelModel):
    blogspot_connected: bool
    blogspot_status: str
    blogspot_blog_id: Optional[str] = None
    blogspot_blog_url: Optional[str] = None
    adsense_enabled: bool
    adsense_code: Optional[str] = None
    adsense_placement: AdPlacement
    affiliate_enabled: bool
    affiliate_links: List[AffiliateLink] = []
    seo_auto_generate_meta: bool
    seo_auto_generate_tags: bool
    seo_default_tags: List[str] = []


# --- Projects ---
class ProjectCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = None

    @field_validator("name", "description")
    @classmethod
    def sanitize(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)

    @field_validator("color")
    @classmethod
    def valid_color(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not HEX_COLOR_RE.match(v):
            raise ValueError("Color must be a hex value like #3b82f6")
        return v


class ProjectUpdate(ProjectCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class MemberAddRequest(CamelModel):
    user_id: str
    role: MemberRole = MemberRole.MEMBER


class ProjectSummary(CamelModel):
    id: str
    name: str
    color: Optional[str] = None


class MemberOut(CamelModel):
    user: UserSummary
    role: MemberRole
    joined_at: datetime


class ProjectOut(ProjectSummary):
    description: Optional[str] = None
    owner: UserSummary
    members: List[MemberOut] = []
    task_count: int = 0
    created_at: datetime
    updated_at: datetime


# --- Tasks ---
class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    project_id: str
    assignee_id: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[int] = Field(None, ge=1, le=1000)
    parent_task_id: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "description")
    @classmethod
    def sanitize_input(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)

    @field_validator("due_date")
    @classmethod
    def local_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_tag_list(v)


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[int] = Field(None, ge=1, le=1000)
    actual_hours: Optional[int] = Field(None, ge=1, le=1000)
    tags: Optional[List[str]] = None

    @field_validator("title", "description")
    @classmethod
    def sanitize_input(cls, v: Optional[str]) -> Optional[str]:
        return clean_text(v)

    @field_validator("due_date")
    @classmethod
    def local_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_tag_list(v)


class CommentCreate(CamelModel):
    content: str = Field(min_length=1, max_length=1000)

    @field_validator("content")
    @classmethod
    def sanitize_input(cls, v: str) -> str:
        v = clean_text(v)
        if not v:
            raise ValueError("Comment content must be between 1 and 1000 characters")
        return v


class TagOut(CamelModel):
    id: str
    name: str
    color: Optional[str] = None


class CommentOut(CamelModel):
    id: str
    content: str
    author: UserSummary
    created_at: datetime


class TaskRef(CamelModel):
    id: str
    title: str


class TaskOut(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    estimated_hours: Optional[int] = None
    actual_hours: Optional[int] = None
    completed_at: Optional[datetime] = None
    creator_id: str
    assignee_id: Optional[str] = None
    project_id: str
    parent_task_id: Optional[str] = None
    creator: UserSummary
    assignee: Optional[UserSummary] = None
    project: ProjectSummary
    tags: List[TagOut] = []
    comment_count: int = 0
    subtask_count: int = 0
    created_at: datetime
    updated_at: datetime


class SubtaskOut(CamelModel):
    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    assignee: Optional[UserSummary] = None
    created_at: datetime


class TaskDetailOut(TaskOut):
    comments: List[CommentOut] = []
    subtasks: List[SubtaskOut] = []
    parent_task: Optional[TaskRef] = None


# --- Posts ---
def normalize_tag_list(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    seen = []
    for tag in v:
        tag = clean_text(tag).strip().lower() if tag else ""
        if not tag:
            continue
        if len(tag) > 50:
            raise ValueError("Tag cannot exceed 50 characters")
        if tag not in seen:
            seen.append(tag)
    return seen


class SeoIn(CamelModel):
    meta_title: Optional[str] = Field(None, max_length=60)
    meta_description: Optional[str] = Field(None, max_length=160)
    slug: Optional[str] = Field(None, max_length=250)
    canonical_url: Optional[str] = Field(None, max_length=500)

    @field_validator("slug")
    @classmethod
    def url_friendly(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip().lower()
            if not SLUG_RE.match(v):
                raise ValueError("Slug must be URL-friendly")
        return v


class MonetizationIn(CamelModel):
    ad_sense_enabled: Optional[bool] = None
    ad_sense_code: Optional[str] = None
    affiliate_links: Optional[List[PostAffiliateLink]] = None


class AiGenerationIn(CamelModel):
    prompt: Optional[str] = None
    model: Optional[str] = Field(None, max_length=50)
    tokens_used: int = Field(0, ge=0)
    cost: float = Field(0.0, ge=0)


class PostCreate(CamelModel):
    title: str = Field(min_length=5, max_length=200)
    content: str = Field(min_length=100)
    tags: List[str] = []
    excerpt: Optional[str] = Field(None, max_length=500)
    featured_image: Optional[str] = None
    seo: SeoIn = SeoIn()
    scheduled_for: Optional[datetime] = None
    ai_prompt: Optional[str] = None
    ai_generation: Optional[AiGenerationIn] = None
    monetization: Optional[MonetizationIn] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        return v.strip()

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_tag_list(v)

    @field_validator("featured_image")
    @classmethod
    def valid_image_url(cls, v: Optional[str]) -> Optional[str]:
        return check_url(v, "Featured image must be a valid URL")

    @field_validator("scheduled_for")
    @classmethod
    def local_schedule(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)


class PostUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    content: Optional[str] = Field(None, min_length=100)
    tags: Optional[List[str]] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    featured_image: Optional[str] = None
    seo: Optional[SeoIn] = None
    scheduled_for: Optional[datetime] = None
    monetization: Optional[MonetizationIn] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_tag_list(v)

    @field_validator("featured_image")
    @classmethod
    def valid_image_url(cls, v: Optional[str]) -> Optional[str]:
        return check_url(v, "Featured image must be a valid URL")

    @field_validator("scheduled_for")
    @classmethod
    def local_schedule(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)


class SeoOut(CamelModel):
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    slug: Optional[str] = None
    canonical_url: Optional[str] = None


class BlogspotOut(CamelModel):
    post_id: Optional[str] = None
    published_at: Optional[datetime] = None
    url: Optional[str] = None
    last_sync_at: Optional[datetime] = None


class AiGenerationOut(CamelModel):
    prompt: str
    model: str
    tokens_used: int
    cost: float


class MonetizationOut(CamelModel):
    ad_sense_enabled: bool
    ad_sense_code: Optional[str] = None
    affiliate_links: List[PostAffiliateLink] = []


class AnalyticsOut(CamelModel):
    views: int = 0
    likes: int = 0
    shares: int = 0
    comments: int = 0


class PostOut(CamelModel):
    id: str
    user_id: str
    title: str
    content: str
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    tags: List[str] = []
    status: PostStatus
    seo: SeoOut
    blogspot: BlogspotOut
    ai_generation: AiGenerationOut
    monetization: MonetizationOut
    analytics: AnalyticsOut
    scheduled_for: Optional[datetime] = None
    published_at: Optional[datetime] = None
    reading_time: int
    word_count: int
    created_at: datetime
    updated_at: datetime


# --- AI generation ---
class GenerateContentRequest(CamelModel):
    prompt: str = Field(min_length=10, max_length=1000)
    tone: Literal["professional", "casual", "friendly", "authoritative", "conversational"] = "professional"
    length: Literal["short", "medium", "long"] = "medium"
    style: Literal["blog", "article", "news", "tutorial", "review"] = "blog"


class GenerateTitleRequest(CamelModel):
    topic: str = Field(min_length=5, max_length=200)
    keywords: List[str] = []
    style: Literal["clickbait", "professional", "question", "how-to", "list"] = "professional"


class GenerateTagsRequest(CamelModel):
    content: str = Field(min_length=50, max_length=5000)
    topic: Optional[str] = Field(None, min_length=3, max_length=100)
    count: int = Field(10, ge=5, le=20)


class GenerateMetaRequest(CamelModel):
    title: str = Field(min_length=10, max_length=200)
    content: str = Field(min_length=50, max_length=1000)
    keywords: List[str] = []


# --- Blogspot ---
class BlogspotPublishRequest(CamelModel):
    post_id: str
    blog_id: Optional[str] = None
