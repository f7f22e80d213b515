import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, Float, Boolean, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship
from database import Base
from models import TimestampMixin, new_id


class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"


class Post(TimestampMixin, Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(String(500))
    featured_image = Column(String(500), default="")
    status = Column(Enum(PostStatus, values_callable=lambda e: [m.value for m in e]),
                    default=PostStatus.DRAFT, index=True, nullable=False)

    seo_meta_title = Column(String(60))
    seo_meta_description = Column(String(160))
    seo_slug = Column(String(250), unique=True, index=True)
    seo_canonical_url = Column(String(500))

    blogspot_post_id = Column(String(64), index=True)
    blogspot_published_at = Column(DateTime)
    blogspot_url = Column(String(500))
    blogspot_last_sync_at = Column(DateTime)

    ai_prompt = Column(Text, nullable=False, default="Manual creation")
    ai_model = Column(String(50), nullable=False, default="manual")
    ai_tokens_used = Column(Integer, nullable=False, default=0)
    ai_cost = Column(Float, nullable=False, default=0.0)

    adsense_enabled = Column(Boolean, nullable=False, default=False)
    adsense_code = Column(Text)
    affiliate_links = Column(JSON, nullable=False, default=list)  # [{keyword, url, description, position}]

    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)

    scheduled_for = Column(DateTime)
    published_at = Column(DateTime)

    author = relationship("User")
    tag_rows = relationship("PostTag", cascade="all, delete-orphan", order_by="PostTag.position")


class PostTag(Base):
    __tablename__ = "post_tags"

    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True)
    tag = Column(String(50), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)
