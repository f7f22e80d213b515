import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship
from database import Base
from encryption import EncryptedString


def new_id() -> str:
    return str(uuid.uuid4())


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class AdPlacement(str, enum.Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"
    SIDEBAR = "sidebar"


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(Enum(Role), default=Role.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    avatar = Column(String(500))
    bio = Column(Text)
    timezone = Column(String(64))

    # Blogspot connection; tokens are encrypted at rest
    blogspot_access_token = Column(EncryptedString)
    blogspot_refresh_token = Column(EncryptedString)
    blogspot_expires_at = Column(DateTime)
    blogspot_blog_id = Column(String(64), index=True)
    blogspot_blog_url = Column(String(500))

    adsense_enabled = Column(Boolean, default=False, nullable=False)
    adsense_code = Column(Text)
    adsense_placement = Column(Enum(AdPlacement), default=AdPlacement.MIDDLE, nullable=False)

    affiliate_enabled = Column(Boolean, default=False, nullable=False)
    affiliate_links = Column(JSON, default=list, nullable=False)  # [{keyword, url, description}]

    seo_auto_generate_meta = Column(Boolean, default=True, nullable=False)
    seo_auto_generate_tags = Column(Boolean, default=True, nullable=False)
    seo_default_tags = Column(JSON, default=list, nullable=False)

    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=new_id)
    token = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")
