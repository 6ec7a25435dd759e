"""
Tenant-owned content: posts, site settings and media uploads.

Each row belongs to exactly one tenant for its whole lifetime.
"""

import enum

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from multiblog.database import Base
from multiblog.models.ownership import TenantOwnedMixin
from multiblog.utils.clock import utcnow


class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Post(TenantOwnedMixin, Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(300), nullable=False)
    slug = Column(String(300), nullable=False)
    body = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default=PostStatus.DRAFT.value)
    publish_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Slugs are unique per blog, not globally
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_post_tenant_slug"),
        Index("idx_post_tenant_status", "tenant_id", "status"),
    )


class SiteSettings(TenantOwnedMixin, Base):
    __tablename__ = "site_settings"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    tagline = Column(String(300), nullable=True)
    theme = Column(String(50), nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("tenant_id", name="uq_site_settings_tenant"),)


class MediaUpload(TenantOwnedMixin, Base):
    """Uploaded media file; the bytes live in external storage."""

    __tablename__ = "media_uploads"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)  # counted in the tenant's storage usage
    storage_path = Column(String(500), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_media_tenant_uploaded_at", "tenant_id", "uploaded_at"),)
