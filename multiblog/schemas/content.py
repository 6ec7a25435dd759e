from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PostStatusIn(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300, title="Post Title")
    body: str = Field("", title="Post Body")
    slug: str | None = Field(None, max_length=300, description="Derived from the title when omitted")
    status: PostStatusIn = Field(PostStatusIn.DRAFT, title="Post Status")


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    body: str | None = None
    slug: str | None = Field(None, max_length=300)
    status: PostStatusIn | None = None


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    body: str
    status: str
    publish_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SiteSettingsUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    tagline: str | None = Field(None, max_length=300)
    theme: str | None = Field(None, max_length=50)


class SiteSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    tagline: str | None = None
    theme: str
    updated_at: datetime


class MediaCreate(BaseModel):
    """Metadata for a file already stored by the upload collaborator."""

    filename: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., max_length=100)
    size_bytes: int = Field(..., ge=0)
    storage_path: str = Field(..., min_length=1, max_length=500)


class MediaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    mime_type: str
    size_bytes: int
    storage_path: str
    uploaded_at: datetime
