"""
Signup Schemas

Request and response models for the onboarding flow. Input is deliberately
lenient while the user is still typing; the provisioning workflow does the
authoritative validation at commit time.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SignupSessionCreate(BaseModel):
    email: str | None = Field(None, max_length=320, description="Owner email address")
    blog_name: str | None = Field(None, max_length=200, description="Display name of the new blog")
    subdomain: str | None = Field(None, max_length=63, description="Requested subdomain; derived from the blog name when omitted")
    theme: str | None = Field(None, max_length=50)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"email": "owner@example.com", "blog_name": "Acme Notes", "subdomain": "acme", "theme": "classic"}
        }
    )


class SignupSessionUpdate(BaseModel):
    email: str | None = Field(None, max_length=320)
    blog_name: str | None = Field(None, max_length=200)
    subdomain: str | None = Field(None, max_length=63)
    theme: str | None = Field(None, max_length=50)


class SignupSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    blog_name: str | None = None
    subdomain: str | None = None
    theme: str
    created_at: datetime
    expires_at: datetime


class PreviewResponse(BaseModel):
    """Live-preview data; availability is a hint, not a reservation."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    blog_name: str | None = None
    subdomain: str | None = None
    theme: str
    url: str | None = None
    subdomain_available: bool | None = None
    subdomain_problem: str | None = None
    suggestions: list[str] = Field(default_factory=list)
    expires_at: datetime


class CommitResponse(BaseModel):
    session_id: str
    state: str
    tenant_id: int | None = None
    subdomain: str | None = None
    url: str | None = None
    reason: str | None = None
    suggestions: list[str] = Field(default_factory=list)
    retryable: bool = False
    attempts: int = 0
