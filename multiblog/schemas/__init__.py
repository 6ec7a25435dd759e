from .content import (
    MediaCreate,
    MediaResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
    SiteSettingsResponse,
    SiteSettingsUpdate,
)
from .signup import CommitResponse, PreviewResponse, SignupSessionCreate, SignupSessionResponse, SignupSessionUpdate
from .tenant import CustomDomainUpdate, SubdomainUpdate, SweepResponse, TenantProfileUpdate, TenantResponse

__all__ = [
    "MediaCreate",
    "MediaResponse",
    "PostCreate",
    "PostResponse",
    "PostUpdate",
    "SiteSettingsResponse",
    "SiteSettingsUpdate",
    "CommitResponse",
    "PreviewResponse",
    "SignupSessionCreate",
    "SignupSessionResponse",
    "SignupSessionUpdate",
    "CustomDomainUpdate",
    "SubdomainUpdate",
    "SweepResponse",
    "TenantProfileUpdate",
    "TenantResponse",
]
