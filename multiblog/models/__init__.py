from .content import MediaUpload, Post, PostStatus, SiteSettings
from .ownership import TenantOwnedMixin
from .registration import RegistrationSession
from .tenant import PlanTier, RoutingKey, RoutingKeyKind, Tenant, TenantStatus

__all__ = [
    "MediaUpload",
    "Post",
    "PostStatus",
    "SiteSettings",
    "TenantOwnedMixin",
    "RegistrationSession",
    "PlanTier",
    "RoutingKey",
    "RoutingKeyKind",
    "Tenant",
    "TenantStatus",
]
