"""
Tenant Schemas

Models for the platform administration API.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from multiblog.models.tenant import PlanTier, Tenant


class TenantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_ref: str
    owner_email: str
    display_name: str
    subdomain: str
    custom_domain: str | None = None
    status: str
    plan_tier: str
    storage_used_bytes: int
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantResponse":
        return cls.model_validate(tenant)


class SubdomainUpdate(BaseModel):
    subdomain: str = Field(..., min_length=1, max_length=63)


class CustomDomainUpdate(BaseModel):
    domain: str = Field(..., min_length=1, max_length=253)


class TenantProfileUpdate(BaseModel):
    display_name: str | None = Field(None, max_length=200)
    plan_tier: PlanTier | None = None


class SweepResponse(BaseModel):
    purged: int
