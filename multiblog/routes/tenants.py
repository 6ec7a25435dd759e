"""
Tenant Administration Routes

Platform host only, guarded by the X-Admin-Token header.

GET    /admin/tenants                        → list tenants
GET    /admin/tenants/{id}                   → get tenant
POST   /admin/tenants/{id}/suspend           → suspend tenant
POST   /admin/tenants/{id}/reactivate        → reactivate tenant
DELETE /admin/tenants/{id}                   → soft-delete tenant, release its keys
PUT    /admin/tenants/{id}/subdomain         → move tenant to a new subdomain
PUT    /admin/tenants/{id}/custom-domain     → attach or change custom domain
DELETE /admin/tenants/{id}/custom-domain     → detach custom domain
PATCH  /admin/tenants/{id}                   → change display name or plan
POST   /admin/registration-sessions/sweep    → purge expired signup sessions now
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from multiblog.container import Platform
from multiblog.dependencies import get_platform, require_admin, require_platform_host
from multiblog.models.tenant import RoutingKeyKind, TenantStatus
from multiblog.schemas.tenant import (
    CustomDomainUpdate,
    SubdomainUpdate,
    SweepResponse,
    TenantProfileUpdate,
    TenantResponse,
)

router = APIRouter(dependencies=[Depends(require_platform_host), Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.get("/tenants", response_model=list[TenantResponse])
async def list_tenants_route(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    tenant_status: TenantStatus | None = Query(None, alias="status"),
    platform: Platform = Depends(get_platform),
) -> list[TenantResponse]:
    tenants = await platform.directory.list_tenants(skip=skip, limit=limit, status=tenant_status)
    return [TenantResponse.from_tenant(t) for t in tenants]


@router.get("/tenants/{tenant_id}", response_model=TenantResponse)
async def get_tenant_route(tenant_id: int, platform: Platform = Depends(get_platform)) -> TenantResponse:
    return TenantResponse.from_tenant(await platform.directory.get(tenant_id))


@router.patch("/tenants/{tenant_id}", response_model=TenantResponse)
async def update_tenant_route(
    tenant_id: int,
    payload: TenantProfileUpdate,
    platform: Platform = Depends(get_platform),
) -> TenantResponse:
    tenant = await platform.directory.update_profile(
        tenant_id,
        display_name=payload.display_name,
        plan_tier=payload.plan_tier.value if payload.plan_tier else None,
    )
    return TenantResponse.from_tenant(tenant)


@router.post("/tenants/{tenant_id}/suspend", response_model=TenantResponse)
async def suspend_tenant_route(tenant_id: int, platform: Platform = Depends(get_platform)) -> TenantResponse:
    """Suspend a tenant; its hosts keep resolving but every content operation is refused."""
    return TenantResponse.from_tenant(await platform.directory.suspend(tenant_id))


@router.post("/tenants/{tenant_id}/reactivate", response_model=TenantResponse)
async def reactivate_tenant_route(tenant_id: int, platform: Platform = Depends(get_platform)) -> TenantResponse:
    return TenantResponse.from_tenant(await platform.directory.activate(tenant_id))


@router.delete("/tenants/{tenant_id}", response_model=TenantResponse)
async def delete_tenant_route(tenant_id: int, platform: Platform = Depends(get_platform)) -> TenantResponse:
    tenant = await platform.directory.delete(tenant_id)
    logger.info("Tenant %d deleted by administrator", tenant_id)
    return TenantResponse.from_tenant(tenant)


@router.put("/tenants/{tenant_id}/subdomain", response_model=TenantResponse)
async def change_subdomain_route(
    tenant_id: int,
    payload: SubdomainUpdate,
    platform: Platform = Depends(get_platform),
) -> TenantResponse:
    await platform.directory.update_routing_key(tenant_id, payload.subdomain, RoutingKeyKind.subdomain)
    return TenantResponse.from_tenant(await platform.directory.get(tenant_id))


@router.put("/tenants/{tenant_id}/custom-domain", response_model=TenantResponse)
async def change_custom_domain_route(
    tenant_id: int,
    payload: CustomDomainUpdate,
    platform: Platform = Depends(get_platform),
) -> TenantResponse:
    await platform.directory.update_routing_key(tenant_id, payload.domain, RoutingKeyKind.custom_domain)
    return TenantResponse.from_tenant(await platform.directory.get(tenant_id))


@router.delete("/tenants/{tenant_id}/custom-domain", response_model=TenantResponse)
async def remove_custom_domain_route(tenant_id: int, platform: Platform = Depends(get_platform)) -> TenantResponse:
    return TenantResponse.from_tenant(await platform.directory.remove_custom_domain(tenant_id))


@router.post("/registration-sessions/sweep", response_model=SweepResponse)
async def sweep_sessions_route(platform: Platform = Depends(get_platform)) -> SweepResponse:
    return SweepResponse(purged=await platform.store.sweep_expired())
