"""
Blog Routes

Served on tenant hosts (``<subdomain>.<platform domain>`` or a custom
domain). Every handler receives the resolved TenantContext explicitly and
goes through the content service, which runs inside the isolation enforcer.

Published posts and site settings are public; everything else requires the
blog owner.
"""

from fastapi import APIRouter, Depends, Query, status

from multiblog.container import Platform
from multiblog.dependencies import get_owner_ref, get_platform, get_tenant_context, is_owner, require_owner
from multiblog.exceptions import AuthorizationError
from multiblog.schemas.content import (
    MediaCreate,
    MediaResponse,
    PostCreate,
    PostResponse,
    PostUpdate,
    SiteSettingsResponse,
    SiteSettingsUpdate,
)
from multiblog.services import content_service
from multiblog.services.tenant_context import TenantContext

router = APIRouter()


# ── Posts ─────────────────────────────────────────────────────────────────────


@router.get("/posts", response_model=list[PostResponse])
async def list_posts_route(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    include_drafts: bool = False,
    context: TenantContext = Depends(get_tenant_context),
    owner_ref: str | None = Depends(get_owner_ref),
    platform: Platform = Depends(get_platform),
):
    if include_drafts and not is_owner(context, owner_ref):
        raise AuthorizationError("Only the blog owner can see drafts")
    return await content_service.list_posts(
        platform.enforcer, context, published_only=not include_drafts, skip=skip, limit=limit
    )


@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post_route(
    payload: PostCreate,
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
):
    return await content_service.create_post(
        platform.enforcer,
        context,
        title=payload.title,
        body=payload.body,
        slug=payload.slug,
        status=payload.status.value,
    )


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post_route(
    post_id: int,
    context: TenantContext = Depends(get_tenant_context),
    owner_ref: str | None = Depends(get_owner_ref),
    platform: Platform = Depends(get_platform),
):
    return await content_service.get_post(
        platform.enforcer, context, post_id, published_only=not is_owner(context, owner_ref)
    )


@router.patch("/posts/{post_id}", response_model=PostResponse)
async def update_post_route(
    post_id: int,
    payload: PostUpdate,
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
):
    updates = {k: v for k, v in payload.model_dump(exclude_unset=True, mode="json").items() if v is not None}
    return await content_service.update_post(platform.enforcer, context, post_id, updates)


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_route(
    post_id: int,
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
) -> None:
    await content_service.delete_post(platform.enforcer, context, post_id)


# ── Site settings ─────────────────────────────────────────────────────────────


@router.get("/settings", response_model=SiteSettingsResponse)
async def get_settings_route(
    context: TenantContext = Depends(get_tenant_context),
    platform: Platform = Depends(get_platform),
):
    return await content_service.get_site_settings(platform.enforcer, context)


@router.put("/settings", response_model=SiteSettingsResponse)
async def update_settings_route(
    payload: SiteSettingsUpdate,
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
):
    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    return await content_service.update_site_settings(
        platform.enforcer, context, updates, themes=platform.settings.available_themes
    )


# ── Media ─────────────────────────────────────────────────────────────────────


@router.get("/media", response_model=list[MediaResponse])
async def list_media_route(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
):
    return await content_service.list_media(platform.enforcer, context, skip=skip, limit=limit)


@router.post("/media", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def record_media_route(
    payload: MediaCreate,
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
):
    return await content_service.record_media_upload(platform.enforcer, context, **payload.model_dump())


@router.delete("/media/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media_route(
    media_id: int,
    context: TenantContext = Depends(require_owner),
    platform: Platform = Depends(get_platform),
) -> None:
    await content_service.delete_media(platform.enforcer, context, media_id)
