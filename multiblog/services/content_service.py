"""
Content Service

Blog posts, site settings and media records for one tenant. Every function
takes the resolved TenantContext as an explicit argument and runs through
the isolation enforcer; nothing here opens a database session directly.
"""

import logging

from sqlalchemy.exc import IntegrityError

from multiblog.exceptions import ResourceNotFoundError, ValidationError
from multiblog.models.content import MediaUpload, Post, PostStatus, SiteSettings
from multiblog.services.isolation import AuditedOverride, IsolationEnforcer
from multiblog.services.tenant_context import TenantContext
from multiblog.utils.clock import utcnow
from multiblog.utils.slugify import slugify

logger = logging.getLogger(__name__)

POST_FIELDS = {"title", "slug", "body", "status"}
SETTINGS_FIELDS = {"title", "tagline", "theme"}


def _post_values(values: dict) -> dict:
    unknown = set(values) - POST_FIELDS
    if unknown:
        raise ValidationError(f"Unknown post fields: {', '.join(sorted(unknown))}")
    cleaned = dict(values)
    if "status" in cleaned:
        try:
            cleaned["status"] = PostStatus(cleaned["status"]).value
        except ValueError:
            raise ValidationError(f"Unknown post status '{cleaned['status']}'", field="status") from None
    if cleaned.get("slug") is not None:
        cleaned["slug"] = slugify(cleaned["slug"])
        if not cleaned["slug"]:
            raise ValidationError("Slug cannot be empty", field="slug")
    return cleaned


async def create_post(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    title: str,
    body: str = "",
    slug: str | None = None,
    status: str = PostStatus.DRAFT.value,
) -> Post:
    values = _post_values({"title": title, "body": body, "slug": slug or title, "status": status})
    if values["status"] == PostStatus.PUBLISHED.value:
        values["publish_date"] = utcnow()
    try:
        async with enforcer.scope(context) as scope:
            post = scope.add(Post(**values))
            await scope.flush()
    except IntegrityError:
        raise ValidationError(f"A post with slug '{values['slug']}' already exists", field="slug") from None
    logger.info("Post created: tenant_id=%d post_id=%d", context.tenant_id, post.id)
    return post


async def get_post(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    post_id: int,
    published_only: bool = False,
    override: AuditedOverride | None = None,
) -> Post:
    async with enforcer.scope(context, override=override) as scope:
        post = await scope.get(Post, post_id)
    if published_only and post.status != PostStatus.PUBLISHED.value:
        raise ResourceNotFoundError("Post", post_id)
    return post


async def list_posts(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    published_only: bool = True,
    skip: int = 0,
    limit: int = 20,
) -> list[Post]:
    criteria = [Post.status == PostStatus.PUBLISHED.value] if published_only else []
    async with enforcer.scope(context) as scope:
        return await scope.find(Post, *criteria, order_by=Post.created_at.desc(), offset=skip, limit=limit)


async def update_post(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    post_id: int,
    updates: dict,
    override: AuditedOverride | None = None,
) -> Post:
    values = _post_values(updates)
    try:
        async with enforcer.scope(context, override=override) as scope:
            post = await scope.get(Post, post_id)
            if values.get("status") == PostStatus.PUBLISHED.value and post.publish_date is None:
                values["publish_date"] = utcnow()
            post = await scope.update(Post, post_id, values)
    except IntegrityError:
        raise ValidationError(f"A post with slug '{values.get('slug')}' already exists", field="slug") from None
    return post


async def delete_post(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    post_id: int,
    override: AuditedOverride | None = None,
) -> None:
    async with enforcer.scope(context, override=override) as scope:
        post = await scope.get(Post, post_id)
        await scope.delete(post)
    logger.info("Post deleted: tenant_id=%d post_id=%d", context.tenant_id, post_id)


async def get_site_settings(enforcer: IsolationEnforcer, context: TenantContext) -> SiteSettings:
    async with enforcer.scope(context) as scope:
        site_settings = await scope.first(SiteSettings)
    if site_settings is None:
        raise ResourceNotFoundError("SiteSettings")
    return site_settings


async def update_site_settings(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    updates: dict,
    themes,
) -> SiteSettings:
    unknown = set(updates) - SETTINGS_FIELDS
    if unknown:
        raise ValidationError(f"Unknown settings fields: {', '.join(sorted(unknown))}")
    if "theme" in updates and updates["theme"] not in themes:
        raise ValidationError(f"Unknown theme '{updates['theme']}'", field="theme")
    async with enforcer.scope(context) as scope:
        site_settings = await scope.first(SiteSettings)
        if site_settings is None:
            raise ResourceNotFoundError("SiteSettings")
        site_settings = await scope.update(SiteSettings, site_settings.id, updates)
    return site_settings


async def record_media_upload(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    filename: str,
    mime_type: str,
    size_bytes: int,
    storage_path: str,
) -> MediaUpload:
    """Register an uploaded file and charge its size to the tenant's storage usage."""
    if size_bytes < 0:
        raise ValidationError("File size cannot be negative", field="size_bytes")
    async with enforcer.scope(context) as scope:
        media = scope.add(
            MediaUpload(filename=filename, mime_type=mime_type, size_bytes=size_bytes, storage_path=storage_path)
        )
        await scope.adjust_storage(size_bytes)
        await scope.flush()
    return media


async def list_media(
    enforcer: IsolationEnforcer,
    context: TenantContext,
    skip: int = 0,
    limit: int = 50,
) -> list[MediaUpload]:
    async with enforcer.scope(context) as scope:
        return await scope.find(MediaUpload, order_by=MediaUpload.uploaded_at.desc(), offset=skip, limit=limit)


async def delete_media(enforcer: IsolationEnforcer, context: TenantContext, media_id: int) -> None:
    async with enforcer.scope(context) as scope:
        media = await scope.get(MediaUpload, media_id)
        await scope.delete(media)
        await scope.adjust_storage(-media.size_bytes)
