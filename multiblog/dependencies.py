"""
FastAPI dependencies.

The tenant context is resolved from the Host header for each request and
handed to route functions as an argument. It is never stored on
``request.state``.
"""

import hmac
import logging

from fastapi import Depends, Header, Request

from multiblog.container import Platform
from multiblog.exceptions import AuthorizationError, TenantNotFoundError
from multiblog.services.tenant_context import ResolutionKind, TenantContext

logger = logging.getLogger(__name__)


def get_platform(request: Request) -> Platform:
    return request.app.state.platform


async def get_tenant_context(request: Request, platform: Platform = Depends(get_platform)) -> TenantContext:
    """Resolve the blog this request is addressed to, or answer with the generic 404."""
    resolution = await platform.resolver.resolve_from_host(request.headers.get("host"))
    if not resolution.is_tenant:
        logger.debug("No tenant for host %r (%s)", resolution.host, resolution.kind.value)
        raise TenantNotFoundError()
    return resolution.context


async def require_platform_host(request: Request, platform: Platform = Depends(get_platform)) -> None:
    """Signup and administration are only served on the platform's own hosts."""
    resolution = await platform.resolver.resolve_from_host(request.headers.get("host"))
    if resolution.kind != ResolutionKind.PLATFORM:
        raise TenantNotFoundError()


def _same_secret(supplied: str | None, expected: str | None) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def get_owner_ref(x_owner_ref: str | None = Header(None)) -> str | None:
    """Owner reference asserted by the identity collaborator in front of this service."""
    return x_owner_ref or None


def is_owner(context: TenantContext, owner_ref: str | None) -> bool:
    return _same_secret(owner_ref, context.owner_ref)


async def require_owner(
    context: TenantContext = Depends(get_tenant_context),
    owner_ref: str | None = Depends(get_owner_ref),
) -> TenantContext:
    if not is_owner(context, owner_ref):
        raise AuthorizationError("Only the blog owner can do this")
    return context


async def require_admin(
    x_admin_token: str | None = Header(None),
    platform: Platform = Depends(get_platform),
) -> None:
    if not _same_secret(x_admin_token, platform.settings.admin_api_token):
        raise AuthorizationError("Administrator token required")
