"""
Resolved tenant values passed explicitly through every tenant-scoped call.

A TenantContext is only trustworthy when it was issued by the tenant
directory; the isolation enforcer refuses any other instance, so a context
built from client input can never reach storage.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from multiblog.models.tenant import Tenant, TenantStatus

_ISSUER_SEAL = object()


@dataclass(frozen=True)
class TenantContext:
    tenant_id: int
    routing_key: str
    status: TenantStatus
    plan_tier: str
    owner_ref: str
    # init=False so dataclasses.replace() never carries the seal over to an altered copy
    _seal: object = field(default=None, init=False, repr=False, compare=False)

    @property
    def is_trusted(self) -> bool:
        return self._seal is _ISSUER_SEAL


def issue_context(tenant: Tenant, routing_key: str) -> TenantContext:
    context = TenantContext(
        tenant_id=tenant.id,
        routing_key=routing_key,
        status=TenantStatus(tenant.status),
        plan_tier=tenant.plan_tier,
        owner_ref=tenant.owner_ref,
    )
    object.__setattr__(context, "_seal", _ISSUER_SEAL)
    return context


class ResolutionKind(str, enum.Enum):
    TENANT = "tenant"
    PLATFORM = "platform"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a Host header."""

    kind: ResolutionKind
    host: str | None = None
    context: TenantContext | None = None

    @property
    def is_tenant(self) -> bool:
        return self.kind == ResolutionKind.TENANT
