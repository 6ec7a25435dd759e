"""
Isolation Enforcer

The single chokepoint between tenant-scoped code and storage. Every read or
write of posts, site settings and media runs inside ``enforcer.scope(ctx)``:

    async with enforcer.scope(ctx) as scope:
        post = await scope.get(Post, post_id)
        post.title = "New title"

The scope

* accepts only TenantContext values issued by the tenant directory,
* re-reads the tenant's status and refuses tenants that are not active,
* checks every entity it hands out or persists against ``ctx.tenant_id``,
* binds the database session to the tenant so the storage-layer guard in
  ``multiblog.models.ownership`` filters and checks independently.

Rejections raise IsolationViolationError and are reported to the audit sink.
An AuditedOverride is the only way past the ownership check, and every use
of one is audited too.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from multiblog.exceptions import (
    IsolationViolationError,
    ResourceNotFoundError,
    TenantUnavailableError,
    ValidationError,
)
from multiblog.models.ownership import TenantOwnedMixin, bind_session_to_tenant, owner_lookup_options
from multiblog.models.tenant import Tenant, TenantStatus
from multiblog.services.tenant_context import TenantContext
from multiblog.services.tenant_directory import storage_usage_stmt
from multiblog.utils.audit import AuditSink

logger = logging.getLogger(__name__)

Owned = TypeVar("Owned", bound=TenantOwnedMixin)


@dataclass(frozen=True)
class AuditedOverride:
    """Explicit, attributable permission to touch another tenant's entities."""

    actor: str
    reason: str

    def __post_init__(self):
        if not self.actor or not self.reason:
            raise ValueError("An isolation override needs both an actor and a reason")


class TenantScope:
    """Tenant-bound unit of work handed out by IsolationEnforcer.scope()."""

    def __init__(
        self,
        enforcer: IsolationEnforcer,
        context: TenantContext,
        session: AsyncSession,
        override: AuditedOverride | None,
    ):
        self.enforcer = enforcer
        self.context = context
        self.session = session
        self.override = override

    @property
    def tenant_id(self) -> int:
        return self.context.tenant_id

    def check(self, entity: TenantOwnedMixin) -> None:
        """Raise IsolationViolationError unless ``entity`` belongs to this scope's tenant."""
        self._check_owner(type(entity), getattr(entity, "id", None), entity.tenant_id)

    def _check_owner(self, model: type, entity_id: Any, owner_id: int | None) -> None:
        if owner_id == self.tenant_id:
            return
        if self.override is not None:
            self.enforcer.sink.isolation_override(
                self.override.actor, self.override.reason, self.tenant_id, model.__name__, entity_id
            )
            return
        raise self.enforcer.violation(
            "cross_tenant_access",
            self.context,
            entity_type=model.__name__,
            entity_id=entity_id,
            entity_tenant_id=owner_id,
        )

    async def get(self, model: type[Owned], entity_id: Any) -> Owned:
        # Ownership is looked up before loading so foreign rows are reported as violations, not misses
        owner_id = await self.session.scalar(
            select(model.tenant_id).where(model.id == entity_id).execution_options(**owner_lookup_options())
        )
        if owner_id is None:
            raise ResourceNotFoundError(model.__name__, entity_id)
        self._check_owner(model, entity_id, owner_id)
        entity = await self.session.get(model, entity_id)
        if entity is None:
            raise ResourceNotFoundError(model.__name__, entity_id)
        return entity

    async def first(self, model: type[Owned], *criteria) -> Owned | None:
        stmt = select(model).where(model.tenant_id == self.tenant_id, *criteria).limit(1)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find(
        self,
        model: type[Owned],
        *criteria,
        order_by=None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[Owned]:
        stmt = select(model).where(model.tenant_id == self.tenant_id, *criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        stmt = stmt.offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        entities = list(result.scalars().all())
        for entity in entities:
            self.check(entity)
        return entities

    def add(self, entity: Owned) -> Owned:
        """Stage a new entity for this tenant; a foreign ``tenant_id`` is rejected."""
        if entity.tenant_id is None:
            entity.tenant_id = self.tenant_id
        elif entity.tenant_id != self.tenant_id:
            raise self.enforcer.violation(
                "cross_tenant_create",
                self.context,
                entity_type=type(entity).__name__,
                entity_tenant_id=entity.tenant_id,
            )
        self.session.add(entity)
        return entity

    async def update(self, model: type[Owned], entity_id: Any, values: dict[str, Any]) -> Owned:
        if "tenant_id" in values and values["tenant_id"] != self.tenant_id:
            raise self.enforcer.violation(
                "tenant_reassignment",
                self.context,
                entity_type=model.__name__,
                entity_id=entity_id,
                entity_tenant_id=values["tenant_id"],
            )
        entity = await self.get(model, entity_id)
        for field, value in values.items():
            if field in ("id", "tenant_id"):
                continue
            setattr(entity, field, value)
        await self.session.flush()
        return entity

    async def delete(self, entity: TenantOwnedMixin) -> None:
        self.check(entity)
        await self.session.delete(entity)
        await self.session.flush()

    async def adjust_storage(self, delta_bytes: int) -> None:
        """Change the tenant's storage counter in this scope's transaction."""
        result = await self.session.execute(storage_usage_stmt(self.tenant_id, delta_bytes))
        if result.rowcount == 0:
            raise ValidationError("Storage usage cannot become negative", field="storage_used_bytes")

    async def flush(self) -> None:
        await self.session.flush()


class IsolationEnforcer:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], sink: AuditSink | None = None):
        self.session_factory = session_factory
        self.sink = sink or AuditSink()

    def violation(
        self,
        reason: str,
        context: TenantContext | None,
        entity_type: str | None = None,
        entity_id: Any = None,
        entity_tenant_id: int | None = None,
    ) -> IsolationViolationError:
        """Report a rejected attempt and build the error to raise."""
        context_tenant_id = context.tenant_id if context is not None else None
        self.sink.isolation_violation(reason, context_tenant_id, entity_type, entity_id, entity_tenant_id)
        error = IsolationViolationError(
            reason,
            context_tenant_id=context_tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_tenant_id=entity_tenant_id,
        )
        error.audited = True
        return error

    def admit(self, context: TenantContext | None) -> TenantContext:
        if not isinstance(context, TenantContext) or not context.is_trusted:
            raise self.violation("untrusted_context", None)
        return context

    @asynccontextmanager
    async def scope(
        self,
        context: TenantContext | None,
        override: AuditedOverride | None = None,
    ) -> AsyncIterator[TenantScope]:
        """
        Open a transaction bound to ``context``'s tenant.

        Commits when the block exits normally and rolls back on any exception.
        """
        context = self.admit(context)

        async with self.session_factory() as session, session.begin():
            current_status = await session.scalar(select(Tenant.status).where(Tenant.id == context.tenant_id))
            if current_status is None:
                raise self.violation("unknown_tenant", context)
            if current_status != TenantStatus.active.value:
                logger.info(
                    "Rejected operation for tenant_id=%d in state %s", context.tenant_id, current_status
                )
                raise TenantUnavailableError(current_status)

            bind_session_to_tenant(session, context.tenant_id, override=override is not None)
            try:
                yield TenantScope(self, context, session, override)
                await session.flush()
            except IsolationViolationError as exc:
                # Errors raised by the storage-layer guard during flush have not been reported yet
                if not getattr(exc, "audited", False):
                    self.sink.isolation_violation(
                        exc.reason, exc.context_tenant_id, exc.entity_type, exc.entity_id, exc.entity_tenant_id
                    )
                raise
