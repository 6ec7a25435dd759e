"""
Tenant Directory

Authoritative mapping from routing keys (subdomains and custom domains) to
tenants and their lifecycle state. It is the single writer of routing-key
ownership: uniqueness is the primary key of ``routing_keys``, and every
write that claims a key is one transaction that lets the database reject
the loser of a race.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from multiblog.config import settings
from multiblog.exceptions import (
    InvalidStatusTransitionError,
    RoutingKeyConflictError,
    TenantNotFoundError,
    ValidationError,
)
from multiblog.models.content import SiteSettings
from multiblog.models.ownership import bind_session_to_tenant
from multiblog.models.tenant import PlanTier, RoutingKey, RoutingKeyKind, Tenant, TenantStatus
from multiblog.services.tenant_context import TenantContext, issue_context
from multiblog.utils.clock import Clock, utcnow
from multiblog.utils.hostnames import custom_domain_error, subdomain_error, suffixed_candidates

logger = logging.getLogger(__name__)

InvalidationListener = Callable[[Iterable[str]], None]

_STATUS_TRANSITIONS: dict[TenantStatus, set[TenantStatus]] = {
    TenantStatus.provisional: {TenantStatus.active, TenantStatus.deleted},
    TenantStatus.active: {TenantStatus.suspended, TenantStatus.deleted},
    TenantStatus.suspended: {TenantStatus.active, TenantStatus.deleted},
    TenantStatus.deleted: set(),
}


@dataclass
class TenantRegistration:
    """Everything needed to create a tenant and its skeleton blog."""

    owner_ref: str
    owner_email: str
    display_name: str
    subdomain: str
    theme: str
    custom_domain: str | None = None
    plan_tier: str = PlanTier.free.value
    source_session_id: str | None = None
    status: TenantStatus = TenantStatus.active

    def routing_keys(self) -> list[tuple[str, RoutingKeyKind]]:
        keys = [(self.subdomain, RoutingKeyKind.subdomain)]
        if self.custom_domain:
            keys.append((self.custom_domain, RoutingKeyKind.custom_domain))
        return keys


def storage_usage_stmt(tenant_id: int, delta_bytes: int):
    """Atomic counter update that never lets usage drop below zero."""
    return (
        update(Tenant)
        .where(Tenant.id == tenant_id, Tenant.storage_used_bytes + delta_bytes >= 0)
        .values(storage_used_bytes=Tenant.storage_used_bytes + delta_bytes)
    )


class TenantDirectory:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        platform_domain: str | None = None,
        reserved_labels: Iterable[str] | None = None,
        grace_period: timedelta | None = None,
        suggestion_count: int | None = None,
        clock: Clock = utcnow,
    ):
        self.session_factory = session_factory
        self.platform_domain = (platform_domain or settings.platform_domain).lower()
        self.reserved_labels = frozenset(
            label.lower() for label in (reserved_labels if reserved_labels is not None else settings.reserved_labels)
        )
        self.grace_period = (
            grace_period if grace_period is not None else timedelta(days=settings.routing_key_grace_period_days)
        )
        self.suggestion_count = suggestion_count or settings.subdomain_suggestion_count
        self.clock = clock
        self._listeners: list[InvalidationListener] = []

    # ── Invalidation ─────────────────────────────────────────────────────────

    def subscribe(self, listener: InvalidationListener) -> None:
        """Register a callback invoked with the routing keys touched by each committed change."""
        self._listeners.append(listener)

    def _notify(self, keys: Iterable[str | None]) -> None:
        touched = [key for key in keys if key]
        for listener in self._listeners:
            listener(touched)

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def resolve(self, routing_key: str, kind: RoutingKeyKind | None = None) -> TenantContext | None:
        """
        Point lookup of a routing key.

        Suspended and deleted tenants are returned with their state so callers
        can tell "never existed" from "existed but unavailable". A key the
        tenant has moved away from resolves to nothing.
        """
        stmt = (
            select(RoutingKey.released_at, Tenant)
            .join(Tenant, RoutingKey.tenant_id == Tenant.id)
            .where(RoutingKey.key == routing_key)
        )
        if kind is not None:
            stmt = stmt.where(RoutingKey.kind == kind.value)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            row = result.first()
        if row is None:
            return None
        released_at, tenant = row
        if released_at is not None and tenant.status != TenantStatus.deleted.value:
            return None
        return issue_context(tenant, tenant.subdomain)

    async def get(self, tenant_id: int) -> Tenant:
        async with self.session_factory() as session:
            tenant = await session.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(details={"tenant_id": tenant_id})
        return tenant

    async def get_by_session(self, session_id: str) -> Tenant | None:
        """Return the tenant created from a registration session, if any."""
        async with self.session_factory() as session:
            result = await session.execute(select(Tenant).where(Tenant.source_session_id == session_id))
            return result.scalars().first()

    async def find_active_by_email(self, email: str) -> Tenant | None:
        """Return a non-deleted tenant owned by ``email``."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Tenant).where(
                    Tenant.owner_email == email.lower(),
                    Tenant.status != TenantStatus.deleted.value,
                )
            )
            return result.scalars().first()

    async def list_tenants(self, skip: int = 0, limit: int = 20, status: TenantStatus | None = None) -> list[Tenant]:
        stmt = select(Tenant).order_by(Tenant.id).offset(skip).limit(limit)
        if status is not None:
            stmt = stmt.where(Tenant.status == status.value)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ── Availability ─────────────────────────────────────────────────────────

    def _reclaimable(self, now, tenant_id: int | None = None):
        """Criteria for a released key row that may be deleted to free the key."""
        cutoff = now - self.grace_period
        released = RoutingKey.released_at.is_not(None)
        if tenant_id is None:
            return released & (RoutingKey.released_at <= cutoff)
        return released & or_(RoutingKey.released_at <= cutoff, RoutingKey.tenant_id == tenant_id)

    async def available_keys(self, keys: Iterable[str]) -> set[str]:
        """
        Subset of ``keys`` that nobody currently holds.

        Advisory only: the answer can be stale by the time a caller acts on it;
        ``register`` is what decides.
        """
        wanted = set(keys)
        if not wanted:
            return set()
        cutoff = self.clock() - self.grace_period
        async with self.session_factory() as session:
            result = await session.execute(
                select(RoutingKey.key).where(
                    RoutingKey.key.in_(wanted),
                    or_(RoutingKey.released_at.is_(None), RoutingKey.released_at > cutoff),
                )
            )
            held = set(result.scalars().all())
        return wanted - held

    async def is_available(self, key: str) -> bool:
        return key in await self.available_keys([key])

    async def suggest_alternatives(self, subdomain: str, count: int | None = None) -> list[str]:
        """Deterministic, currently available alternatives: acme-2, acme-3, ..."""
        count = count or self.suggestion_count
        suggestions: list[str] = []
        start = 2
        # A bounded number of batches keeps a pathological namespace from looping forever
        for _ in range(5):
            candidates = [
                candidate
                for candidate in suffixed_candidates(subdomain, count * 2, start=start)
                if subdomain_error(candidate, self.reserved_labels) is None
            ]
            available = await self.available_keys(candidates)
            suggestions.extend(candidate for candidate in candidates if candidate in available)
            if len(suggestions) >= count:
                break
            start += count * 2
        return suggestions[:count]

    def validate_key(self, key: str, kind: RoutingKeyKind) -> None:
        if kind == RoutingKeyKind.subdomain:
            reason = subdomain_error(key, self.reserved_labels)
            field = "subdomain"
        else:
            reason = custom_domain_error(key, self.platform_domain)
            field = "custom_domain"
        if reason is not None:
            raise ValidationError(f"'{key}' cannot be used as a blog address", field=field, details={"reason": reason})

    # ── Registration ─────────────────────────────────────────────────────────

    async def register(self, registration: TenantRegistration) -> Tenant:
        """
        Create a tenant, its routing keys and default site settings atomically.

        Raises RoutingKeyConflictError when any key is held by another tenant.
        When a tenant already exists for ``registration.source_session_id`` it
        is returned instead of creating a duplicate.
        """
        registration.subdomain = registration.subdomain.lower()
        registration.owner_email = registration.owner_email.lower()
        if registration.custom_domain:
            registration.custom_domain = registration.custom_domain.lower().rstrip(".")
        keys = registration.routing_keys()
        for key, kind in keys:
            self.validate_key(key, kind)

        now = self.clock()
        try:
            async with self.session_factory() as session, session.begin():
                # Writes first: stale releases are cleared by conditional delete, never by a prior read
                for key, _ in keys:
                    await session.execute(
                        delete(RoutingKey)
                        .where(RoutingKey.key == key, self._reclaimable(now))
                        .execution_options(synchronize_session=False)
                    )

                tenant = Tenant(
                    owner_ref=registration.owner_ref,
                    owner_email=registration.owner_email,
                    display_name=registration.display_name,
                    subdomain=registration.subdomain,
                    custom_domain=registration.custom_domain,
                    status=registration.status.value,
                    plan_tier=registration.plan_tier,
                    storage_used_bytes=0,
                    source_session_id=registration.source_session_id,
                    created_at=now,
                    updated_at=now,
                )
                session.add(tenant)
                await session.flush()

                for key, kind in keys:
                    session.add(RoutingKey(key=key, tenant_id=tenant.id, kind=kind.value, created_at=now))
                bind_session_to_tenant(session, tenant.id)
                session.add(SiteSettings(tenant_id=tenant.id, title=registration.display_name, theme=registration.theme))
                await session.flush()
        except IntegrityError:
            return await self._registration_conflict(registration)

        logger.info("Tenant registered: id=%d subdomain=%s", tenant.id, tenant.subdomain)
        self._notify(key for key, _ in keys)
        return tenant

    async def _registration_conflict(self, registration: TenantRegistration) -> Tenant:
        if registration.source_session_id:
            existing = await self.get_by_session(registration.source_session_id)
            if existing is not None:
                logger.info("Registration for session %s already committed", registration.source_session_id)
                return existing

        keys = registration.routing_keys()
        available = await self.available_keys(key for key, _ in keys)
        key, kind = next(((key, kind) for key, kind in keys if key not in available), keys[0])
        suggestions = await self.suggest_alternatives(key) if kind == RoutingKeyKind.subdomain else []
        logger.info("Routing key conflict on register: %s", key)
        raise RoutingKeyConflictError(key, suggestions)

    # ── Routing key changes ──────────────────────────────────────────────────

    async def update_routing_key(
        self,
        tenant_id: int,
        new_key: str,
        kind: RoutingKeyKind = RoutingKeyKind.subdomain,
    ) -> TenantContext:
        """
        Move a tenant to a new subdomain or custom domain.

        The old key is released (reclaimable by others after the grace
        period) in the same transaction that claims the new one.
        """
        new_key = new_key.lower().rstrip(".")
        self.validate_key(new_key, kind)
        attribute = "subdomain" if kind == RoutingKeyKind.subdomain else "custom_domain"

        now = self.clock()
        try:
            async with self.session_factory() as session, session.begin():
                await session.execute(
                    delete(RoutingKey)
                    .where(RoutingKey.key == new_key, self._reclaimable(now, tenant_id))
                    .execution_options(synchronize_session=False)
                )
                tenant = await session.get(Tenant, tenant_id)
                if tenant is None or tenant.status == TenantStatus.deleted.value:
                    raise TenantNotFoundError(details={"tenant_id": tenant_id})
                old_key = getattr(tenant, attribute)
                if old_key != new_key:
                    if old_key:
                        await session.execute(
                            update(RoutingKey)
                            .where(RoutingKey.key == old_key, RoutingKey.tenant_id == tenant_id)
                            .values(released_at=now)
                            .execution_options(synchronize_session=False)
                        )
                    session.add(RoutingKey(key=new_key, tenant_id=tenant_id, kind=kind.value, created_at=now))
                    setattr(tenant, attribute, new_key)
                    await session.flush()
        except IntegrityError:
            suggestions = await self.suggest_alternatives(new_key) if kind == RoutingKeyKind.subdomain else []
            raise RoutingKeyConflictError(new_key, suggestions) from None

        logger.info("Tenant %d %s changed: %s -> %s", tenant_id, attribute, old_key, new_key)
        self._notify([old_key, new_key])
        return issue_context(tenant, tenant.subdomain)

    async def remove_custom_domain(self, tenant_id: int) -> Tenant:
        now = self.clock()
        async with self.session_factory() as session, session.begin():
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None or tenant.status == TenantStatus.deleted.value:
                raise TenantNotFoundError(details={"tenant_id": tenant_id})
            old_domain = tenant.custom_domain
            if old_domain:
                await session.execute(
                    update(RoutingKey)
                    .where(RoutingKey.key == old_domain, RoutingKey.tenant_id == tenant_id)
                    .values(released_at=now)
                    .execution_options(synchronize_session=False)
                )
                tenant.custom_domain = None
        self._notify([old_domain])
        return tenant

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def _transition(self, tenant_id: int, target: TenantStatus) -> Tenant:
        now = self.clock()
        async with self.session_factory() as session, session.begin():
            tenant = await session.get(Tenant, tenant_id, with_for_update=True)
            if tenant is None:
                raise TenantNotFoundError(details={"tenant_id": tenant_id})
            current = TenantStatus(tenant.status)
            if target not in _STATUS_TRANSITIONS[current]:
                raise InvalidStatusTransitionError(current.value, target.value)
            tenant.status = target.value
            if target == TenantStatus.deleted:
                tenant.deleted_at = now
                await session.execute(
                    update(RoutingKey)
                    .where(RoutingKey.tenant_id == tenant_id, RoutingKey.released_at.is_(None))
                    .values(released_at=now)
                    .execution_options(synchronize_session=False)
                )
            keys = [tenant.subdomain, tenant.custom_domain]

        logger.info("Tenant %d status: %s -> %s", tenant_id, current.value, target.value)
        self._notify(keys)
        return tenant

    async def activate(self, tenant_id: int) -> Tenant:
        return await self._transition(tenant_id, TenantStatus.active)

    async def suspend(self, tenant_id: int) -> Tenant:
        return await self._transition(tenant_id, TenantStatus.suspended)

    async def delete(self, tenant_id: int) -> Tenant:
        """
        Soft-delete a tenant: its keys are released but keep resolving to the
        deleted tenant until another tenant reclaims them after the grace period.
        Content purge is a separate job.
        """
        return await self._transition(tenant_id, TenantStatus.deleted)

    # ── Profile and accounting ───────────────────────────────────────────────

    async def update_profile(
        self,
        tenant_id: int,
        display_name: str | None = None,
        plan_tier: str | None = None,
    ) -> Tenant:
        if plan_tier is not None:
            try:
                plan_tier = PlanTier(plan_tier).value
            except ValueError:
                raise ValidationError(f"Unknown plan tier '{plan_tier}'", field="plan_tier") from None
        if display_name is not None and not display_name.strip():
            raise ValidationError("Display name cannot be empty", field="display_name")

        async with self.session_factory() as session, session.begin():
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None or tenant.status == TenantStatus.deleted.value:
                raise TenantNotFoundError(details={"tenant_id": tenant_id})
            if display_name is not None:
                tenant.display_name = display_name.strip()
            if plan_tier is not None:
                tenant.plan_tier = plan_tier

        if plan_tier is not None:
            self._notify([tenant.subdomain, tenant.custom_domain])
        return tenant

    async def adjust_storage_usage(self, tenant_id: int, delta_bytes: int) -> None:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(storage_usage_stmt(tenant_id, delta_bytes))
            if result.rowcount == 0:
                if await session.get(Tenant, tenant_id) is None:
                    raise TenantNotFoundError(details={"tenant_id": tenant_id})
                raise ValidationError("Storage usage cannot become negative", field="storage_used_bytes")
