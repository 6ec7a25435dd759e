"""
Tenant Resolver

Turns an inbound Host header into a Resolution:

  1. custom domain exact match          → TENANT
  2. bare platform domain               → PLATFORM
  3. <reserved>.<platform_domain>       → PLATFORM (never reaches the directory)
  4. <label>.<platform_domain>          → TENANT or NOT_FOUND
  5. <a>.<b>.<platform_domain>          → AMBIGUOUS
  6. missing / malformed / IP / other   → NOT_FOUND

There is no default tenant: anything that does not resolve exactly is
NOT_FOUND or AMBIGUOUS, and callers must refuse to serve tenant data for it.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Iterable

from multiblog.config import settings
from multiblog.models.tenant import RoutingKeyKind
from multiblog.services.tenant_context import Resolution, ResolutionKind, TenantContext
from multiblog.services.tenant_directory import TenantDirectory
from multiblog.utils.hostnames import normalize_host

logger = logging.getLogger(__name__)

_MISS = object()


class ResolutionCache:
    """
    Small in-process TTL cache of routing key → TenantContext | None.

    Entries live for at most ``ttl_seconds`` and are dropped immediately when
    the directory reports a change to their key. A TTL of 0 disables caching.

    Every invalidation advances ``epoch``. A lookup that started before an
    invalidation passes the epoch it saw to ``put``, which then drops the
    possibly outdated result instead of caching it.
    """

    def __init__(self, ttl_seconds: float, max_entries: int):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, TenantContext | None]] = OrderedDict()
        self.epoch = 0

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0 and self.max_entries > 0

    def get(self, key: str):
        entry = self._entries.get(key)
        if entry is None:
            return _MISS
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return _MISS
        return value

    def put(self, key: str, value: TenantContext | None, epoch: int | None = None) -> None:
        if not self.enabled:
            return
        if epoch is not None and epoch != self.epoch:
            return
        self._entries[key] = (time.monotonic() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, keys: Iterable[str]) -> None:
        self.epoch += 1
        for key in keys:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class TenantResolver:
    def __init__(
        self,
        directory: TenantDirectory,
        *,
        platform_domain: str | None = None,
        reserved_labels: Iterable[str] | None = None,
        cache_ttl_seconds: float | None = None,
        cache_max_entries: int | None = None,
    ):
        self.directory = directory
        self.platform_domain = (platform_domain or settings.platform_domain).lower().rstrip(".")
        self.reserved_labels = frozenset(
            label.lower() for label in (reserved_labels if reserved_labels is not None else settings.reserved_labels)
        )
        self.cache = ResolutionCache(
            ttl_seconds=settings.resolver_cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds,
            max_entries=settings.resolver_cache_max_entries if cache_max_entries is None else cache_max_entries,
        )
        directory.subscribe(self.cache.invalidate)

    async def _lookup(self, key: str, kind: RoutingKeyKind) -> TenantContext | None:
        # Subdomain keys never contain a dot and custom domains always do, so one cache namespace suffices
        cached = self.cache.get(key)
        if cached is not _MISS:
            return cached
        epoch = self.cache.epoch
        context = await self.directory.resolve(key, kind)
        self.cache.put(key, context, epoch)
        return context

    def platform_label(self, host: str) -> str | None:
        """
        Return the part of ``host`` in front of the platform domain.

        Examples:
            "acme.platform.tld"   → "acme"
            "a.b.platform.tld"    → "a.b"
            "platform.tld"        → ""
            "blog.example.com"    → None
        """
        if host == self.platform_domain:
            return ""
        suffix = "." + self.platform_domain
        if host.endswith(suffix):
            return host[: -len(suffix)]
        return None

    async def resolve_from_host(self, host_header: str | None) -> Resolution:
        host = normalize_host(host_header)
        if host is None:
            logger.debug("Unresolvable host header: %r", host_header)
            return Resolution(kind=ResolutionKind.NOT_FOUND)

        label = self.platform_label(host)

        if label is None or "." in label:
            # Exact custom-domain match takes precedence over subdomain routing
            context = await self._lookup(host, RoutingKeyKind.custom_domain) if "." in host else None
            if context is not None:
                return Resolution(kind=ResolutionKind.TENANT, host=host, context=context)
            if label is None:
                return Resolution(kind=ResolutionKind.NOT_FOUND, host=host)
            return Resolution(kind=ResolutionKind.AMBIGUOUS, host=host)

        if label == "" or label in self.reserved_labels:
            return Resolution(kind=ResolutionKind.PLATFORM, host=host)

        context = await self._lookup(label, RoutingKeyKind.subdomain)
        if context is None:
            return Resolution(kind=ResolutionKind.NOT_FOUND, host=host)
        logger.debug("Resolved host %s to tenant_id=%d", host, context.tenant_id)
        return Resolution(kind=ResolutionKind.TENANT, host=host, context=context)
