"""
Tests for host-based tenant resolution

No default tenant, platform and reserved hosts, custom domains,
nested labels and cache invalidation.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_registration
from multiblog.models.tenant import TenantStatus
from multiblog.services.tenant_context import ResolutionKind
from multiblog.services.tenant_resolver import ResolutionCache, TenantResolver


class TestPlatformHosts:
    @pytest.mark.parametrize("host", ["platform.tld", "PLATFORM.TLD", "platform.tld:8000", "platform.tld."])
    async def test_bare_platform_domain(self, resolver, host):
        resolution = await resolver.resolve_from_host(host)

        assert resolution.kind == ResolutionKind.PLATFORM
        assert resolution.context is None

    @pytest.mark.parametrize("label", ["www", "admin", "api", "signup"])
    async def test_reserved_labels_never_reach_directory(self, directory, label):
        directory.resolve = AsyncMock()
        resolver = TenantResolver(directory, platform_domain="platform.tld", reserved_labels=["www", "admin", "api", "signup"])

        resolution = await resolver.resolve_from_host(f"{label}.platform.tld")

        assert resolution.kind == ResolutionKind.PLATFORM
        directory.resolve.assert_not_awaited()


class TestNotFound:
    @pytest.mark.parametrize(
        "host",
        [None, "", "   ", "127.0.0.1", "127.0.0.1:8000", "[::1]:8000", "bad_host.platform.tld", "acme.platform.tld:http"],
    )
    async def test_missing_malformed_and_ip_hosts(self, resolver, host):
        resolution = await resolver.resolve_from_host(host)

        assert resolution.kind == ResolutionKind.NOT_FOUND
        assert resolution.context is None

    async def test_unknown_subdomain_is_not_found(self, resolver, acme):
        resolution = await resolver.resolve_from_host("unknown.platform.tld")

        assert resolution.kind == ResolutionKind.NOT_FOUND
        assert resolution.context is None

    async def test_foreign_domain_without_mapping(self, resolver, acme):
        resolution = await resolver.resolve_from_host("example.org")

        assert resolution.kind == ResolutionKind.NOT_FOUND


class TestTenantHosts:
    async def test_subdomain_resolves(self, resolver, acme):
        resolution = await resolver.resolve_from_host("Acme.Platform.TLD:443")

        assert resolution.kind == ResolutionKind.TENANT
        assert resolution.context.tenant_id == acme.tenant_id
        assert resolution.context.is_trusted

    async def test_nested_labels_are_ambiguous(self, resolver, acme):
        resolution = await resolver.resolve_from_host("www.acme.platform.tld")

        assert resolution.kind == ResolutionKind.AMBIGUOUS
        assert resolution.context is None

    async def test_custom_domain_resolves(self, resolver, directory):
        tenant = await directory.register(make_registration("acme", custom_domain="blog.acme.com"))

        resolution = await resolver.resolve_from_host("blog.acme.com")

        assert resolution.kind == ResolutionKind.TENANT
        assert resolution.context.tenant_id == tenant.id

    async def test_suspended_tenant_still_resolves(self, resolver, directory, acme):
        await directory.suspend(acme.tenant_id)

        resolution = await resolver.resolve_from_host("acme.platform.tld")

        assert resolution.kind == ResolutionKind.TENANT
        assert resolution.context.status == TenantStatus.suspended


class TestResolutionCache:
    async def test_repeated_lookups_hit_cache(self, directory, acme):
        resolver = TenantResolver(directory, platform_domain="platform.tld", reserved_labels=[], cache_ttl_seconds=60)
        calls = []
        original = directory.resolve

        async def counting_resolve(key, kind=None):
            calls.append(key)
            return await original(key, kind)

        directory.resolve = counting_resolve

        await resolver.resolve_from_host("acme.platform.tld")
        await resolver.resolve_from_host("acme.platform.tld")

        assert calls == ["acme"]

    async def test_lookup_overlapping_registration_is_not_cached(self, resolver, directory):
        original = directory.resolve
        started = asyncio.Event()
        release = asyncio.Event()

        async def held_resolve(key, kind=None):
            context = await original(key, kind)
            started.set()
            await release.wait()
            return context

        directory.resolve = held_resolve
        lookup = asyncio.create_task(resolver.resolve_from_host("acme.platform.tld"))
        await started.wait()
        await directory.register(make_registration("acme"))
        release.set()

        assert (await lookup).kind == ResolutionKind.NOT_FOUND

        directory.resolve = original
        assert (await resolver.resolve_from_host("acme.platform.tld")).kind == ResolutionKind.TENANT

    async def test_status_change_invalidates_cache(self, resolver, directory, acme):
        first = await resolver.resolve_from_host("acme.platform.tld")
        assert first.context.status == TenantStatus.active

        await directory.delete(acme.tenant_id)
        second = await resolver.resolve_from_host("acme.platform.tld")

        assert second.context.status == TenantStatus.deleted

    async def test_rename_invalidates_both_keys(self, resolver, directory, acme):
        assert (await resolver.resolve_from_host("acme-labs.platform.tld")).kind == ResolutionKind.NOT_FOUND

        await directory.update_routing_key(acme.tenant_id, "acme-labs")

        assert (await resolver.resolve_from_host("acme.platform.tld")).kind == ResolutionKind.NOT_FOUND
        assert (await resolver.resolve_from_host("acme-labs.platform.tld")).kind == ResolutionKind.TENANT

    def test_cache_evicts_oldest_entry(self):
        cache = ResolutionCache(ttl_seconds=60, max_entries=2)
        cache.put("a", None)
        cache.put("b", None)
        cache.put("c", None)

        assert len(cache) == 2
        assert "a" not in cache._entries

    def test_zero_ttl_disables_cache(self):
        cache = ResolutionCache(ttl_seconds=0, max_entries=10)
        cache.put("a", None)

        assert len(cache) == 0
