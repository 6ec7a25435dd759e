"""
Tests for the registration session store

Expiry is enforced on every read and write; the sweep only reclaims storage.
"""

import pytest

from multiblog.exceptions import SessionExpiredError, SessionNotFoundError, ValidationError


class TestCreate:
    async def test_create_and_get(self, store, clock):
        session_id = await store.create(email=" Owner@Example.com ", blog_name="Acme Notes", subdomain="Acme")

        record = await store.get(session_id)

        assert record.email == "owner@example.com"
        assert record.subdomain == "acme"
        assert record.theme == "classic"
        assert record.created_at == clock.now
        assert (record.expires_at - record.created_at).total_seconds() == 24 * 3600

    async def test_subdomain_derived_from_blog_name(self, store):
        session_id = await store.create(blog_name="Café Überblog!")

        assert (await store.get(session_id)).subdomain == "cafe-uberblog"

    async def test_unknown_theme_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.create(blog_name="Acme", theme="neon")

    async def test_unknown_field_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.create(blog_name="Acme", plan_tier="business")

    async def test_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.get("does-not-exist")


class TestExpiry:
    async def test_get_after_ttl_is_expired_without_sweep(self, store, clock):
        session_id = await store.create(blog_name="Acme")
        clock.advance(hours=24, seconds=1)

        with pytest.raises(SessionExpiredError):
            await store.get(session_id)

    async def test_get_at_exact_expiry_still_live(self, store, clock):
        session_id = await store.create(blog_name="Acme")
        clock.advance(hours=24)

        assert (await store.get(session_id)).id == session_id

    async def test_update_after_ttl_is_expired(self, store, clock):
        session_id = await store.create(blog_name="Acme")
        clock.advance(hours=25)

        with pytest.raises(SessionExpiredError):
            await store.update(session_id, blog_name="Too late")

    async def test_update_does_not_extend_expiry(self, store, clock):
        session_id = await store.create(blog_name="Acme")
        original = (await store.get(session_id)).expires_at
        clock.advance(hours=12)

        record = await store.update(session_id, subdomain="acme-notes", theme="minimal")

        assert record.subdomain == "acme-notes"
        assert record.theme == "minimal"
        assert record.expires_at == original

    async def test_update_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.update("missing", blog_name="x")


class TestDiscardAndSweep:
    async def test_discard(self, store):
        session_id = await store.create(blog_name="Acme")

        assert await store.discard(session_id) is True
        assert await store.discard(session_id) is False
        with pytest.raises(SessionNotFoundError):
            await store.get(session_id)

    async def test_sweep_removes_only_expired(self, store, clock):
        old = await store.create(blog_name="Old")
        clock.advance(hours=20)
        fresh = await store.create(blog_name="Fresh")
        clock.advance(hours=5)

        purged = await store.sweep_expired()

        assert purged == 1
        with pytest.raises(SessionNotFoundError):
            await store.get(old)
        assert (await store.get(fresh)).blog_name == "Fresh"
