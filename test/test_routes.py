"""
HTTP tests for the signup, blog and administration routes

Requests are addressed by Host header: the platform host serves signup and
administration, tenant hosts serve blogs.
"""

import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import multiblog.models  # noqa: F401
from conftest import PLATFORM_DOMAIN, THEMES, RecordingNotifier
from multiblog.config import Settings
from multiblog.container import Platform
from multiblog.database import Base
from multiblog.main import create_app

ADMIN_TOKEN = "test-admin-token"
PLATFORM_URL = f"http://{PLATFORM_DOMAIN}"
ACME_URL = f"http://acme.{PLATFORM_DOMAIN}"
GLOBEX_URL = f"http://globex.{PLATFORM_DOMAIN}"
ADMIN_HEADERS = {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture
def client(tmp_path):
    db_path = tmp_path / "routes.db"
    schema_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(schema_engine)
    schema_engine.dispose()

    app_settings = Settings(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        platform_domain=PLATFORM_DOMAIN,
        admin_api_token=ADMIN_TOKEN,
        available_themes=THEMES,
    )
    platform = Platform.build(app_settings, notifier=RecordingNotifier())
    app = create_app(app_settings, platform, run_scheduler=False, configure_logging=False)
    with TestClient(app, base_url=PLATFORM_URL) as test_client:
        yield test_client


def _start_session(client, subdomain, **overrides):
    payload = {
        "email": f"owner@{subdomain}.example.com",
        "blog_name": f"{subdomain.title()} Notes",
        "subdomain": subdomain,
    }
    payload.update(overrides)
    response = client.post("/signup/sessions", json=payload)
    assert response.status_code == 201
    return response.json()["id"]


def _signup(client, subdomain, owner_ref):
    session_id = _start_session(client, subdomain)
    response = client.post(f"/signup/sessions/{session_id}/commit", headers={"X-Owner-Ref": owner_ref})
    assert response.status_code == 201
    return response.json()


def _owner(owner_ref):
    return {"X-Owner-Ref": owner_ref}


def _access_records(caplog):
    return [record for record in caplog.records if record.name == "multiblog.access"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "1.0.0"}


class TestAccessLog:
    def test_blog_request_records_tenant(self, client, caplog):
        tenant_id = _signup(client, "acme", "user-1")["tenant_id"]

        with caplog.at_level(logging.INFO, logger="multiblog.access"):
            response = client.get(f"{ACME_URL}/settings", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        record = _access_records(caplog)[-1]
        assert record.host_kind == "tenant"
        assert record.tenant_id == tenant_id
        assert record.status_code == 200

    def test_unknown_host_is_logged_as_not_found(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="multiblog.access"):
            client.get("http://nobody.platform.tld/posts")

        record = _access_records(caplog)[-1]
        assert record.host_kind == "not_found"
        assert record.tenant_id is None
        assert record.levelno == logging.WARNING

    def test_health_is_not_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="multiblog.access"):
            client.get("/health")

        assert not _access_records(caplog)


class TestSignupRoutes:
    def test_full_signup_flow(self, client):
        session_id = _start_session(client, "acme")

        preview = client.get(f"/signup/sessions/{session_id}/preview").json()
        assert preview["subdomain_available"] is True
        assert preview["url"] == "https://acme.platform.tld"

        updated = client.patch(f"/signup/sessions/{session_id}", json={"theme": "minimal"})
        assert updated.json()["theme"] == "minimal"

        missing_owner = client.post(f"/signup/sessions/{session_id}/commit")
        assert missing_owner.status_code == 401
        assert missing_owner.json()["reason"] == "owner_missing"

        committed = client.post(f"/signup/sessions/{session_id}/commit", headers=_owner("user-1"))
        assert committed.status_code == 201
        body = committed.json()
        assert body["state"] == "committed"
        assert body["url"] == "https://acme.platform.tld"

        site = client.get(f"{ACME_URL}/settings")
        assert site.status_code == 200
        assert site.json()["title"] == "Acme Notes"
        assert site.json()["theme"] == "minimal"

        hijack = client.post(f"/signup/sessions/{session_id}/commit", headers=_owner("user-2"))
        assert hijack.status_code == 403
        assert hijack.json()["reason"] == "owner_mismatch"

    def test_taken_subdomain_is_conflict_with_suggestions(self, client):
        _signup(client, "acme", "user-1")
        session_id = _start_session(client, "acme", email="second@example.com")

        response = client.post(f"/signup/sessions/{session_id}/commit", headers=_owner("user-2"))

        assert response.status_code == 409
        assert response.json()["reason"] == "subdomain_taken"
        assert "acme-2" in response.json()["suggestions"]

    def test_invalid_subdomain_is_unprocessable(self, client):
        session_id = _start_session(client, "www")

        response = client.post(f"/signup/sessions/{session_id}/commit", headers=_owner("user-1"))

        assert response.status_code == 422
        assert response.json()["reason"] == "subdomain_reserved"

    def test_discard_session(self, client):
        session_id = _start_session(client, "acme")

        assert client.delete(f"/signup/sessions/{session_id}").status_code == 204
        assert client.get(f"/signup/sessions/{session_id}").status_code == 404
        assert client.delete(f"/signup/sessions/{session_id}").status_code == 404

    def test_unknown_theme_is_bad_request(self, client):
        response = client.post("/signup/sessions", json={"blog_name": "Acme", "theme": "neon"})

        assert response.status_code == 400
        assert response.json()["error"]["error_code"] == "VALIDATION_FAILED"

    def test_signup_not_served_on_tenant_host(self, client):
        _signup(client, "acme", "user-1")

        response = client.post(f"{ACME_URL}/signup/sessions", json={"blog_name": "Sneaky"})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Not found"


class TestBlogRoutes:
    def test_owner_writes_and_public_reads(self, client):
        _signup(client, "acme", "user-1")
        post = {"title": "Hello World", "body": "First", "status": "published"}

        assert client.post(f"{ACME_URL}/posts", json=post).status_code == 403
        created = client.post(f"{ACME_URL}/posts", json=post, headers=_owner("user-1"))
        assert created.status_code == 201
        assert created.json()["slug"] == "hello-world"
        client.post(f"{ACME_URL}/posts", json={"title": "Draft"}, headers=_owner("user-1"))

        public = client.get(f"{ACME_URL}/posts").json()
        assert [p["title"] for p in public] == ["Hello World"]
        assert client.get(f"{ACME_URL}/posts", params={"include_drafts": True}).status_code == 403
        drafts = client.get(f"{ACME_URL}/posts", params={"include_drafts": True}, headers=_owner("user-1"))
        assert len(drafts.json()) == 2

    def test_draft_hidden_from_public(self, client):
        _signup(client, "acme", "user-1")
        draft = client.post(f"{ACME_URL}/posts", json={"title": "Secret"}, headers=_owner("user-1")).json()

        assert client.get(f"{ACME_URL}/posts/{draft['id']}").status_code == 404
        assert client.get(f"{ACME_URL}/posts/{draft['id']}", headers=_owner("user-1")).status_code == 200

    def test_other_owner_cannot_write(self, client):
        _signup(client, "acme", "user-1")
        _signup(client, "globex", "user-2")

        response = client.post(f"{ACME_URL}/posts", json={"title": "Defaced"}, headers=_owner("user-2"))

        assert response.status_code == 403

    @pytest.mark.parametrize("host_url", ["http://nobody.platform.tld", "http://127.0.0.1", "http://example.org"])
    def test_unknown_host_is_not_found(self, client, host_url):
        response = client.get(f"{host_url}/posts")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Not found"

    def test_cross_tenant_read_looks_like_missing_blog(self, client):
        _signup(client, "acme", "user-1")
        _signup(client, "globex", "user-2")
        post = client.post(
            f"{ACME_URL}/posts", json={"title": "Acme only", "status": "published"}, headers=_owner("user-1")
        ).json()

        cross_tenant = client.get(f"{GLOBEX_URL}/posts/{post['id']}", headers=_owner("user-2"))
        unknown_host = client.get(f"http://nobody.platform.tld/posts/{post['id']}")

        assert cross_tenant.status_code == unknown_host.status_code == 404
        assert cross_tenant.json() == unknown_host.json()

    def test_update_and_delete_post(self, client):
        _signup(client, "acme", "user-1")
        post = client.post(f"{ACME_URL}/posts", json={"title": "Typo"}, headers=_owner("user-1")).json()

        updated = client.patch(
            f"{ACME_URL}/posts/{post['id']}", json={"title": "Fixed", "status": "published"}, headers=_owner("user-1")
        )
        assert updated.json()["title"] == "Fixed"
        assert updated.json()["publish_date"] is not None

        assert client.delete(f"{ACME_URL}/posts/{post['id']}", headers=_owner("user-1")).status_code == 204
        assert client.get(f"{ACME_URL}/posts/{post['id']}", headers=_owner("user-1")).status_code == 404

    def test_invalid_post_payload(self, client):
        _signup(client, "acme", "user-1")

        response = client.post(f"{ACME_URL}/posts", json={"title": ""}, headers=_owner("user-1"))

        assert response.status_code == 422

    def test_media_upload_counts_towards_storage(self, client):
        tenant = _signup(client, "acme", "user-1")
        media = {"filename": "cat.png", "mime_type": "image/png", "size_bytes": 1000, "storage_path": "acme/cat.png"}

        assert client.post(f"{ACME_URL}/media", json=media, headers=_owner("user-1")).status_code == 201

        admin_view = client.get(f"/admin/tenants/{tenant['tenant_id']}", headers=ADMIN_HEADERS).json()
        assert admin_view["storage_used_bytes"] == 1000

    def test_suspended_blog_is_unavailable(self, client):
        tenant = _signup(client, "acme", "user-1")

        client.post(f"/admin/tenants/{tenant['tenant_id']}/suspend", headers=ADMIN_HEADERS)
        response = client.get(f"{ACME_URL}/posts")

        assert response.status_code == 403
        assert response.json()["error"]["error_code"] == "TENANT_UNAVAILABLE"


class TestAdminRoutes:
    @pytest.mark.parametrize("headers", [{}, {"X-Admin-Token": "wrong"}])
    def test_token_required(self, client, headers):
        assert client.get("/admin/tenants", headers=headers).status_code == 403

    def test_not_served_on_tenant_host(self, client):
        _signup(client, "acme", "user-1")

        assert client.get(f"{ACME_URL}/admin/tenants", headers=ADMIN_HEADERS).status_code == 404

    def test_list_and_filter_tenants(self, client):
        acme = _signup(client, "acme", "user-1")
        _signup(client, "globex", "user-2")
        client.post(f"/admin/tenants/{acme['tenant_id']}/suspend", headers=ADMIN_HEADERS)

        everyone = client.get("/admin/tenants", headers=ADMIN_HEADERS).json()
        suspended = client.get("/admin/tenants", params={"status": "suspended"}, headers=ADMIN_HEADERS).json()

        assert len(everyone) == 2
        assert [t["subdomain"] for t in suspended] == ["acme"]

    def test_reactivate(self, client):
        tenant = _signup(client, "acme", "user-1")
        client.post(f"/admin/tenants/{tenant['tenant_id']}/suspend", headers=ADMIN_HEADERS)

        response = client.post(f"/admin/tenants/{tenant['tenant_id']}/reactivate", headers=ADMIN_HEADERS)

        assert response.json()["status"] == "active"
        assert client.get(f"{ACME_URL}/posts").status_code == 200

    def test_change_subdomain_moves_blog(self, client):
        tenant = _signup(client, "acme", "user-1")

        response = client.put(
            f"/admin/tenants/{tenant['tenant_id']}/subdomain", json={"subdomain": "acme-labs"}, headers=ADMIN_HEADERS
        )

        assert response.json()["subdomain"] == "acme-labs"
        assert client.get(f"{ACME_URL}/posts").status_code == 404
        assert client.get(f"http://acme-labs.{PLATFORM_DOMAIN}/posts").status_code == 200

    def test_custom_domain_serves_blog(self, client):
        tenant = _signup(client, "acme", "user-1")

        client.put(
            f"/admin/tenants/{tenant['tenant_id']}/custom-domain",
            json={"domain": "blog.acme.com"},
            headers=ADMIN_HEADERS,
        )
        assert client.get("http://blog.acme.com/settings").json()["title"] == "Acme Notes"

        client.delete(f"/admin/tenants/{tenant['tenant_id']}/custom-domain", headers=ADMIN_HEADERS)
        assert client.get("http://blog.acme.com/settings").status_code == 404

    def test_subdomain_conflict(self, client):
        _signup(client, "acme", "user-1")
        globex = _signup(client, "globex", "user-2")

        response = client.put(
            f"/admin/tenants/{globex['tenant_id']}/subdomain", json={"subdomain": "acme"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 409
        assert response.json()["error"]["error_code"] == "ROUTING_KEY_CONFLICT"

    def test_update_profile(self, client):
        tenant = _signup(client, "acme", "user-1")

        response = client.patch(
            f"/admin/tenants/{tenant['tenant_id']}", json={"plan_tier": "pro"}, headers=ADMIN_HEADERS
        )

        assert response.json()["plan_tier"] == "pro"

    def test_unknown_tenant(self, client):
        assert client.get("/admin/tenants/999", headers=ADMIN_HEADERS).status_code == 404

    def test_sweep(self, client):
        response = client.post("/admin/registration-sessions/sweep", headers=ADMIN_HEADERS)

        assert response.json() == {"purged": 0}
