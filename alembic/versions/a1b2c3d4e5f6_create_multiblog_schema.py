"""create_multiblog_schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the tenant directory, routing keys, registration sessions and the
tenant-owned content tables.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    # 1. Tenants
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_ref", sa.String(255), nullable=False),
        sa.Column("owner_email", sa.String(320), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("subdomain", sa.String(63), nullable=False),
        sa.Column("custom_domain", sa.String(253), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("plan_tier", sa.String(20), nullable=False, server_default="free"),
        sa.Column("storage_used_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("source_session_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("source_session_id"),
    )
    op.create_index(op.f("ix_tenants_id"), "tenants", ["id"], unique=False)
    op.create_index(op.f("ix_tenants_owner_ref"), "tenants", ["owner_ref"], unique=False)
    op.create_index(op.f("ix_tenants_owner_email"), "tenants", ["owner_email"], unique=False)
    op.create_index("idx_tenant_status", "tenants", ["status"], unique=False)

    # 2. Routing keys; the primary key is what makes a key globally unique
    op.create_table(
        "routing_keys",
        sa.Column("key", sa.String(253), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False, server_default="subdomain"),
        sa.Column("released_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index(op.f("ix_routing_keys_tenant_id"), "routing_keys", ["tenant_id"], unique=False)
    op.create_index("idx_routing_key_released_at", "routing_keys", ["released_at"], unique=False)

    # 3. Registration sessions
    op.create_table(
        "registration_sessions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("blog_name", sa.String(200), nullable=True),
        sa.Column("subdomain", sa.String(63), nullable=True),
        sa.Column("theme", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_registration_expires_at", "registration_sessions", ["expires_at"], unique=False)

    # 4. Tenant-owned content
    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("slug", sa.String(300), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("publish_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_post_tenant_slug"),
    )
    op.create_index(op.f("ix_posts_id"), "posts", ["id"], unique=False)
    op.create_index(op.f("ix_posts_tenant_id"), "posts", ["tenant_id"], unique=False)
    op.create_index("idx_post_tenant_status", "posts", ["tenant_id", "status"], unique=False)

    op.create_table(
        "site_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("tagline", sa.String(300), nullable=True),
        sa.Column("theme", sa.String(50), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", name="uq_site_settings_tenant"),
    )
    op.create_index(op.f("ix_site_settings_id"), "site_settings", ["id"], unique=False)
    op.create_index(op.f("ix_site_settings_tenant_id"), "site_settings", ["tenant_id"], unique=False)

    op.create_table(
        "media_uploads",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_media_uploads_id"), "media_uploads", ["id"], unique=False)
    op.create_index(op.f("ix_media_uploads_tenant_id"), "media_uploads", ["tenant_id"], unique=False)
    op.create_index("ix_media_tenant_uploaded_at", "media_uploads", ["tenant_id", "uploaded_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_media_tenant_uploaded_at", table_name="media_uploads")
    op.drop_index(op.f("ix_media_uploads_tenant_id"), table_name="media_uploads")
    op.drop_index(op.f("ix_media_uploads_id"), table_name="media_uploads")
    op.drop_table("media_uploads")

    op.drop_index(op.f("ix_site_settings_tenant_id"), table_name="site_settings")
    op.drop_index(op.f("ix_site_settings_id"), table_name="site_settings")
    op.drop_table("site_settings")

    op.drop_index("idx_post_tenant_status", table_name="posts")
    op.drop_index(op.f("ix_posts_tenant_id"), table_name="posts")
    op.drop_index(op.f("ix_posts_id"), table_name="posts")
    op.drop_table("posts")

    op.drop_index("idx_registration_expires_at", table_name="registration_sessions")
    op.drop_table("registration_sessions")

    op.drop_index("idx_routing_key_released_at", table_name="routing_keys")
    op.drop_index(op.f("ix_routing_keys_tenant_id"), table_name="routing_keys")
    op.drop_table("routing_keys")

    op.drop_index("idx_tenant_status", table_name="tenants")
    op.drop_index(op.f("ix_tenants_owner_email"), table_name="tenants")
    op.drop_index(op.f("ix_tenants_owner_ref"), table_name="tenants")
    op.drop_index(op.f("ix_tenants_id"), table_name="tenants")
    op.drop_table("tenants")
