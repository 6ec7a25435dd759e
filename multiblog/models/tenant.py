"""
Tenant model: one isolated blog account.

Routing keys live in their own table whose primary key is the key itself, so
global uniqueness across subdomains and custom domains is enforced by the
database rather than by a check-then-insert in application code.
"""

import enum

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String

from multiblog.database import Base
from multiblog.utils.clock import utcnow


class TenantStatus(str, enum.Enum):
    provisional = "provisional"
    active = "active"
    suspended = "suspended"
    deleted = "deleted"


class PlanTier(str, enum.Enum):
    free = "free"
    pro = "pro"
    business = "business"


class RoutingKeyKind(str, enum.Enum):
    subdomain = "subdomain"
    custom_domain = "custom_domain"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    owner_ref = Column(String(255), nullable=False, index=True)  # identity supplied by the auth collaborator
    owner_email = Column(String(320), nullable=False, index=True)
    display_name = Column(String(200), nullable=False)
    subdomain = Column(String(63), nullable=False)  # current key, mirrored from routing_keys
    custom_domain = Column(String(253), nullable=True)
    status = Column(String(20), nullable=False, default=TenantStatus.active.value)
    plan_tier = Column(String(20), nullable=False, default=PlanTier.free.value)
    storage_used_bytes = Column(BigInteger, nullable=False, default=0)
    # Registration session that produced this tenant; makes commit retries idempotent
    source_session_id = Column(String(36), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("idx_tenant_status", "status"),)


class RoutingKey(Base):
    __tablename__ = "routing_keys"

    key = Column(String(253), primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default=RoutingKeyKind.subdomain.value)
    # Set when the owner is deleted or moves to another key; reclaimable after the grace period
    released_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_routing_key_released_at", "released_at"),)
