"""
Storage-layer tenant guard for owned entities.

Every owned table carries a non-null ``tenant_id``. Sessions opened by the
isolation enforcer record their tenant in ``session.info``; the listeners
below then

* add a ``tenant_id`` filter to every ORM SELECT against an owned entity, and
* refuse to flush an owned row that belongs to another tenant, that changes
  its ``tenant_id``, or that is written outside of any tenant scope.

This runs underneath the enforcer's own checks, so a query that forgets
its tenant predicate still cannot read or write another tenant's rows.
"""

import logging

from sqlalchemy import Column, ForeignKey, Integer, event, inspect
from sqlalchemy.orm import Session, declared_attr, with_loader_criteria

from multiblog.exceptions import IsolationViolationError

logger = logging.getLogger(__name__)

SCOPE_TENANT_KEY = "multiblog.tenant_id"
SCOPE_OVERRIDE_KEY = "multiblog.isolation_override"

_OWNER_LOOKUP = object()


class TenantOwnedMixin:
    """Columns shared by every tenant-scoped content record."""

    @declared_attr
    def tenant_id(cls):
        return Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)


def owner_lookup_options() -> dict:
    """Execution options for reading only the owner column of an entity, unfiltered."""
    return {"tenant_owner_lookup": _OWNER_LOOKUP}


def bind_session_to_tenant(session, tenant_id: int, override: bool = False) -> None:
    session.info[SCOPE_TENANT_KEY] = tenant_id
    session.info[SCOPE_OVERRIDE_KEY] = override


@event.listens_for(Session, "do_orm_execute")
def _filter_owned_selects(execute_state):
    info = execute_state.session.info
    tenant_id = info.get(SCOPE_TENANT_KEY)
    if tenant_id is None or info.get(SCOPE_OVERRIDE_KEY):
        return
    if not execute_state.is_select or execute_state.is_column_load or execute_state.is_relationship_load:
        return
    if execute_state.execution_options.get("tenant_owner_lookup") is _OWNER_LOOKUP:
        return
    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(
            TenantOwnedMixin,
            lambda cls: cls.tenant_id == tenant_id,
            include_aliases=True,
        )
    )


@event.listens_for(Session, "before_flush")
def _guard_owned_rows(session, flush_context, instances):
    if session.info.get(SCOPE_OVERRIDE_KEY):
        return
    tenant_id = session.info.get(SCOPE_TENANT_KEY)

    for obj in (*session.new, *session.dirty, *session.deleted):
        if not isinstance(obj, TenantOwnedMixin):
            continue
        entity_type = type(obj).__name__
        if tenant_id is None:
            raise IsolationViolationError("unscoped_write", entity_type=entity_type, entity_tenant_id=obj.tenant_id)
        if obj in session.dirty and inspect(obj).attrs.tenant_id.history.deleted:
            raise IsolationViolationError(
                "tenant_reassignment",
                context_tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=getattr(obj, "id", None),
                entity_tenant_id=obj.tenant_id,
            )
        if obj.tenant_id != tenant_id:
            raise IsolationViolationError(
                "cross_tenant_write",
                context_tenant_id=tenant_id,
                entity_type=entity_type,
                entity_id=getattr(obj, "id", None),
                entity_tenant_id=obj.tenant_id,
            )
