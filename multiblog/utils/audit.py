"""
Audit events for the observability collaborator.

Isolation rejections, override uses and provisioning outcomes are emitted on
the ``multiblog.audit`` logger with structured ``extra`` fields, which the
StructuredFormatter turns into JSON lines for log aggregation.
"""

import logging
from typing import Any

audit_logger = logging.getLogger("multiblog.audit")


class AuditSink:
    """Default observability sink writing to the audit logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or audit_logger

    def _emit(self, level: int, event: str, message: str, fields: dict[str, Any]) -> None:
        self.logger.log(level, message, extra={"audit_event": event, "audit": fields})

    def isolation_violation(
        self,
        reason: str,
        context_tenant_id: int | None,
        entity_type: str | None = None,
        entity_id: Any = None,
        entity_tenant_id: int | None = None,
    ) -> None:
        self._emit(
            logging.WARNING,
            "isolation_violation",
            f"Rejected cross-tenant access: {reason}",
            {
                "reason": reason,
                "context_tenant_id": context_tenant_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "entity_tenant_id": entity_tenant_id,
            },
        )

    def isolation_override(self, actor: str, reason: str, context_tenant_id: int, entity_type: str, entity_id: Any) -> None:
        self._emit(
            logging.WARNING,
            "isolation_override",
            f"Isolation override used by {actor}",
            {
                "actor": actor,
                "reason": reason,
                "context_tenant_id": context_tenant_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )

    def provisioning_outcome(
        self,
        session_id: str,
        state: str,
        tenant_id: int | None = None,
        reason: str | None = None,
        attempts: int = 0,
    ) -> None:
        level = logging.INFO if reason is None else logging.WARNING
        self._emit(
            level,
            "provisioning_outcome",
            f"Provisioning {state} for session {session_id}",
            {"session_id": session_id, "state": state, "tenant_id": tenant_id, "reason": reason, "attempts": attempts},
        )
