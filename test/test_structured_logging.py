"""
Tests for structured logging and audit events
"""

import json
import logging

from multiblog.middleware.logging import RequestIdFilter, StructuredFormatter, request_id_var
from multiblog.utils.audit import AuditSink


def _record(**extra):
    record = logging.LogRecord("multiblog.audit", logging.WARNING, __file__, 1, "Something happened", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_formats_json_with_audit_fields(self):
        record = _record(audit_event="isolation_violation", audit={"reason": "cross_tenant_access", "entity_id": 3})

        data = json.loads(StructuredFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["logger"] == "multiblog.audit"
        assert data["message"] == "Something happened"
        assert data["audit_event"] == "isolation_violation"
        assert data["audit"]["entity_id"] == 3

    def test_request_fields_are_included(self):
        record = _record(
            method="GET", path="/posts", host="acme.platform.tld", host_kind="tenant", tenant_id=4, status_code=200
        )

        data = json.loads(StructuredFormatter().format(record))

        assert data["host"] == "acme.platform.tld"
        assert data["host_kind"] == "tenant"
        assert data["tenant_id"] == 4
        assert data["status_code"] == 200

    def test_request_id_filter(self):
        token = request_id_var.set("req-123")
        try:
            record = _record()
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        assert json.loads(StructuredFormatter().format(record))["request_id"] == "req-123"


class TestAuditSink:
    def test_events_go_to_audit_logger(self, caplog):
        with caplog.at_level(logging.INFO, logger="multiblog.audit"):
            AuditSink().provisioning_outcome("session-1", "committed", tenant_id=7, attempts=1)

        record = caplog.records[-1]
        assert record.name == "multiblog.audit"
        assert record.levelno == logging.INFO
        assert record.audit_event == "provisioning_outcome"
        assert record.audit["tenant_id"] == 7

    def test_rejections_are_warnings(self, caplog):
        with caplog.at_level(logging.INFO, logger="multiblog.audit"):
            AuditSink().isolation_violation("untrusted_context", context_tenant_id=None)

        assert caplog.records[-1].levelno == logging.WARNING
