"""
Tests for outbound notifications
"""

import logging

from conftest import RecordingNotifier
from multiblog.services.notification_service import BackgroundDispatcher


class TestEmailNotifier:
    async def test_tenant_created_message(self):
        notifier = RecordingNotifier()

        await notifier.send_tenant_created("owner@acme.example.com", "Acme Notes", "acme")

        message = notifier.sent[0]
        assert message.to_email == "owner@acme.example.com"
        assert "https://acme.platform.tld" in message.text_body
        assert message.from_email == "no-reply@platform.tld"


class TestBackgroundDispatcher:
    async def test_drain_waits_for_tasks(self):
        notifier = RecordingNotifier()
        dispatcher = BackgroundDispatcher()

        dispatcher.dispatch(notifier.send_verify_address("owner@acme.example.com", "ref-1"), "verify")
        await dispatcher.drain()

        assert len(notifier.sent) == 1
        assert len(dispatcher) == 0

    async def test_failure_is_logged_not_raised(self, caplog):
        dispatcher = BackgroundDispatcher()

        async def broken():
            raise ConnectionError("smtp down")

        with caplog.at_level(logging.ERROR, logger="multiblog.services.notification_service"):
            dispatcher.dispatch(broken(), "welcome email")
            await dispatcher.drain()

        assert "welcome email" in caplog.text
        assert "smtp down" in caplog.text

    async def test_drain_waits_for_tasks_dispatched_while_draining(self):
        notifier = RecordingNotifier()
        dispatcher = BackgroundDispatcher()

        async def follow_up():
            dispatcher.dispatch(notifier.send_verify_address("owner@acme.example.com", "ref-2"), "verify")

        dispatcher.dispatch(follow_up(), "follow up")
        await dispatcher.drain()

        assert len(notifier.sent) == 1
