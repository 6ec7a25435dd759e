"""
Notification Service

Outbound messages to the email collaborator ("tenant created", "verify your
address"). Delivery is fire-and-forget: a failure is logged and never
affects the operation that triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass

from multiblog.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to_email: str
    subject: str
    text_body: str
    from_email: str = ""


class EmailNotifier:
    """
    Base notifier. ``deliver`` is the hook an SMTP or provider-backed
    implementation overrides; the default only logs the message.
    """

    def __init__(self, from_email: str | None = None, platform_domain: str | None = None):
        self.from_email = from_email or settings.email_from
        self.platform_domain = platform_domain or settings.platform_domain

    async def deliver(self, message: EmailMessage) -> None:
        logger.info("Email to %s: %s", message.to_email, message.subject)

    async def send_tenant_created(self, to_email: str, display_name: str, subdomain: str) -> None:
        url = f"https://{subdomain}.{self.platform_domain}"
        await self.deliver(
            EmailMessage(
                to_email=to_email,
                subject=f"Your blog {display_name} is live",
                text_body=f"Welcome! Your blog is now available at {url}.",
                from_email=self.from_email,
            )
        )

    async def send_verify_address(self, to_email: str, reference: str) -> None:
        await self.deliver(
            EmailMessage(
                to_email=to_email,
                subject="Please verify your email address",
                text_body=f"Confirm your address to finish setting up your blog (reference {reference}).",
                from_email=self.from_email,
            )
        )


class BackgroundDispatcher:
    """Runs notification coroutines in the background and keeps references until they finish."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, coro: Awaitable[None], description: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, description))
        return task

    def _finished(self, task: asyncio.Task, description: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Notification cancelled: %s", description)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification failed: %s: %s", description, exc)

    async def drain(self) -> None:
        """Wait for in-flight notifications; used on shutdown and in tests."""
        # Tasks may dispatch further tasks while being drained
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)
