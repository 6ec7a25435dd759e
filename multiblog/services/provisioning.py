"""
Provisioning Workflow

Turns a registration session into a committed tenant:

    DRAFT → VALIDATING → COMMITTING → COMMITTED
                 ↓             ↓
              REJECTED      REJECTED (lost race twice, or timeout)
    any non-terminal state → EXPIRED when the session TTL has passed

Validation always asks the tenant directory, never the preview-time hint.
A commit that loses a race for its subdomain re-validates exactly once
before giving up. Committing the same session again after success returns
the tenant that was already created, but only to the owner who created it.
A commit that outlives its timeout finishes in the background, including
the session discard and the owner notifications.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from multiblog.config import settings
from multiblog.exceptions import (
    CommitTimeoutError,
    PlatformError,
    RoutingKeyConflictError,
    SessionExpiredError,
    SessionNotFoundError,
)
from multiblog.models.registration import RegistrationSession
from multiblog.models.tenant import Tenant
from multiblog.services.notification_service import BackgroundDispatcher, EmailNotifier
from multiblog.services.registration_store import RegistrationSessionStore
from multiblog.services.tenant_directory import TenantDirectory, TenantRegistration
from multiblog.utils.audit import AuditSink
from multiblog.utils.clock import Clock, utcnow
from multiblog.utils.hostnames import subdomain_error

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


class ProvisioningState(str, enum.Enum):
    DRAFT = "draft"
    VALIDATING = "validating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    REJECTED = "rejected"
    EXPIRED = "expired"


class RejectionReason(str, enum.Enum):
    SESSION_NOT_FOUND = "session_not_found"
    OWNER_MISSING = "owner_missing"
    OWNER_MISMATCH = "owner_mismatch"
    BLOG_NAME_MISSING = "blog_name_missing"
    EMAIL_INVALID = "email_invalid"
    EMAIL_REGISTERED = "email_registered"
    SUBDOMAIN_MISSING = "subdomain_missing"
    SUBDOMAIN_INVALID = "subdomain_invalid"
    SUBDOMAIN_RESERVED = "subdomain_reserved"
    SUBDOMAIN_TAKEN = "subdomain_taken"
    COMMIT_TIMEOUT = "commit_timeout"


@dataclass(frozen=True)
class ProvisioningOutcome:
    session_id: str
    state: ProvisioningState
    tenant_id: int | None = None
    subdomain: str | None = None
    reason: RejectionReason | None = None
    suggestions: tuple[str, ...] = ()
    retryable: bool = False
    attempts: int = 0
    history: tuple[ProvisioningState, ...] = field(default=(), compare=False)

    @property
    def committed(self) -> bool:
        return self.state == ProvisioningState.COMMITTED


@dataclass(frozen=True)
class Preview:
    """What the onboarding UI renders while the user is still editing."""

    session_id: str
    blog_name: str | None
    subdomain: str | None
    theme: str
    url: str | None
    subdomain_available: bool | None
    subdomain_problem: str | None
    suggestions: tuple[str, ...]
    expires_at: datetime


class ProvisioningWorkflow:
    MAX_COMMIT_ATTEMPTS = 2

    def __init__(
        self,
        directory: TenantDirectory,
        store: RegistrationSessionStore,
        notifier: EmailNotifier | None = None,
        sink: AuditSink | None = None,
        dispatcher: BackgroundDispatcher | None = None,
        commit_timeout: float | None = None,
        default_plan_tier: str | None = None,
        clock: Clock = utcnow,
    ):
        self.directory = directory
        self.store = store
        self.notifier = notifier or EmailNotifier()
        self.sink = sink or AuditSink()
        self.dispatcher = dispatcher or BackgroundDispatcher()
        self.commit_timeout = commit_timeout if commit_timeout is not None else settings.provisioning_commit_timeout_seconds
        self.default_plan_tier = default_plan_tier or settings.default_plan_tier
        self.clock = clock
        self._in_flight: set[asyncio.Task] = set()

    # ── Preview ──────────────────────────────────────────────────────────────

    async def preview(self, session_id: str) -> Preview:
        """
        Live-preview data for a draft session.

        Availability here is advisory; only commit decides.
        """
        record = await self.store.get(session_id)
        problem = subdomain_error(record.subdomain, self.directory.reserved_labels)
        available = None
        suggestions: list[str] = []
        if problem is None:
            available = await self.directory.is_available(record.subdomain)
            if not available:
                problem = RejectionReason.SUBDOMAIN_TAKEN.value
                suggestions = await self.directory.suggest_alternatives(record.subdomain)
        url = None
        if record.subdomain and problem in (None, RejectionReason.SUBDOMAIN_TAKEN.value):
            url = f"https://{record.subdomain}.{self.directory.platform_domain}"
        return Preview(
            session_id=record.id,
            blog_name=record.blog_name,
            subdomain=record.subdomain,
            theme=record.theme,
            url=url,
            subdomain_available=available,
            subdomain_problem=problem,
            suggestions=tuple(suggestions),
            expires_at=record.expires_at,
        )

    # ── Commit ───────────────────────────────────────────────────────────────

    async def commit(self, session_id: str, owner_ref: str | None) -> ProvisioningOutcome:
        history = [ProvisioningState.DRAFT]

        if not owner_ref:
            return self._rejected(session_id, RejectionReason.OWNER_MISSING, history)

        existing = await self.directory.get_by_session(session_id)
        if existing is not None:
            return await self._already_committed(session_id, existing, owner_ref, history, attempts=0)

        try:
            record = await self.store.get(session_id)
        except SessionExpiredError:
            return self._expired(session_id, history)
        except SessionNotFoundError:
            # The session is consumed by a successful commit, possibly a concurrent one
            existing = await self.directory.get_by_session(session_id)
            if existing is not None:
                return await self._already_committed(session_id, existing, owner_ref, history, attempts=0)
            return self._rejected(session_id, RejectionReason.SESSION_NOT_FOUND, history)

        attempt = 0
        while True:
            attempt += 1
            history.append(ProvisioningState.VALIDATING)
            if record.is_expired(self.clock()):
                return self._expired(session_id, history, attempts=attempt)

            rejection = await self._validate(record)
            if rejection is not None:
                existing = await self.directory.get_by_session(session_id)
                if existing is not None:
                    return await self._already_committed(session_id, existing, owner_ref, history, attempts=attempt)
                reason, suggestions = rejection
                return self._rejected(session_id, reason, history, suggestions=suggestions, attempts=attempt)

            history.append(ProvisioningState.COMMITTING)
            try:
                tenant = await self._register(record, owner_ref)
            except RoutingKeyConflictError as exc:
                if attempt < self.MAX_COMMIT_ATTEMPTS:
                    logger.info("Session %s lost the race for %s, re-validating", session_id, exc.routing_key)
                    continue
                return self._rejected(
                    session_id,
                    RejectionReason.SUBDOMAIN_TAKEN,
                    history,
                    suggestions=exc.suggestions,
                    attempts=attempt,
                )
            except CommitTimeoutError:
                logger.warning("Commit for session %s exceeded %.1fs", session_id, self.commit_timeout)
                return self._rejected(
                    session_id, RejectionReason.COMMIT_TIMEOUT, history, retryable=True, attempts=attempt
                )

            if tenant.owner_ref != owner_ref:
                # A concurrent commit of this session by another owner created the tenant
                return self._rejected(session_id, RejectionReason.OWNER_MISMATCH, history, attempts=attempt)
            history.append(ProvisioningState.COMMITTED)
            await self._complete(session_id, tenant)
            return self._committed(session_id, tenant, history, attempts=attempt)

    async def _already_committed(
        self, session_id: str, tenant: Tenant, owner_ref: str, history, attempts: int
    ) -> ProvisioningOutcome:
        if tenant.owner_ref != owner_ref:
            logger.warning("Commit of session %s by a different owner refused", session_id)
            return self._rejected(session_id, RejectionReason.OWNER_MISMATCH, history, attempts=attempts)
        history.append(ProvisioningState.COMMITTED)
        # A commit that finished after its caller timed out may not have consumed the session yet
        await self._complete(session_id, tenant)
        return self._committed(session_id, tenant, history, attempts=attempts)

    async def _validate(self, record: RegistrationSession) -> tuple[RejectionReason, list[str]] | None:
        if not record.blog_name:
            return RejectionReason.BLOG_NAME_MISSING, []
        try:
            _email_adapter.validate_python(record.email)
        except PydanticValidationError:
            return RejectionReason.EMAIL_INVALID, []

        problem = subdomain_error(record.subdomain, self.directory.reserved_labels)
        if problem is not None:
            return RejectionReason(problem), []

        if await self.directory.find_active_by_email(record.email) is not None:
            return RejectionReason.EMAIL_REGISTERED, []

        if not await self.directory.is_available(record.subdomain):
            return RejectionReason.SUBDOMAIN_TAKEN, await self.directory.suggest_alternatives(record.subdomain)
        return None

    async def _register(self, record: RegistrationSession, owner_ref: str) -> Tenant:
        registration = TenantRegistration(
            owner_ref=owner_ref,
            owner_email=record.email,
            display_name=record.blog_name,
            subdomain=record.subdomain,
            theme=record.theme,
            plan_tier=self.default_plan_tier,
            source_session_id=record.id,
        )
        # Shielded: a timeout or a disconnecting client stops waiting, never the
        # transaction itself, so the tenant is either fully created or not at all
        task = asyncio.ensure_future(self.directory.register(registration))
        self._in_flight.add(task)
        task.add_done_callback(self._commit_finished)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.commit_timeout)
        except asyncio.TimeoutError:
            self.dispatcher.dispatch(
                self._complete_late_commit(task, record.id, owner_ref),
                description=f"late_commit:{record.id}",
            )
            raise CommitTimeoutError(self.commit_timeout) from None

    async def _complete_late_commit(self, task: asyncio.Task, session_id: str, owner_ref: str) -> None:
        """Finish the COMMITTED transition for a register call that outlived its caller."""
        try:
            tenant = await task
        except PlatformError as e:
            logger.info("Late commit for session %s created no tenant: %s", session_id, e.message)
            return
        if tenant.owner_ref == owner_ref:
            logger.info("Late commit for session %s created tenant %d", session_id, tenant.id)
            await self._complete(session_id, tenant)

    def _commit_finished(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Background commit ended with %r", task.exception())

    async def drain(self) -> None:
        """Wait for commits still running after their caller stopped waiting."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _complete(self, session_id: str, tenant: Tenant) -> None:
        """
        Consume the session and notify the owner.

        Only the caller whose discard removed the session sends notifications,
        so concurrent and retried commits of one session notify once.
        """
        try:
            consumed = await self.store.discard(session_id)
        except SQLAlchemyError as e:
            # The tenant exists; the expiry sweep will reclaim the leftover session
            logger.warning("Could not discard registration session %s: %s", session_id, e)
            consumed = True
        if consumed:
            self._notify_created(tenant)

    def _notify_created(self, tenant: Tenant) -> None:
        self.dispatcher.dispatch(
            self.notifier.send_tenant_created(tenant.owner_email, tenant.display_name, tenant.subdomain),
            description=f"tenant_created:{tenant.id}",
        )
        self.dispatcher.dispatch(
            self.notifier.send_verify_address(tenant.owner_email, f"tenant-{tenant.id}"),
            description=f"verify_address:{tenant.id}",
        )

    # ── Outcomes ─────────────────────────────────────────────────────────────

    def _finish(self, outcome: ProvisioningOutcome) -> ProvisioningOutcome:
        self.sink.provisioning_outcome(
            outcome.session_id,
            outcome.state.value,
            tenant_id=outcome.tenant_id,
            reason=outcome.reason.value if outcome.reason else None,
            attempts=outcome.attempts,
        )
        return outcome

    def _committed(self, session_id: str, tenant: Tenant, history, attempts: int) -> ProvisioningOutcome:
        return self._finish(
            ProvisioningOutcome(
                session_id=session_id,
                state=ProvisioningState.COMMITTED,
                tenant_id=tenant.id,
                subdomain=tenant.subdomain,
                attempts=attempts,
                history=tuple(history),
            )
        )

    def _rejected(
        self,
        session_id: str,
        reason: RejectionReason,
        history,
        suggestions=(),
        retryable: bool = False,
        attempts: int = 0,
    ) -> ProvisioningOutcome:
        history.append(ProvisioningState.REJECTED)
        return self._finish(
            ProvisioningOutcome(
                session_id=session_id,
                state=ProvisioningState.REJECTED,
                reason=reason,
                suggestions=tuple(suggestions),
                retryable=retryable,
                attempts=attempts,
                history=tuple(history),
            )
        )

    def _expired(self, session_id: str, history, attempts: int = 0) -> ProvisioningOutcome:
        history.append(ProvisioningState.EXPIRED)
        return self._finish(
            ProvisioningOutcome(
                session_id=session_id,
                state=ProvisioningState.EXPIRED,
                attempts=attempts,
                history=tuple(history),
            )
        )
