"""
Service wiring.

One Platform instance per application holds the collaborating services.
It is created by ``create_app`` and reached from request handlers through
``request.app.state.platform``.
"""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from multiblog.config import Settings
from multiblog.database import Base, build_engine, build_session_factory
from multiblog.services.isolation import IsolationEnforcer
from multiblog.services.notification_service import BackgroundDispatcher, EmailNotifier
from multiblog.services.provisioning import ProvisioningWorkflow
from multiblog.services.registration_store import RegistrationSessionStore
from multiblog.services.tenant_directory import TenantDirectory
from multiblog.services.tenant_resolver import TenantResolver
from multiblog.utils.audit import AuditSink
from multiblog.utils.clock import Clock, utcnow


@dataclass
class Platform:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    directory: TenantDirectory
    resolver: TenantResolver
    enforcer: IsolationEnforcer
    store: RegistrationSessionStore
    workflow: ProvisioningWorkflow
    notifier: EmailNotifier
    dispatcher: BackgroundDispatcher
    sink: AuditSink

    @classmethod
    def build(
        cls,
        settings: Settings,
        engine: AsyncEngine | None = None,
        notifier: EmailNotifier | None = None,
        sink: AuditSink | None = None,
        clock: Clock = utcnow,
    ) -> "Platform":
        engine = engine or build_engine(settings.database_url)
        session_factory = build_session_factory(engine)
        sink = sink or AuditSink()
        notifier = notifier or EmailNotifier(settings.email_from, settings.platform_domain)
        dispatcher = BackgroundDispatcher()

        directory = TenantDirectory(
            session_factory,
            platform_domain=settings.platform_domain,
            reserved_labels=settings.reserved_labels,
            grace_period=timedelta(days=settings.routing_key_grace_period_days),
            suggestion_count=settings.subdomain_suggestion_count,
            clock=clock,
        )
        resolver = TenantResolver(
            directory,
            platform_domain=settings.platform_domain,
            reserved_labels=settings.reserved_labels,
            cache_ttl_seconds=settings.resolver_cache_ttl_seconds,
            cache_max_entries=settings.resolver_cache_max_entries,
        )
        store = RegistrationSessionStore(
            session_factory,
            ttl=timedelta(seconds=settings.registration_session_ttl_seconds),
            themes=settings.available_themes,
            default_theme=settings.default_theme,
            clock=clock,
        )
        workflow = ProvisioningWorkflow(
            directory,
            store,
            notifier=notifier,
            sink=sink,
            dispatcher=dispatcher,
            commit_timeout=settings.provisioning_commit_timeout_seconds,
            default_plan_tier=settings.default_plan_tier,
            clock=clock,
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            directory=directory,
            resolver=resolver,
            enforcer=IsolationEnforcer(session_factory, sink),
            store=store,
            workflow=workflow,
            notifier=notifier,
            dispatcher=dispatcher,
            sink=sink,
        )

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drain(self) -> None:
        """Let background commits and notifications finish."""
        await self.workflow.drain()
        await self.dispatcher.drain()
