"""
Registration Session Store

Holds provisional signup state while the onboarding preview is being
edited. A session expires a fixed TTL after creation. Expiry is checked on
every read and write, so the periodic sweep only reclaims storage and is
never needed for correctness.
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import timedelta

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from multiblog.config import settings
from multiblog.exceptions import SessionExpiredError, SessionNotFoundError, ValidationError
from multiblog.models.registration import RegistrationSession
from multiblog.utils.clock import Clock, utcnow
from multiblog.utils.hostnames import MAX_LABEL_LENGTH
from multiblog.utils.slugify import slugify

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"email", "blog_name", "subdomain", "theme"})


class RegistrationSessionStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: timedelta | None = None,
        themes: Iterable[str] | None = None,
        default_theme: str | None = None,
        clock: Clock = utcnow,
    ):
        self.session_factory = session_factory
        self.ttl = ttl if ttl is not None else timedelta(seconds=settings.registration_session_ttl_seconds)
        self.themes = frozenset(themes if themes is not None else settings.available_themes)
        self.default_theme = default_theme or settings.default_theme
        self.clock = clock

    def _clean(self, fields: dict) -> dict:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown registration fields: {', '.join(sorted(unknown))}")
        values = dict(fields)
        if values.get("email") is not None:
            values["email"] = values["email"].strip().lower()
        if values.get("blog_name") is not None:
            values["blog_name"] = values["blog_name"].strip()
        if values.get("subdomain") is not None:
            values["subdomain"] = values["subdomain"].strip().lower()
        if "theme" in values:
            if values["theme"] is None:
                values["theme"] = self.default_theme
            elif values["theme"] not in self.themes:
                raise ValidationError(f"Unknown theme '{values['theme']}'", field="theme")
        return values

    async def create(self, **fields) -> str:
        """Start a signup session and return its id."""
        values = self._clean(fields)
        if not values.get("subdomain") and values.get("blog_name"):
            values["subdomain"] = slugify(values["blog_name"], max_length=MAX_LABEL_LENGTH) or None
        values.setdefault("theme", self.default_theme)

        now = self.clock()
        record = RegistrationSession(id=str(uuid.uuid4()), created_at=now, expires_at=now + self.ttl, **values)
        async with self.session_factory() as session, session.begin():
            session.add(record)
        logger.info("Registration session %s created, expires at %s", record.id, record.expires_at.isoformat())
        return record.id

    async def get(self, session_id: str) -> RegistrationSession:
        async with self.session_factory() as session:
            record = await session.get(RegistrationSession, session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        if record.is_expired(self.clock()):
            raise SessionExpiredError(session_id)
        return record

    async def update(self, session_id: str, **fields) -> RegistrationSession:
        """
        Apply preview edits to a live session.

        A single conditional UPDATE guards against the session expiring between
        a check and the write.
        """
        values = self._clean(fields)
        now = self.clock()
        async with self.session_factory() as session, session.begin():
            if values:
                result = await session.execute(
                    update(RegistrationSession)
                    .where(RegistrationSession.id == session_id, RegistrationSession.expires_at >= now)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount > 0
            else:
                updated = False
            record = await session.get(RegistrationSession, session_id, populate_existing=True)
        if record is None:
            raise SessionNotFoundError(session_id)
        if not updated and record.is_expired(now):
            raise SessionExpiredError(session_id)
        return record

    async def discard(self, session_id: str) -> bool:
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                delete(RegistrationSession)
                .where(RegistrationSession.id == session_id)
                .execution_options(synchronize_session=False)
            )
        discarded = result.rowcount > 0
        if discarded:
            logger.info("Registration session %s discarded", session_id)
        return discarded

    async def sweep_expired(self) -> int:
        """Physically remove expired sessions; returns the number purged."""
        now = self.clock()
        async with self.session_factory() as session, session.begin():
            result = await session.execute(
                delete(RegistrationSession)
                .where(RegistrationSession.expires_at < now)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount:
            logger.info("Swept %d expired registration sessions", result.rowcount)
        return result.rowcount

