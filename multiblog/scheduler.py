from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from multiblog.services.registration_store import RegistrationSessionStore
import logging

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_expired_registration_sessions"


async def sweep_expired_sessions(store: RegistrationSessionStore) -> int:
    # Storage reclamation only; expired sessions are already refused on read
    purged = await store.sweep_expired()
    logger.info(f"[Scheduler] Registration session sweep purged {purged} sessions")
    return purged


def build_scheduler(store: RegistrationSessionStore, interval_seconds: int) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_expired_sessions,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[store],
        id=SWEEP_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    logger.info(f"[Scheduler] Session sweep scheduled every {interval_seconds}s")
    return scheduler
