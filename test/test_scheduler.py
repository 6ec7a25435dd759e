"""
Tests for the background session sweep
"""

from apscheduler.triggers.interval import IntervalTrigger

from multiblog.scheduler import SWEEP_JOB_ID, build_scheduler, sweep_expired_sessions


class TestSweepJob:
    async def test_sweep_purges_expired_sessions(self, store, clock):
        await store.create(blog_name="Old")
        clock.advance(hours=25)
        await store.create(blog_name="Fresh")

        assert await sweep_expired_sessions(store) == 1
        assert await sweep_expired_sessions(store) == 0

    def test_build_scheduler_registers_interval_job(self, store):
        scheduler = build_scheduler(store, interval_seconds=900)

        job = scheduler.get_job(SWEEP_JOB_ID)

        assert job is not None
        assert isinstance(job.trigger, IntervalTrigger)
        assert job.trigger.interval.total_seconds() == 900
        assert job.args == (store,)
        assert not scheduler.running
