"""Unit tests for the maintenance scheduler and analytics cleanup job."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from docrag.background import analytics_cleanup
from docrag.background.scheduler import ANALYTICS_CLEANUP_JOB_ID, register_jobs
from docrag.config import get_settings
from docrag.features.analytics.service import AnalyticsTracker


@pytest.fixture
def test_sched():
    # Paused: jobs are stored (and replaced by id) but never fire
    sched = BackgroundScheduler()
    sched.start(paused=True)
    yield sched
    sched.shutdown(wait=False)


class TestRegisterJobs:
    def test_cleanup_job_registered_daily(self, test_sched):
        settings = get_settings()
        register_jobs(test_sched)

        jobs = test_sched.get_jobs()
        assert [j.id for j in jobs] == [ANALYTICS_CLEANUP_JOB_ID]
        assert isinstance(jobs[0].trigger, CronTrigger)
        assert f"hour='{settings.ANALYTICS_CLEANUP_HOUR}'" in str(jobs[0].trigger)

    def test_register_twice_replaces(self, test_sched):
        register_jobs(test_sched)
        register_jobs(test_sched)
        assert len(test_sched.get_jobs()) == 1

    def test_disabled_cleanup_adds_nothing(self, monkeypatch, test_sched):
        monkeypatch.setattr(get_settings(), "ANALYTICS_CLEANUP_ENABLED", False)
        register_jobs(test_sched)
        assert test_sched.get_jobs() == []


class TestCleanupJob:
    def test_deletes_expired_rows(self, monkeypatch, fake_db):
        now = datetime.now(timezone.utc)
        fake_db.tables["search_analytics"] = [
            {"id": "old", "created_at": (now - timedelta(days=30)).isoformat()},
            {"id": "new", "created_at": (now - timedelta(days=1)).isoformat()},
        ]
        monkeypatch.setattr(analytics_cleanup, "get_tracker", lambda: AnalyticsTracker(fake_db))

        assert asyncio.run(analytics_cleanup.cleanup_search_analytics(days_to_keep=7)) is True
        assert [r["id"] for r in fake_db.tables["search_analytics"]] == ["new"]

    def test_failure_reported(self, monkeypatch, fake_db):
        fake_db.fail = True
        monkeypatch.setattr(analytics_cleanup, "get_tracker", lambda: AnalyticsTracker(fake_db))
        assert asyncio.run(analytics_cleanup.cleanup_search_analytics()) is False
