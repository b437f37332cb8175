"""Tests for the in-process daily briefing schedule."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pabridge.crons.scheduler import BRIEFING_JOB_ID, BriefingScheduler, validate_cron_expression


@pytest.fixture
def lifecycle() -> MagicMock:
    lc = MagicMock()
    lc.trigger_daily_briefing = AsyncMock(return_value=True)
    return lc


class TestValidateCron:
    def test_valid(self):
        assert validate_cron_expression("0 7 * * 1-5") is None

    @pytest.mark.parametrize("expr", ["", "every morning", "61 7 * * *", "0 7 * *"])
    def test_invalid(self, expr):
        assert validate_cron_expression(expr) is not None


class TestBriefingScheduler:
    async def test_start_registers_job(self, lifecycle):
        scheduler = BriefingScheduler(lifecycle, "0 7 * * *", timezone="Europe/Copenhagen")
        try:
            assert scheduler.start() is True
            job = scheduler.scheduler.get_job(BRIEFING_JOB_ID)
            assert job is not None
            assert str(job.trigger.timezone) == "Europe/Copenhagen"
        finally:
            scheduler.stop()
        await asyncio.sleep(0.05)
        assert not scheduler.scheduler.running

    async def test_invalid_cron_does_not_start(self, lifecycle):
        scheduler = BriefingScheduler(lifecycle, "not a cron")
        assert scheduler.start() is False
        assert not scheduler.scheduler.running
        scheduler.stop()

    async def test_job_runs_briefing(self, lifecycle):
        scheduler = BriefingScheduler(lifecycle, "0 7 * * *")
        await scheduler._run()
        lifecycle.trigger_daily_briefing.assert_awaited_once()
