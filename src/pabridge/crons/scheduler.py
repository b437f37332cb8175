"""In-process schedule for the daily briefing.

The briefing is normally triggered from outside via
``GET /cron/daily-briefing``. When ``briefing_cron`` is set, the same
flow also runs on that crontab inside the bridge process.
"""

from __future__ import annotations

from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from pabridge.core.lifecycle import TaskLifecycle

logger = structlog.get_logger()

_MISFIRE_GRACE_TIME_S = 300
BRIEFING_JOB_ID = "daily_briefing"


def validate_cron_expression(expr: str) -> str | None:
    """Return None if valid, error message if invalid."""
    try:
        CronTrigger.from_crontab(expr)
        return None
    except (ValueError, TypeError) as e:
        return str(e)


class BriefingScheduler:
    """Runs the daily briefing on a crontab via APScheduler."""

    def __init__(self, lifecycle: TaskLifecycle, cron: str, timezone: str = "UTC") -> None:
        from apscheduler.events import EVENT_JOB_MISSED

        self.lifecycle = lifecycle
        self.cron = cron
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": _MISFIRE_GRACE_TIME_S,
            }
        )
        self.scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

    @staticmethod
    def _on_job_missed(event: Any) -> None:
        logger.warning(
            "briefing_job_missed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time),
        )

    async def _run(self) -> None:
        ok = await self.lifecycle.trigger_daily_briefing()
        logger.info("scheduled_briefing_finished", ok=ok)

    def start(self) -> bool:
        """Schedule and start; False (and nothing started) on a bad crontab."""
        error = validate_cron_expression(self.cron)
        if error:
            logger.error("briefing_cron_invalid", cron=self.cron, error=error)
            return False

        self.scheduler.add_job(
            self._run,
            trigger=CronTrigger.from_crontab(self.cron, timezone=self.timezone),
            id=BRIEFING_JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("briefing_scheduler_started", cron=self.cron, timezone=self.timezone)
        return True

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("briefing_scheduler_stopped")
