"""Scheduled jobs: the in-process daily briefing."""

from pabridge.crons.scheduler import BriefingScheduler, validate_cron_expression

__all__ = [
    "BriefingScheduler",
    "validate_cron_expression",
]
