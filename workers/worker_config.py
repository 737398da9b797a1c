from __future__ import annotations

from arq.connections import RedisSettings
from arq import cron

from settings.config import settings
from workers.rollover_worker import roll_over_budgets, shutdown, startup


class WorkerSettings:
    functions = [
        roll_over_budgets,
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL or "redis://localhost:6379")
    cron_jobs = [
        # Daily; the job itself only acts on the last day of the month
        cron(roll_over_budgets, hour=settings.ROLLOVER_CRON_HOUR, minute=settings.ROLLOVER_CRON_MINUTE),
    ]
