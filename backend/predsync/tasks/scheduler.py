import logging
from datetime import timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from predsync.core.clock import Clock, utc_now
from predsync.core.config import get_settings
from predsync.core.logging import quiet_library_loggers
from predsync.services.retry import Defer, Job
from predsync.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)
settings = get_settings()

SYNC_CYCLE_JOB_ID = "sync_cycle"
LEASE_RENEWAL_JOB_ID = "lease_renewal"
STARTUP_JOB_ID = "startup_cycle"


def cron_minutes(minutes: list[int]) -> str:
    return ",".join(str(minute) for minute in minutes)


class SyncScheduler:
    """Drives the engine on wall-clock boundaries.

    Data cycles and lease renewal are separate jobs so a failed renewal never
    prevents a cycle from attempting its fetches.
    """

    def __init__(
        self,
        engine: SyncEngine,
        *,
        scheduler: AsyncIOScheduler | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.engine = engine
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._clock = clock
        self._started = False
        self._previous_defer: Defer | None = None

    @property
    def running(self) -> bool:
        return self._started

    def _job_defaults(self) -> dict[str, Any]:
        return {
            "max_instances": 1,
            "coalesce": True,
            "misfire_grace_time": max(1, settings.scheduler_misfire_grace_seconds),
            "replace_existing": True,
        }

    def register_jobs(self) -> None:
        minutes = settings.sync_cycle_minutes_list
        self._scheduler.add_job(
            self._run_cycle,
            CronTrigger(minute=cron_minutes(minutes), timezone="UTC"),
            id=SYNC_CYCLE_JOB_ID,
            name="Data synchronization cycle",
            **self._job_defaults(),
        )

        if self.engine.leases is not None:
            self._scheduler.add_job(
                self._renew_lease,
                IntervalTrigger(minutes=max(1, settings.lease_renewal_interval_minutes), timezone="UTC"),
                id=LEASE_RENEWAL_JOB_ID,
                name="Signed URL renewal",
                **self._job_defaults(),
            )

        startup_at = self._clock() + timedelta(seconds=max(0.0, settings.startup_delay_seconds))
        self._scheduler.add_job(
            self._run_initial_cycle,
            DateTrigger(run_date=startup_at, timezone="UTC"),
            id=STARTUP_JOB_ID,
            name="Initial data fetch",
            **self._job_defaults(),
        )

        logger.info(
            "Sync jobs registered",
            extra={
                "data_schedule_minutes": minutes,
                "lease_renewal_interval_minutes": (
                    settings.lease_renewal_interval_minutes if self.engine.leases is not None else None
                ),
                "startup_delay_seconds": settings.startup_delay_seconds,
                "strategy": self.engine.fetcher.strategy.name,
            },
        )

    def start(self) -> bool:
        if self._started:
            logger.warning("Scheduler already running; ignoring start call")
            return True
        if not self.engine.enabled:
            logger.warning("Polling is disabled")
            return False

        quiet_library_loggers()
        self.register_jobs()
        self._scheduler.start()
        self._started = True
        # Retries go through APScheduler once it runs, next to the regular jobs.
        self._previous_defer = self.engine.retry.defer
        self.engine.retry.defer = self.defer
        logger.info("Polling service started")
        return True

    def shutdown(self) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        if self._previous_defer is not None:
            self.engine.retry.defer = self._previous_defer
            self._previous_defer = None
        logger.info("Polling service stopped")

    def defer(self, delay_seconds: float, job: Job, name: str) -> None:
        run_at = self._clock() + timedelta(seconds=max(0.0, delay_seconds))
        self._scheduler.add_job(
            job,
            DateTrigger(run_date=run_at, timezone="UTC"),
            name=name,
            max_instances=1,
            misfire_grace_time=max(1, settings.scheduler_misfire_grace_seconds),
        )

    def status(self) -> dict[str, Any]:
        if not self._started:
            return {"running": False, "jobs": []}
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = job.next_run_time
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": next_run.isoformat() if next_run else None,
                }
            )
        jobs.sort(key=lambda item: item["next_run"] or "9999")
        return {"running": True, "job_count": len(jobs), "jobs": jobs}

    async def _run_cycle(self) -> None:
        try:
            await self.engine.run_cycle()
        except Exception:
            logger.exception("Data polling cycle failed")

    async def _renew_lease(self) -> None:
        logger.info("Scheduled URL refresh")
        try:
            await self.engine.renew_lease()
        except Exception:
            logger.exception("Scheduled URL refresh failed")

    async def _run_initial_cycle(self) -> None:
        try:
            await self.engine.initial_cycle()
        except Exception:
            logger.exception("Initial data fetch failed")
