"""Dataset synchronization engine.

One pipeline per dataset: resolve URL (renewing the lease when needed),
fetch, merge the companion dataset, scan for notifications, then swap the
cache snapshot as the final step. Every failure is caught at the pipeline
boundary and becomes a ``failed`` outcome; the previous snapshot stays
authoritative and the Retry Coordinator decides whether to try again.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Literal

from predsync.adapters.upstream.base import FetchResult
from predsync.adapters.upstream.errors import FetchFailed, MergeIncomplete, SyncError
from predsync.core.clock import Clock, to_iso_z, utc_now
from predsync.core.config import get_settings
from predsync.services.cache_store import CacheStore
from predsync.services.datasets import DATASETS, DatasetDefinition, extract_records, resolve_dataset_key
from predsync.services.fetcher import RegistryLeasedFetch, RemoteFetcher, build_strategy
from predsync.services.leases import LeaseManager
from predsync.services.merge import merge_records
from predsync.services.notifications import scan_records
from predsync.services.ops_alerts import FailureAlerter
from predsync.services.retry import RetryCoordinator
from predsync.services.upstream_health import UpstreamHealth

logger = logging.getLogger(__name__)

SyncStatus = Literal["updated", "no_data", "stale", "failed"]

ALL_DATASETS = "all"


@dataclass(frozen=True)
class SyncOutcome:
    dataset: str
    status: SyncStatus
    started_at: datetime
    records: int = 0
    notifications: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "dataset": self.dataset,
            "status": self.status,
            "success": self.success,
            "started_at": to_iso_z(self.started_at),
            "records": self.records,
            "notifications": self.notifications,
            "error": self.error,
        }


class SyncEngine:
    def __init__(
        self,
        *,
        fetcher: RemoteFetcher | None = None,
        leases: LeaseManager | None = None,
        cache: CacheStore | None = None,
        retry: RetryCoordinator | None = None,
        alerter: FailureAlerter | None = None,
        clock: Clock = utc_now,
        datasets: Iterable[str] | None = None,
        enabled: bool | None = None,
    ) -> None:
        settings = get_settings()
        self._clock = clock
        if fetcher is None:
            if leases is None and settings.fetch_strategy == "registry":
                leases = LeaseManager(clock=clock)
            strategy = RegistryLeasedFetch(leases) if leases is not None else build_strategy()
            fetcher = RemoteFetcher(strategy, clock=clock)
        elif leases is None and isinstance(fetcher.strategy, RegistryLeasedFetch):
            leases = fetcher.strategy.leases

        self.fetcher = fetcher
        self.leases = leases
        self.cache = cache or CacheStore(DATASETS, clock=clock)
        self.retry = retry or RetryCoordinator()
        self.alerter = alerter or FailureAlerter()
        self.enabled = settings.polling_enabled if enabled is None else enabled
        self.dataset_keys = self._configured_datasets(
            datasets if datasets is not None else settings.sync_datasets_list
        )
        self._last_outcomes: dict[str, SyncOutcome] = {}

    @staticmethod
    def _configured_datasets(raw_keys: Iterable[str]) -> list[str]:
        keys: list[str] = []
        for raw in raw_keys:
            try:
                key = resolve_dataset_key(raw)
            except ValueError:
                logger.warning("Ignoring unknown dataset in configuration", extra={"dataset": raw})
                continue
            if key not in keys:
                keys.append(key)
        return keys

    # ── pipeline ─────────────────────────────────────────────

    async def sync_dataset(self, dataset: str) -> SyncOutcome:
        definition = DATASETS[resolve_dataset_key(dataset)]
        started_at = self._clock()
        logger.info("Updating dataset", extra={"dataset": definition.key})
        try:
            records = await self._collect(definition)
        except SyncError as exc:
            return await self._fail(definition, started_at, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error in dataset pipeline", extra={"dataset": definition.key})
            return await self._fail(definition, started_at, f"{type(exc).__name__}: {exc}")

        notifications = scan_records(records, definition.notification_kind) if definition.notification_kind else []
        written = self.cache.replace(
            definition.key,
            records,
            notifications=notifications,
            cycle_started_at=started_at,
        )
        if not written:
            status: SyncStatus = "stale"
        elif not records:
            status = "no_data"
        else:
            status = "updated"

        outcome = SyncOutcome(
            dataset=definition.key,
            status=status,
            started_at=started_at,
            records=len(records),
            notifications=len(notifications),
        )
        self._last_outcomes[definition.key] = outcome
        self.alerter.reset()
        logger.info(
            "Data sync event",
            extra={
                "dataset": definition.key,
                "success": True,
                "status": status,
                "records": len(records),
                "notifications": len(notifications),
            },
        )
        return outcome

    async def _collect(self, definition: DatasetDefinition) -> list[dict[str, Any]]:
        if definition.secondary_url_key is None:
            result = await self.fetcher.fetch(definition.primary_url_key)
            return self._records_from(result)

        primary_result, secondary_result = await asyncio.gather(
            self.fetcher.fetch(definition.primary_url_key),
            self.fetcher.fetch(definition.secondary_url_key),
        )
        primary = self._records_from(primary_result)
        logger.info(
            "Fetched primary records",
            extra={"dataset": definition.key, "url_key": definition.primary_url_key, "records": len(primary)},
        )
        try:
            secondary = self._records_from(secondary_result)
        except FetchFailed as exc:
            raise MergeIncomplete(
                definition.key,
                f"{definition.secondary_url_key} unavailable: {exc.reason}",
            ) from exc

        merged = merge_records(primary, secondary)
        logger.info(
            "Merged records",
            extra={"dataset": definition.key, "primary": len(primary), "secondary": len(secondary), "merged": len(merged)},
        )
        return merged

    @staticmethod
    def _records_from(result: FetchResult) -> list[dict[str, Any]]:
        if not result.success:
            raise FetchFailed(result.url_key, result.error or "fetch failed")
        try:
            return extract_records(result.url_key, result.payload or {})
        except FetchFailed:
            UpstreamHealth.record_failure()
            raise

    async def _fail(self, definition: DatasetDefinition, started_at: datetime, error: str) -> SyncOutcome:
        outcome = SyncOutcome(dataset=definition.key, status="failed", started_at=started_at, error=error)
        self._last_outcomes[definition.key] = outcome
        failures = UpstreamHealth.consecutive_failures()
        logger.warning(
            "Data sync event",
            extra={
                "dataset": definition.key,
                "success": False,
                "status": "failed",
                "error": error,
                "consecutive_failures": failures,
            },
        )
        await self.alerter.maybe_alert(
            consecutive_failures=failures,
            dataset=definition.key,
            error=error,
            last_updates=self.cache.last_updates(),
            now_utc=self._clock(),
        )
        return outcome

    # ── cycles ───────────────────────────────────────────────

    async def run_cycle(self, datasets: Iterable[str] | None = None) -> list[SyncOutcome]:
        keys = self._configured_datasets(datasets) if datasets is not None else list(self.dataset_keys)
        logger.info("Data polling cycle started", extra={"datasets": keys})
        outcomes = await asyncio.gather(
            *(self.retry.run_with_retry(partial(self.sync_dataset, key), label=key) for key in keys)
        )
        logger.info(
            "Data polling cycle completed",
            extra={"outcomes": {outcome.dataset: outcome.status for outcome in outcomes}},
        )
        return list(outcomes)

    async def renew_lease(self) -> bool:
        if self.leases is None:
            return True
        return await self.leases.renew()

    async def initial_cycle(self) -> list[SyncOutcome]:
        logger.info("Initial data fetch")
        if self.leases is not None and not await self.leases.renew():
            logger.error("Failed to get signed URLs on startup; cycle will retry")
        return await self.run_cycle()

    # ── downstream interface ─────────────────────────────────

    def get_cached_data(self, dataset: str) -> dict[str, Any]:
        snapshot = self.cache.read(resolve_dataset_key(dataset))
        return {
            "data": snapshot.records_as_dicts(),
            "last_update": snapshot.last_updated,
            "notifications": [notification.to_dict() for notification in snapshot.notifications],
        }

    def clear_notifications(self, dataset: str) -> None:
        self.cache.clear_notifications(resolve_dataset_key(dataset))

    def get_status(self) -> dict[str, Any]:
        lease = self.leases.current if self.leases is not None else None
        return {
            "enabled": self.enabled,
            "strategy": self.fetcher.strategy.name,
            "datasets": list(self.dataset_keys),
            "last_updates": {key: self.cache.read(key).last_updated for key in self.cache.keys()},
            "consecutive_failures": UpstreamHealth.consecutive_failures(),
            "lease_valid": self.leases.is_valid() if self.leases is not None else None,
            "lease_expires_at": lease.expires_at if lease is not None else None,
            "cache_status": self.cache.summary(),
            "last_outcomes": {key: outcome.to_dict() for key, outcome in self._last_outcomes.items()},
        }

    async def force_refresh(self, target: str = ALL_DATASETS) -> list[SyncOutcome]:
        if (target or "").strip().lower() == ALL_DATASETS:
            keys = list(self.dataset_keys)
        else:
            keys = [resolve_dataset_key(target)]
        logger.info("Forced refresh requested", extra={"target": target, "datasets": keys})
        return await self.run_cycle(keys)
