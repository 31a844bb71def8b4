"""In-memory snapshot store for synchronized datasets.

Each dataset key maps to an immutable Snapshot. Writers build a complete new
Snapshot and swap the reference under a lock; readers take the reference
without locking and therefore see either the old or the new snapshot whole.
Failed cycles never call ``replace``, so the last good snapshot stays served.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace as dc_replace
from datetime import datetime
from types import MappingProxyType
from typing import Any

from predsync.core.clock import Clock, to_iso_z, utc_now
from predsync.services.notifications import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    records: tuple[Mapping[str, Any], ...] = ()
    last_updated: datetime | None = None
    notifications: tuple[Notification, ...] = ()
    version: int = 0
    # Start of the cycle that produced the records; orders overlapping writers.
    source_started_at: datetime | None = None

    @property
    def populated(self) -> bool:
        return self.last_updated is not None

    def records_as_dicts(self) -> list[dict[str, Any]]:
        return [dict(record) for record in self.records]


EMPTY_SNAPSHOT = Snapshot()


class CacheStore:
    def __init__(self, keys: Iterable[str] = (), *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._write_lock = threading.Lock()
        self._snapshots: dict[str, Snapshot] = {key: EMPTY_SNAPSHOT for key in keys}
        self._version = 0

    def keys(self) -> list[str]:
        return list(self._snapshots)

    def read(self, key: str) -> Snapshot:
        return self._snapshots.get(key, EMPTY_SNAPSHOT)

    def replace(
        self,
        key: str,
        records: Iterable[Mapping[str, Any]],
        *,
        notifications: Iterable[Notification] = (),
        cycle_started_at: datetime | None = None,
    ) -> bool:
        """Swap in a new snapshot for *key*.

        Returns False (and leaves the entry untouched) when the cached snapshot
        came from a cycle that started at or after *cycle_started_at*. Writes
        without a cycle start always apply and are stamped with the current time.
        """
        frozen_records = tuple(MappingProxyType(dict(record)) for record in records)
        frozen_notifications = tuple(notifications)
        with self._write_lock:
            current = self._snapshots.get(key, EMPTY_SNAPSHOT)
            now = self._clock()
            source_started_at = cycle_started_at if cycle_started_at is not None else now
            if (
                cycle_started_at is not None
                and current.source_started_at is not None
                and cycle_started_at <= current.source_started_at
            ):
                logger.warning(
                    "Discarding stale cache write",
                    extra={
                        "dataset": key,
                        "cycle_started_at": to_iso_z(cycle_started_at),
                        "cached_source_started_at": to_iso_z(current.source_started_at),
                        "cached_last_updated": to_iso_z(current.last_updated),
                    },
                )
                return False
            self._version += 1
            self._snapshots[key] = Snapshot(
                records=frozen_records,
                last_updated=now,
                notifications=frozen_notifications,
                version=self._version,
                source_started_at=source_started_at,
            )
        return True

    def clear_notifications(self, key: str) -> None:
        with self._write_lock:
            current = self._snapshots.get(key, EMPTY_SNAPSHOT)
            self._snapshots[key] = dc_replace(current, notifications=())
        logger.info("Cleared notifications", extra={"dataset": key})

    def last_updates(self) -> dict[str, str | None]:
        return {key: to_iso_z(snapshot.last_updated) for key, snapshot in dict(self._snapshots).items()}

    def summary(self) -> dict[str, dict[str, Any]]:
        return {
            key: {
                "populated": snapshot.populated,
                "records": len(snapshot.records),
                "notifications": len(snapshot.notifications),
                "version": snapshot.version,
            }
            for key, snapshot in dict(self._snapshots).items()
        }
