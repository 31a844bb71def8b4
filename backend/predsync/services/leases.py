import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType

from predsync.adapters.upstream.errors import LeaseUnavailable
from predsync.adapters.upstream.registry_client import RegistryClient
from predsync.core.clock import Clock, to_iso_z, utc_now
from predsync.core.config import get_settings
from predsync.services.upstream_health import UpstreamHealth

logger = logging.getLogger(__name__)

MIN_LEASE_MINUTES = 1


@dataclass(frozen=True)
class Lease:
    urls: Mapping[str, str]
    obtained_at: datetime
    expires_at: datetime
    license_id: str | None = None
    advertised_minutes: int | None = field(default=None, compare=False)

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at

    def url_for(self, url_key: str) -> str | None:
        return self.urls.get(url_key)


def effective_lease_minutes(advertised: int | None, default_minutes: int, safety_margin: int) -> int:
    duration = advertised if advertised is not None else default_minutes
    return max(MIN_LEASE_MINUTES, duration - max(0, safety_margin))


class LeaseManager:
    """Owns the current signed-URL lease and renews it against the registry.

    The lease is replaced by reference, never mutated, so fetches already
    holding the previous lease keep working while a renewal is in flight.
    """

    def __init__(
        self,
        registry: RegistryClient | None = None,
        *,
        clock: Clock = utc_now,
        safety_margin_minutes: int | None = None,
        default_duration_minutes: int | None = None,
    ) -> None:
        settings = get_settings()
        self._registry = registry or RegistryClient()
        self._clock = clock
        self._safety_margin = (
            safety_margin_minutes
            if safety_margin_minutes is not None
            else settings.lease_safety_margin_minutes
        )
        self._default_duration = (
            default_duration_minutes
            if default_duration_minutes is not None
            else settings.lease_default_duration_minutes
        )
        self._lease: Lease | None = None
        self._renew_lock = asyncio.Lock()
        self._last_error: str | None = None
        self._attempts = 0
        self._last_attempt_ok = False

    @property
    def current(self) -> Lease | None:
        return self._lease

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def is_valid(self) -> bool:
        lease = self._lease
        return lease is not None and lease.is_valid(self._clock())

    async def ensure_valid(self) -> bool:
        if self.is_valid():
            return True
        attempts_seen = self._attempts
        async with self._renew_lock:
            # Another caller may have renewed while we waited.
            if self.is_valid():
                return True
            # An attempt that finished while we waited answers for us too, failed or not.
            if self._attempts != attempts_seen:
                return self._last_attempt_ok
            return await self._renew_locked()

    async def renew(self) -> bool:
        async with self._renew_lock:
            return await self._renew_locked()

    async def _renew_locked(self) -> bool:
        previous = self._lease
        try:
            result = await self._registry.fetch_endpoints()
        except LeaseUnavailable as exc:
            failures = UpstreamHealth.record_failure()
            self._last_error = exc.reason
            self._attempts += 1
            self._last_attempt_ok = False
            logger.error(
                "Failed to refresh signed URLs",
                extra={
                    "error": exc.reason,
                    "consecutive_failures": failures,
                    "previous_lease_expires_at": to_iso_z(previous.expires_at) if previous else None,
                },
            )
            return False

        now = self._clock()
        minutes = effective_lease_minutes(
            result.expires_in_minutes,
            self._default_duration,
            self._safety_margin,
        )
        self._lease = Lease(
            urls=MappingProxyType(dict(result.endpoints)),
            obtained_at=now,
            expires_at=now + timedelta(minutes=minutes),
            license_id=result.license_id,
            advertised_minutes=result.expires_in_minutes,
        )
        self._last_error = None
        self._attempts += 1
        self._last_attempt_ok = True
        UpstreamHealth.record_success()
        logger.info(
            "Signed URLs refreshed",
            extra={
                "advertised_minutes": result.expires_in_minutes,
                "effective_minutes": minutes,
                "expires_at": to_iso_z(self._lease.expires_at),
                "url_keys": sorted(result.endpoints),
                "license_id": result.license_id,
            },
        )
        return True
