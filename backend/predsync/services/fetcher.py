import logging
from collections.abc import Mapping

import httpx

from predsync.adapters.upstream.base import FetchResult, UrlStrategy
from predsync.adapters.upstream.errors import FetchFailed, NoLease
from predsync.core.clock import Clock, utc_now
from predsync.core.config import get_settings
from predsync.core.logging import redact_url
from predsync.services.leases import LeaseManager
from predsync.services.upstream_health import UpstreamHealth

logger = logging.getLogger(__name__)


class RegistryLeasedFetch:
    """Resolves url keys through the signed-URL lease.

    A failed renewal does not stop resolution: an expired lease still yields
    its URL and the upstream rejects it explicitly.
    """

    name = "registry"

    def __init__(self, leases: LeaseManager) -> None:
        self.leases = leases

    async def resolve(self, url_key: str) -> str:
        await self.leases.ensure_valid()
        lease = self.leases.current
        if lease is None:
            raise NoLease(url_key, "No signed URLs available")
        url = lease.url_for(url_key)
        if not url:
            raise NoLease(url_key, f"No signed URL found for {url_key}")
        return url


class DirectEndpointFetch:
    """Resolves url keys against flat dataset endpoints."""

    name = "direct"

    def __init__(self, base_url: str, paths: Mapping[str, str]) -> None:
        self.base_url = base_url.rstrip("/")
        self.paths = dict(paths)

    async def resolve(self, url_key: str) -> str:
        path = self.paths.get(url_key)
        if not path:
            raise NoLease(url_key, f"No direct endpoint configured for {url_key}")
        if path.startswith(("http://", "https://")):
            return path
        if not self.base_url:
            raise NoLease(url_key, "DIRECT_BASE_URL is not configured")
        return f"{self.base_url}/{path.lstrip('/')}"


class RemoteFetcher:
    """Performs one bounded-timeout GET per url key and normalizes the outcome."""

    def __init__(
        self,
        strategy: UrlStrategy,
        *,
        timeout: float | None = None,
        clock: Clock = utc_now,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.strategy = strategy
        self._timeout = timeout if timeout is not None else settings.fetch_timeout_seconds
        self._clock = clock
        self._transport = transport

    async def fetch(self, url_key: str) -> FetchResult:
        url: str | None = None
        try:
            url = await self.strategy.resolve(url_key)
            status_code, payload = await self._get_json(url_key, url)
        except FetchFailed as exc:
            failures = UpstreamHealth.record_failure()
            logger.error(
                "Failed to fetch dataset",
                extra={
                    "url_key": url_key,
                    "strategy": self.strategy.name,
                    "url": redact_url(url),
                    "error": exc.reason,
                    "consecutive_failures": failures,
                },
            )
            return FetchResult(url_key=url_key, fetched_at=self._clock(), error=exc.reason)

        UpstreamHealth.record_success()
        return FetchResult(
            url_key=url_key,
            fetched_at=self._clock(),
            payload=payload,
            status_code=status_code,
        )

    async def _get_json(self, url_key: str, url: str) -> tuple[int, dict]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as exc:
            raise FetchFailed(url_key, f"Timeout after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise FetchFailed(url_key, str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            raise FetchFailed(url_key, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchFailed(url_key, "Response body is not JSON") from exc
        if not isinstance(payload, dict):
            raise FetchFailed(url_key, f"Unexpected payload type {type(payload).__name__}")
        return response.status_code, payload


def build_strategy(leases: LeaseManager | None = None) -> UrlStrategy:
    settings = get_settings()
    if settings.fetch_strategy == "direct":
        return DirectEndpointFetch(settings.direct_base_url, settings.direct_endpoint_paths_map)
    return RegistryLeasedFetch(leases or LeaseManager())
