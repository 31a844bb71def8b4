"""Endpoint registry client: exchanges a license id for a set of signed URLs."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from predsync.adapters.upstream.errors import LeaseUnavailable
from predsync.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistryEndpoints:
    """A successful registry response."""

    endpoints: dict[str, str]
    expires_in_minutes: int | None
    license_id: str | None


def _parse_expires_in(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def parse_registry_payload(payload: object) -> RegistryEndpoints:
    """Validate a registry payload.

    Raises LeaseUnavailable when the payload does not describe a usable lease.
    """
    if not isinstance(payload, dict):
        raise LeaseUnavailable("registry", f"Unexpected payload type {type(payload).__name__}")
    if payload.get("status") != "success":
        raise LeaseUnavailable("registry", f"Registry status {payload.get('status')!r}")

    raw_endpoints = payload.get("endpoints")
    if not isinstance(raw_endpoints, dict):
        raise LeaseUnavailable("registry", "Registry payload has no endpoints mapping")
    endpoints = {
        str(key): value
        for key, value in raw_endpoints.items()
        if isinstance(value, str) and value.strip()
    }
    if not endpoints:
        raise LeaseUnavailable("registry", "Registry returned no signed URLs")

    client = payload.get("client")
    license_id = client.get("license_id") if isinstance(client, dict) else None
    return RegistryEndpoints(
        endpoints=endpoints,
        expires_in_minutes=_parse_expires_in(payload.get("url_expires_in_minutes")),
        license_id=str(license_id) if license_id is not None else None,
    )


class RegistryClient:
    """Fetches signed dataset URLs from the upstream endpoint registry.

    Configuration is read from the application Settings object:
    - ``registry_base_url`` and ``registry_license_id``: build the endpoint URL.
    - ``fetch_timeout_seconds``: per-request timeout.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._url: str = url or settings.registry_endpoints_url
        self._timeout: float = timeout if timeout is not None else settings.fetch_timeout_seconds
        self._transport = transport

    async def fetch_endpoints(self) -> RegistryEndpoints:
        """Call the registry once.

        Raises LeaseUnavailable on network/HTTP errors or a malformed body.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._url, headers={"Accept": "application/json"})
        except httpx.TimeoutException as exc:
            raise LeaseUnavailable("registry", f"Timeout after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise LeaseUnavailable("registry", str(exc) or type(exc).__name__) from exc

        if not response.is_success:
            raise LeaseUnavailable("registry", f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise LeaseUnavailable("registry", "Registry response is not JSON") from exc

        result = parse_registry_payload(payload)
        logger.debug(
            "Registry endpoints fetched",
            extra={"endpoint_count": len(result.endpoints), "license_id": result.license_id},
        )
        return result
