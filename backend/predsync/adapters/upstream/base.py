"""Protocol and shared types for upstream fetch strategies."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of a single GET against an upstream dataset URL."""

    url_key: str
    fetched_at: datetime
    payload: dict[str, Any] | None = None
    error: str | None = None
    status_code: int | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.payload is not None


@runtime_checkable
class UrlStrategy(Protocol):
    """Resolves a logical url key to the concrete URL to GET."""

    name: str

    async def resolve(self, url_key: str) -> str:
        """Return the URL for *url_key*.

        Raises NoLease when no usable URL is known.
        """
        ...
