"""Typed errors for the upstream synchronization pipeline."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for failures inside one dataset pipeline.

    Attributes:
        source: Logical origin of the failure (url key, dataset key or "registry").
        reason: Human-readable error description.
    """

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"[{source}] {reason}")


class LeaseUnavailable(SyncError):
    """The endpoint registry was unreachable or returned a malformed lease."""


class FetchFailed(SyncError):
    """Timeout, transport error, non-2xx status or malformed body."""


class NoLease(FetchFailed):
    """No usable URL is known for the requested url key."""


class MergeIncomplete(SyncError):
    """A companion dataset required for a join was unavailable this cycle."""


class UnknownDataset(ValueError):
    """Raised by the engine's public interface for an unrecognized dataset key."""

    def __init__(self, dataset: str) -> None:
        self.dataset = dataset
        super().__init__(f"Unknown dataset: {dataset}")
