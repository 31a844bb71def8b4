"""Upstream adapters: endpoint registry client, fetch result types, errors."""

from predsync.adapters.upstream.base import FetchResult, UrlStrategy
from predsync.adapters.upstream.errors import (
    FetchFailed,
    LeaseUnavailable,
    MergeIncomplete,
    NoLease,
    SyncError,
    UnknownDataset,
)
from predsync.adapters.upstream.registry_client import RegistryClient, RegistryEndpoints

__all__ = [
    "FetchFailed",
    "FetchResult",
    "LeaseUnavailable",
    "MergeIncomplete",
    "NoLease",
    "RegistryClient",
    "RegistryEndpoints",
    "SyncError",
    "UnknownDataset",
    "UrlStrategy",
]
