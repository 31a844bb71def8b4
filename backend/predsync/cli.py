from __future__ import annotations

import argparse
import asyncio
import json

from predsync.adapters.upstream.errors import UnknownDataset
from predsync.core.clock import to_iso_z
from predsync.core.logging import setup_logging
from predsync.services.sync_engine import ALL_DATASETS, SyncEngine


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Predsync operational CLI")
    subparsers = parser.add_subparsers(dest="command")

    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Run one synchronization pass and print the outcome of each dataset",
    )
    refresh_parser.add_argument(
        "--dataset",
        default=ALL_DATASETS,
        help="Dataset key or alias to refresh, or 'all' for every configured dataset",
    )

    subparsers.add_parser("lease", help="Request a fresh set of signed URLs and print the lease expiry")

    return parser


async def _run_refresh(dataset: str) -> int:
    engine = SyncEngine()
    if dataset.strip().lower() == ALL_DATASETS:
        keys = list(engine.dataset_keys)
    else:
        keys = [dataset]
    try:
        outcomes = [await engine.sync_dataset(key) for key in keys]
    except UnknownDataset as exc:
        print(json.dumps({"error": str(exc)}, indent=2))
        return 2
    print(json.dumps([outcome.to_dict() for outcome in outcomes], indent=2, sort_keys=True, default=str))
    return 0 if all(outcome.success for outcome in outcomes) else 1


async def _run_lease() -> int:
    engine = SyncEngine()
    if engine.leases is None:
        print(json.dumps({"strategy": engine.fetcher.strategy.name, "lease": None}, indent=2))
        return 0

    renewed = await engine.leases.renew()
    lease = engine.leases.current
    summary = {
        "strategy": engine.fetcher.strategy.name,
        "renewed": renewed,
        "expires_at": to_iso_z(lease.expires_at) if lease is not None else None,
        "url_keys": sorted(lease.urls) if lease is not None else [],
        "error": engine.leases.last_error,
    }
    print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    return 0 if renewed else 1


def main() -> int:
    parser = _build_arg_parser()
    args = parser.parse_args()
    if args.command in {"refresh", "lease"}:
        setup_logging()
    if args.command == "refresh":
        return asyncio.run(_run_refresh(args.dataset))
    if args.command == "lease":
        return asyncio.run(_run_lease())

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
