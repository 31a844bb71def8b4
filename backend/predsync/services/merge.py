from collections.abc import Iterable, Mapping
from typing import Any

Record = dict[str, Any]

JOIN_FIELDS = ("symbol", "target_date")


def join_key(record: Mapping[str, Any]) -> tuple[Any, ...] | None:
    values = tuple(record.get(name) for name in JOIN_FIELDS)
    if any(value is None for value in values):
        return None
    return values


def index_by_join_key(records: Iterable[Mapping[str, Any]]) -> dict[tuple[Any, ...], Mapping[str, Any]]:
    index: dict[tuple[Any, ...], Mapping[str, Any]] = {}
    for record in records:
        key = join_key(record)
        if key is not None:
            # First occurrence wins, matching a linear scan.
            index.setdefault(key, record)
    return index


def merge_records(
    primary: Iterable[Mapping[str, Any]],
    secondary: Iterable[Mapping[str, Any]],
) -> list[Record]:
    """Left-outer join of *primary* with *secondary* on (symbol, target_date).

    Secondary fields overwrite or extend the matching primary. Unmatched
    primaries pass through with exactly their own fields. Output order and
    length follow *primary*.
    """
    index = index_by_join_key(secondary)
    merged: list[Record] = []
    for record in primary:
        key = join_key(record)
        match = index.get(key) if key is not None else None
        if match is None:
            merged.append(dict(record))
        else:
            merged.append({**record, **match})
    return merged
