from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

EXCLUDED_FIELDS = frozenset({"used", "active", "status"})
IDENTITY_FIELDS = ("symbol", "id")


@dataclass(frozen=True)
class Notification:
    dataset: str
    identity: Any
    field: str
    record: Mapping[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "dataset": self.dataset,
            "identity": self.identity,
            "field": self.field,
            "record": dict(self.record),
        }


def record_identity(record: Mapping[str, Any]) -> Any:
    for name in IDENTITY_FIELDS:
        value = record.get(name)
        if value is not None:
            return value
    return None


def scan_records(records: Iterable[Mapping[str, Any]], dataset_kind: str) -> list[Notification]:
    """Emit one notification per boolean ``True`` field of each record.

    This is a full rescan: values that were already true last cycle trigger
    again until a client clears them.
    """
    notifications: list[Notification] = []
    for record in records:
        frozen: Mapping[str, Any] | None = None
        for field_name, value in record.items():
            if field_name in EXCLUDED_FIELDS or value is not True:
                continue
            if frozen is None:
                frozen = MappingProxyType(dict(record))
            notifications.append(
                Notification(
                    dataset=dataset_kind,
                    identity=record_identity(record),
                    field=field_name,
                    record=frozen,
                )
            )
    return notifications
