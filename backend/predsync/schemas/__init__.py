from predsync.schemas.sync import (
    ClearNotificationsRequest,
    ClearNotificationsResponse,
    DatasetOut,
    NotificationOut,
    RefreshRequest,
    RefreshResponse,
    SyncOutcomeOut,
    SyncStatusOut,
)

__all__ = [
    "ClearNotificationsRequest",
    "ClearNotificationsResponse",
    "DatasetOut",
    "NotificationOut",
    "RefreshRequest",
    "RefreshResponse",
    "SyncOutcomeOut",
    "SyncStatusOut",
]
