import logging
from dataclasses import dataclass
from typing import Any

from predsync.adapters.upstream.errors import FetchFailed, UnknownDataset

logger = logging.getLogger(__name__)

DAILY_PREDICTIONS = "daily_predictions"
INTRADAY_PREDICTIONS = "intraday_predictions"
TRADEBOOK = "tradebook"


@dataclass(frozen=True)
class DatasetDefinition:
    key: str
    primary_url_key: str
    secondary_url_key: str | None = None
    notification_kind: str | None = None

    @property
    def url_keys(self) -> tuple[str, ...]:
        if self.secondary_url_key is None:
            return (self.primary_url_key,)
        return (self.primary_url_key, self.secondary_url_key)


DATASETS: dict[str, DatasetDefinition] = {
    DAILY_PREDICTIONS: DatasetDefinition(
        key=DAILY_PREDICTIONS,
        primary_url_key="predictions_daily",
        secondary_url_key="opportunities_daily",
        notification_kind="daily",
    ),
    INTRADAY_PREDICTIONS: DatasetDefinition(
        key=INTRADAY_PREDICTIONS,
        primary_url_key="predictions_15min",
        notification_kind="intraday",
    ),
    TRADEBOOK: DatasetDefinition(
        key=TRADEBOOK,
        primary_url_key="tradebook_daily",
    ),
}

DATASET_ALIASES: dict[str, str] = {
    "daily": DAILY_PREDICTIONS,
    "dailyPredictions": DAILY_PREDICTIONS,
    "intraday": INTRADAY_PREDICTIONS,
    "intradayPredictions": INTRADAY_PREDICTIONS,
}


def resolve_dataset_key(raw: str) -> str:
    key = (raw or "").strip()
    key = DATASET_ALIASES.get(key, key)
    if key not in DATASETS:
        raise UnknownDataset(raw)
    return key


# (substring of prediction_type, target column); first match wins.
_PREDICTION_TYPE_COLUMNS = (
    ("high", "predicted_high"),
    ("low", "predicted_low"),
    ("close", "predicted_close"),
    ("trend", "predicted_trend"),
    ("strength", "predicted_strength"),
)

_STRENGTH_EXTRAS = (
    "predicted_range",
    "predicted_midpoint",
    "predicted_onefourth",
    "predicted_threefourth",
    "predicted_trading_range",
    "momentum",
    "predicted_high_touched",
    "predicted_low_touched",
)


def flatten_symbol_predictions(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten ``data: [{symbol, predictions: [...]}, ...]`` into one row per symbol."""
    rows: list[dict[str, Any]] = []
    for entry in payload.get("data") or []:
        if not isinstance(entry, dict):
            continue
        row: dict[str, Any] = {
            "prediction_time": payload.get("prediction_time"),
            "target_time": payload.get("target_time"),
            "timeframe": payload.get("timeframe"),
            "symbol": entry.get("symbol"),
            "description": entry.get("description"),
        }
        for prediction in entry.get("predictions") or []:
            if not isinstance(prediction, dict):
                continue
            prediction_type = str(prediction.get("prediction_type") or "")
            for marker, column in _PREDICTION_TYPE_COLUMNS:
                if marker not in prediction_type:
                    continue
                row[column] = prediction.get("predicted_value")
                if marker == "strength":
                    for extra in _STRENGTH_EXTRAS:
                        if extra in prediction:
                            row[extra] = prediction[extra]
                break
        rows.append(row)
    return rows


def extract_records(url_key: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Pull the record list out of a dataset payload.

    An absent record list is empty (NoData); a present but mistyped one is
    malformed and raises FetchFailed.
    """
    if "records" in payload and payload["records"] is not None:
        records = payload["records"]
        if not isinstance(records, list):
            raise FetchFailed(url_key, "'records' is not a list")
        kept = [dict(record) for record in records if isinstance(record, dict)]
        if len(kept) != len(records):
            logger.warning(
                "Dropped malformed records",
                extra={"url_key": url_key, "dropped": len(records) - len(kept), "kept": len(kept)},
            )
        return kept

    if "data" in payload and payload["data"] is not None:
        if not isinstance(payload["data"], list):
            raise FetchFailed(url_key, "'data' is not a list")
        return flatten_symbol_predictions(payload)

    return []
