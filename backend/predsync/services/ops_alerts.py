import logging
from datetime import datetime
from typing import Any

import httpx

from predsync.core.clock import to_iso_z, utc_now
from predsync.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def build_failure_alert_embed(
    *,
    consecutive_failures: int,
    dataset: str,
    error: str | None,
    last_updates: dict[str, str | None],
    now_utc: datetime,
) -> dict:
    freshness = "\n".join(f"{key}: {value or 'never'}" for key, value in sorted(last_updates.items())) or "None"
    return {
        "title": "PREDSYNC UPSTREAM FAILURES",
        "color": 0xE74C3C,
        "fields": [
            {"name": "Consecutive Failures", "value": str(consecutive_failures), "inline": True},
            {"name": "Dataset", "value": dataset, "inline": True},
            {"name": "Last Error", "value": (error or "unknown")[:1000], "inline": False},
            {"name": "Last Successful Updates", "value": freshness, "inline": False},
        ],
        "footer": {"text": "Cached data is still being served"},
        "timestamp": to_iso_z(now_utc),
    }


async def send_ops_alert(webhook_url: str, embed: dict) -> tuple[bool, int | None]:
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(webhook_url, json={"embeds": [embed]})
            return response.is_success, response.status_code
    except Exception:
        logger.exception("Failed to send ops alert webhook")
        return False, None


class FailureAlerter:
    """Posts one alert when upstream failures reach the threshold.

    The latch re-arms after the next successful pipeline.
    """

    def __init__(self, *, webhook_url: str | None = None, threshold: int | None = None) -> None:
        self.webhook_url = (webhook_url if webhook_url is not None else settings.ops_alert_webhook_url).strip()
        self.threshold = max(1, threshold if threshold is not None else settings.ops_alert_failure_threshold)
        self._alerted = False

    @property
    def alerted(self) -> bool:
        return self._alerted

    def reset(self) -> None:
        self._alerted = False

    async def maybe_alert(
        self,
        *,
        consecutive_failures: int,
        dataset: str,
        error: str | None,
        last_updates: dict[str, str | None],
        now_utc: datetime | None = None,
    ) -> dict[str, Any]:
        if consecutive_failures < self.threshold:
            return {"sent": False, "reason": "below_threshold"}
        if self._alerted:
            return {"sent": False, "reason": "already_alerted"}
        if not self.webhook_url:
            return {"sent": False, "reason": "webhook_not_configured"}

        embed = build_failure_alert_embed(
            consecutive_failures=consecutive_failures,
            dataset=dataset,
            error=error,
            last_updates=last_updates,
            now_utc=now_utc or utc_now(),
        )
        sent_ok, status_code = await send_ops_alert(self.webhook_url, embed)
        if not sent_ok:
            return {"sent": False, "reason": "send_failed", "status_code": status_code}

        self._alerted = True
        logger.warning(
            "Ops failure alert sent",
            extra={"consecutive_failures": consecutive_failures, "dataset": dataset},
        )
        return {"sent": True, "status_code": status_code}
