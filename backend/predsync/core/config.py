from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_OPS_TOKENS = {"", "dev-ops-token", "change-me-ops-token"}

FETCH_STRATEGIES = ("registry", "direct")


def parse_csv(raw: str) -> list[str]:
    return [v.strip() for v in raw.split(",") if v.strip()]


def parse_endpoint_paths(raw: str) -> dict[str, str]:
    """Parse ``url_key=path`` pairs separated by commas."""
    paths: dict[str, str] = {}
    for item in parse_csv(raw):
        key, sep, path = item.partition("=")
        key = key.strip()
        if not sep or not key or not path.strip():
            continue
        paths[key] = path.strip()
    return paths


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @model_validator(mode="after")
    def _check_production_settings(self) -> "Settings":
        if self.app_env == "production" and self.ops_internal_token in DEFAULT_OPS_TOKENS:
            raise ValueError(
                "OPS_INTERNAL_TOKEN must be set to a secure internal token in production."
            )
        if self.fetch_strategy not in FETCH_STRATEGIES:
            raise ValueError(
                f"FETCH_STRATEGY must be one of {', '.join(FETCH_STRATEGIES)}; got {self.fetch_strategy!r}"
            )
        return self

    app_env: str = "development"
    app_name: str = "Predsync API"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    cors_origins: str = "http://localhost:3000"
    ops_internal_token: str = "dev-ops-token"

    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = 0.1

    polling_enabled: bool = False
    fetch_strategy: str = "registry"
    registry_base_url: str = "http://localhost:8080"
    registry_license_id: str = ""
    direct_base_url: str = ""
    direct_endpoint_paths: str = (
        "predictions_daily=/predictions/daily,"
        "opportunities_daily=/opportunities/daily,"
        "predictions_15min=/predictions/15min,"
        "tradebook_daily=/tradebook/daily"
    )
    fetch_timeout_seconds: float = 30.0

    max_retry_attempts: int = 3
    retry_delay_seconds: float = 60.0

    lease_safety_margin_minutes: int = 5
    lease_default_duration_minutes: int = 60
    lease_renewal_interval_minutes: int = 55

    sync_cycle_minutes: str = "1,16,31,46"
    sync_datasets: str = "daily_predictions,intraday_predictions,tradebook"
    startup_delay_seconds: float = 5.0
    scheduler_misfire_grace_seconds: int = 120

    ops_alert_webhook_url: str = ""
    ops_alert_failure_threshold: int = 3

    @property
    def cors_origins_list(self) -> list[str]:
        return parse_csv(self.cors_origins)

    @property
    def sync_cycle_minutes_list(self) -> list[int]:
        minutes: list[int] = []
        for value in parse_csv(self.sync_cycle_minutes):
            try:
                minute = int(value)
            except ValueError:
                continue
            if 0 <= minute <= 59 and minute not in minutes:
                minutes.append(minute)
        return sorted(minutes) or [1, 16, 31, 46]

    @property
    def sync_datasets_list(self) -> list[str]:
        return parse_csv(self.sync_datasets)

    @property
    def direct_endpoint_paths_map(self) -> dict[str, str]:
        return parse_endpoint_paths(self.direct_endpoint_paths)

    @property
    def registry_endpoints_url(self) -> str:
        base = self.registry_base_url.rstrip("/")
        return f"{base}/api/v1/client/{self.registry_license_id}/endpoints"


@lru_cache
def get_settings() -> Settings:
    return Settings()
