# rental_lifecycle/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./rental_lifecycle.db"
    sql_echo: bool = False

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Bookings ----
    booking_days_per_month: int = 30
    reject_past_bookings: bool = True
    auto_create_contract_on_confirm: bool = True

    # ---- Payment schedules ----
    utilities_rate: float = 0.10
    default_schedule_months: int = 12

    # ---- Notifications ----
    notifications_enabled: bool = True
    notification_backend: str = "inline"  # inline|celery

    # ---- Auth (trusted header set by the upstream auth layer) ----
    actor_header: str = "X-User-Id"

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    contract_expiry_hour_utc: int = 2

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

        if not 0 <= self.utilities_rate < 1:
            raise ValueError("utilities_rate must be within [0, 1)")

        if (self.notification_backend or "").strip().lower() not in ("inline", "celery"):
            raise ValueError("notification_backend must be 'inline' or 'celery'")


settings = Settings()
