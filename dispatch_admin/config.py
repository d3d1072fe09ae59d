# dispatch_admin/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = False

    # Backend REST API
    api_base_url: str = "http://localhost:5000"
    api_token: str | None = None  # JWT sent as "Authorization: Bearer <token>"
    api_timeout_seconds: float = 10.0
    api_connect_timeout_seconds: float = 5.0

    # Retries apply to idempotent calls only; create is never retried
    api_max_retries: int = 2
    api_retry_initial_delay: float = 0.5  # seconds, doubles on each retry
    api_retry_max_delay: float = 5.0

    # Unread message badge polling
    unread_poll_interval_seconds: float = 10.0

    # Notifications
    toast_default_duration_ms: int = 3000

    # Change-password form
    password_min_length: int = 6

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []
        required_fields = [
            ("api_token", self.api_token),
        ]

        for field_name, value in required_fields:
            if not value:
                missing.append(field_name)

        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.api_base_url.startswith("http://"):
        warnings.append("prod: api_base_url is not HTTPS (JWT will travel in clear text).")

    if not s.api_token:
        warnings.append("api_token is not set (backend calls will be unauthenticated).")

    if s.unread_poll_interval_seconds < 1:
        warnings.append(
            f"unread_poll_interval_seconds={s.unread_poll_interval_seconds} is below 1s "
            "(badge polling will hammer the backend)."
        )

    if s.api_max_retries > 5:
        warnings.append(f"api_max_retries={s.api_max_retries} is high (slow failure on outages).")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")

settings = Settings()
