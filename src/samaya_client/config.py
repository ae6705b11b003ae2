"""Configuration for the Samaya client core."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiPaths(BaseModel):
    """Path table for backend endpoints, relative to ``api_base_url``."""

    send_otp: str = "/otp/send"
    verify_otp: str = "/otp/verify"
    signup: str = "/signup"
    login: str = "/login"
    logout: str = "/logout"
    refresh_token: str = "/token/refresh"
    user_profile: str = "/user/profile"
    health: str = "/health"
    bookings: str = "/bookings"
    booking_detail: str = "/bookings/{booking_id}"
    booking_cancel: str = "/bookings/{booking_id}"
    payment_status: str = "/bookings/{booking_id}/payment-status"
    content_views: str = "/content/{kind}/{content_id}/views"
    categories: str = "/categories"
    app_version: str = "/app/version"

    def public_paths(self) -> frozenset[str]:
        return frozenset(getattr(self, name).rstrip("/") for name in PUBLIC_ENDPOINTS)


# Endpoints that never carry the session bearer token.
PUBLIC_ENDPOINTS = ("send_otp", "verify_otp", "signup", "login")


class Settings(BaseSettings):
    """Runtime settings loaded from environment."""

    api_base_url: str = "https://api.samayayog.com"
    request_timeout_seconds: float = Field(default=15.0, gt=0)
    environment: str = "development"
    mock_auth: bool | None = None
    otp_mock_code: str = "123456"

    token_file: Path | None = None
    token_storage_key: str = "auth_token"

    base_price: int = 1000
    currency: str = "INR"

    startup_min_duration_seconds: float = Field(default=2.0, ge=0)
    app_version: str = "1.0.0"

    sentry_dsn: str | None = None
    otel_enabled: bool = False
    otel_service_name: str = "samaya-client"

    paths: ApiPaths = ApiPaths()

    model_config = SettingsConfigDict(
        env_prefix="SAMAYA_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _default_mock_auth(self) -> "Settings":
        if self.mock_auth is None:
            self.mock_auth = self.is_development
        return self

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() in {"development", "dev", "local"}
