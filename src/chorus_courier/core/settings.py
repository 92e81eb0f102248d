"""Client settings and configuration.

This module defines all configuration options for a Chorus Courier session.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Backend endpoint and credentials
    backend_url: str = Field(default="http://localhost:8080", alias="COURIER_BACKEND_URL")
    email: str | None = Field(default=None, alias="COURIER_EMAIL")
    password: str | None = Field(default=None, alias="COURIER_PASSWORD")
    persist_login: bool = Field(default=True, alias="COURIER_PERSIST_LOGIN")

    # Device descriptor registered with the backend
    client_type: str = Field(default="permanent", alias="COURIER_CLIENT_TYPE")
    client_class: str = Field(default="desktop", alias="COURIER_CLIENT_CLASS")
    client_model: str = Field(default="Chorus Courier", alias="COURIER_CLIENT_MODEL")
    client_label: str = Field(default="courier", alias="COURIER_CLIENT_LABEL")
    cookie_label: str = Field(default="courier-cookie", alias="COURIER_COOKIE_LABEL")

    # HTTP transport
    http_timeout_seconds: float = Field(default=10.0, alias="COURIER_HTTP_TIMEOUT_SECONDS")

    # Number of cookie-reset retries after a 429 on login
    max_login_retries: int = Field(default=1, ge=0, alias="COURIER_MAX_LOGIN_RETRIES")

    # Initial prekeys generated by the local key store
    prekey_batch_size: int = Field(default=100, ge=1, le=65534, alias="COURIER_PREKEY_BATCH_SIZE")

    log_level: str = Field(default="INFO", alias="COURIER_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )


settings = Settings()
