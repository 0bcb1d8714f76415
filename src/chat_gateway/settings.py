"""Настройки приложения (env + `.env`)."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic-настройки (всё, что обычно лежит в `.env`)."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="local", validation_alias="APP_ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    default_provider: str = Field(default="mock", validation_alias="DEFAULT_PROVIDER")
    default_model: str = Field(default="openai/gpt-5", validation_alias="DEFAULT_MODEL")
    default_temperature: float = Field(default=0.7, validation_alias="DEFAULT_TEMPERATURE")

    openai_base_url: str | None = Field(
        default="https://openrouter.ai/api",
        validation_alias="OPENAI_BASE_URL",
    )
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_timeout_seconds: float = Field(default=20.0, validation_alias="OPENAI_TIMEOUT_SECONDS")
    openai_http_referer: str | None = Field(default=None, validation_alias="OPENAI_HTTP_REFERER")
    openai_title: str | None = Field(default=None, validation_alias="OPENAI_TITLE")

    retry_rate_limit_attempts: int = Field(default=6, validation_alias="RETRY_RATE_LIMIT_ATTEMPTS")
    retry_timeout_attempts: int = Field(default=3, validation_alias="RETRY_TIMEOUT_ATTEMPTS")
    retry_backoff_base: float = Field(default=2.0, validation_alias="RETRY_BACKOFF_BASE")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Ленивая загрузка настроек (один раз на процесс)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
