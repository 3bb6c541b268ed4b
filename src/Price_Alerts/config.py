"""Runtime settings resolved from environment variables.

Every collaborator takes its configuration from a ``Settings`` instance so
tests can build one directly instead of patching the environment. Bad
numeric values are rejected when settings load, never mid-scan.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH: Final[str] = "data/alerts.db"
DEFAULT_MARKET_DATA_URL: Final[str] = "https://api.dse.co.tz/api/market-data?isBond=false"
DEFAULT_MARKET_DATA_TIMEOUT: Final[float] = 6.0
DEFAULT_MARKET_DATA_CACHE_TTL: Final[int] = 30
DEFAULT_MAIL_PORT: Final[int] = 465
DEFAULT_MAIL_FROM_NAME: Final[str] = "DSE Dashboard"
DEFAULT_SCAN_CALL_TIMEOUT: Final[float] = 10.0
DEFAULT_SCAN_MAX_CONCURRENCY: Final[int] = 8

_ENV_CONFIG = SettingsConfigDict(
    frozen=True,
    extra="ignore",
    env_ignore_empty=True,
    populate_by_name=True,
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        return value.strip() or None
    return value


class MailSettings(BaseSettings):
    """SMTP transport settings. Unconfigured unless host and credentials exist."""

    model_config = _ENV_CONFIG

    host: str | None = Field(None, validation_alias="MAIL_HOST")
    port: int = Field(DEFAULT_MAIL_PORT, gt=0, le=65535, validation_alias="MAIL_PORT")
    username: str | None = Field(None, validation_alias="MAIL_USERNAME")
    password: str | None = Field(None, validation_alias="MAIL_PASSWORD")
    encryption: str | None = Field(None, validation_alias="MAIL_ENCRYPTION")
    from_address: str | None = Field(None, validation_alias="MAIL_FROM_ADDRESS")
    from_name: str = Field(DEFAULT_MAIL_FROM_NAME, validation_alias="MAIL_FROM_NAME")

    @field_validator("host", "username", "password", "encryption", "from_address", mode="before")
    @classmethod
    def _blank(cls, value: object) -> object:
        return _blank_to_none(value)

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    @property
    def use_ssl(self) -> bool:
        """Implicit TLS on 465 or when ``MAIL_ENCRYPTION=ssl``."""
        return self.port == 465 or (self.encryption or "").lower() == "ssl"  # noqa: PLR2004

    @property
    def sender(self) -> str:
        address = self.from_address or self.username or "noreply@example.com"
        return f"{self.from_name} <{address}>"


class PushSettings(BaseSettings):
    """VAPID details for Web Push."""

    model_config = _ENV_CONFIG

    subject: str | None = Field(None, validation_alias="WEB_PUSH_SUBJECT")
    public_key: str | None = Field(None, validation_alias="WEB_PUSH_PUBLIC_KEY")
    private_key: str | None = Field(None, validation_alias="WEB_PUSH_PRIVATE_KEY")

    @field_validator("subject", "public_key", "private_key", mode="before")
    @classmethod
    def _blank(cls, value: object) -> object:
        return _blank_to_none(value)

    @property
    def configured(self) -> bool:
        return bool(self.subject and self.public_key and self.private_key)


class Settings(BaseSettings):
    """Top-level settings for the engine, web app, and CLI."""

    model_config = _ENV_CONFIG

    db_path: str = Field(DEFAULT_DB_PATH, validation_alias="PRICE_ALERTS_DB_PATH")
    market_data_url: str = Field(DEFAULT_MARKET_DATA_URL, validation_alias="MARKET_DATA_URL")
    market_data_timeout: float = Field(
        DEFAULT_MARKET_DATA_TIMEOUT, gt=0, validation_alias="MARKET_DATA_TIMEOUT"
    )
    market_data_cache_ttl: int = Field(
        DEFAULT_MARKET_DATA_CACHE_TTL, ge=0, validation_alias="MARKET_DATA_CACHE_TTL"
    )
    cron_secret: str | None = Field(
        None, validation_alias=AliasChoices("CRON_SECRET", "ALERT_CRON_SECRET")
    )
    scan_call_timeout: float = Field(
        DEFAULT_SCAN_CALL_TIMEOUT, gt=0, validation_alias="SCAN_CALL_TIMEOUT"
    )
    scan_max_concurrency: int = Field(
        DEFAULT_SCAN_MAX_CONCURRENCY, gt=0, validation_alias="SCAN_MAX_CONCURRENCY"
    )
    mail: MailSettings = Field(default_factory=MailSettings)
    push: PushSettings = Field(default_factory=PushSettings)

    @field_validator("cron_secret", mode="before")
    @classmethod
    def _blank(cls, value: object) -> object:
        return _blank_to_none(value)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Load settings from the process environment, or from *environ*.

        An explicit mapping is read in isolation: ``os.environ`` is not
        consulted, which keeps tests hermetic. Blank values count as unset.

        Raises:
            pydantic.ValidationError: If a value is malformed or out of range.
        """
        if environ is None:
            return cls()
        values = {key: value for key, value in environ.items() if value.strip()}
        return cls.model_validate(
            {
                **values,
                "mail": MailSettings.model_validate(values),
                "push": PushSettings.model_validate(values),
            }
        )
