"""Alert models: the persisted price watch and the payloads that mutate it.

Field names are snake_case in Python and the store; JSON uses camelCase
aliases so the dashboard can consume responses unchanged.
"""

import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from Price_Alerts.models.enums import AlertDirection

MAX_SYMBOL_LENGTH: int = 20
MAX_COMPANY_NAME_LENGTH: int = 200
MAX_COMMENT_LENGTH: int = 500


def _ensure_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Treat naive timestamps as UTC so comparisons never mix aware and naive."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


def _normalize_comment(value: str | None) -> str | None:
    """Trim a comment, collapsing empty strings to None."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


class PriceAlert(BaseModel):
    """One user's watch on a security crossing a target price.

    Frozen because the store is the system of record; mutations go through
    ``AlertPatch`` and produce a fresh row.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    company_id: int
    company_symbol: str
    company_name: str
    target_price: float = Field(gt=0)
    direction: AlertDirection
    comment: str | None = None
    created_at: datetime.datetime
    updated_at: datetime.datetime
    expires_at: datetime.datetime | None = None
    active: bool = True
    triggered_at: datetime.datetime | None = None
    last_checked_price: float | None = None

    @field_validator("created_at", "updated_at", "expires_at", "triggered_at")
    @classmethod
    def _utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        return _ensure_utc(value)

    @field_validator("comment")
    @classmethod
    def _trim_comment(cls, value: str | None) -> str | None:
        return _normalize_comment(value)


class AlertPatch(BaseModel):
    """A partial update to an alert row.

    Only explicitly set fields are written, so ``triggered_at=None`` clears
    the column while an omitted ``triggered_at`` leaves it alone.
    """

    model_config = ConfigDict(frozen=True)

    active: bool | None = None
    triggered_at: datetime.datetime | None = None
    last_checked_price: float | None = None
    target_price: float | None = None
    direction: AlertDirection | None = None
    comment: str | None = None
    expires_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller explicitly set."""
        return self.model_dump(exclude_unset=True)


class AlertCreate(BaseModel):
    """Input schema for creating an alert."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    company_id: int = Field(gt=0)
    company_symbol: str = Field(min_length=1, max_length=MAX_SYMBOL_LENGTH)
    company_name: str = Field(min_length=1, max_length=MAX_COMPANY_NAME_LENGTH)
    target_price: float = Field(gt=0)
    comment: str | None = Field(default=None, max_length=MAX_COMMENT_LENGTH)
    expires_at: datetime.datetime | None = None

    @field_validator("company_symbol", "company_name", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("comment", mode="before")
    @classmethod
    def _trim_comment(cls, value: object) -> object:
        return _normalize_comment(value) if isinstance(value, str) else value

    @field_validator("expires_at")
    @classmethod
    def _utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        return _ensure_utc(value)


class AlertUpdate(BaseModel):
    """Input schema for an owner edit. At least one field must be provided."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    target_price: float | None = Field(default=None, gt=0)
    comment: str | None = Field(default=None, max_length=MAX_COMMENT_LENGTH)
    expires_at: datetime.datetime | None = None
    active: bool | None = None

    @field_validator("expires_at")
    @classmethod
    def _utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        return _ensure_utc(value)

    @field_validator("comment", mode="before")
    @classmethod
    def _trim_comment(cls, value: object) -> object:
        return _normalize_comment(value) if isinstance(value, str) else value

    @field_validator("target_price", "active")
    @classmethod
    def _not_null(cls, value: object) -> object:
        # Omittable, not nullable
        if value is None:
            msg = "may be omitted but not null"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _require_a_field(self) -> "AlertUpdate":
        if not self.model_fields_set:
            msg = "No fields provided for update"
            raise ValueError(msg)
        return self
