"""Shared test fixtures for the price alert test suite.

Provides realistic sample alerts, contacts, and subscriptions so tests don't
need to inline large construction blocks.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable
from typing import Any

import pytest

from Price_Alerts.models import (
    AlertDirection,
    PriceAlert,
    PushSubscription,
    UserContact,
)

NOW: datetime.datetime = datetime.datetime(2025, 6, 2, 10, 0, 0, tzinfo=datetime.UTC)


def build_alert(**overrides: Any) -> PriceAlert:
    """Build an active CRDB alert watching for a rise to 500."""
    fields: dict[str, Any] = {
        "id": "alert-1",
        "user_id": "user-1",
        "company_id": 7,
        "company_symbol": "CRDB",
        "company_name": "CRDB Bank Plc",
        "target_price": 500.0,
        "direction": AlertDirection.ABOVE,
        "comment": None,
        "created_at": NOW - datetime.timedelta(days=3),
        "updated_at": NOW - datetime.timedelta(days=3),
        "expires_at": None,
        "active": True,
        "triggered_at": None,
        "last_checked_price": 480.0,
    }
    fields.update(overrides)
    return PriceAlert(**fields)


@pytest.fixture()
def now() -> datetime.datetime:
    """The fixed instant used as the scan clock."""
    return NOW


@pytest.fixture()
def alert_factory() -> Callable[..., PriceAlert]:
    """Factory for PriceAlert instances with keyword overrides."""
    return build_alert


@pytest.fixture()
def sample_alert() -> PriceAlert:
    """An active ABOVE alert on CRDB with target 500."""
    return build_alert()


@pytest.fixture()
def sample_contact() -> UserContact:
    """A user with both an email address and a display name."""
    return UserContact(email="amina@example.com", name="Amina Mushi")


@pytest.fixture()
def sample_subscription() -> PushSubscription:
    """A Chrome push subscription for user-1."""
    return PushSubscription(
        user_id="user-1",
        endpoint="https://fcm.googleapis.com/fcm/send/abc123",
        p256dh="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
        auth="tBHItJI5svbpez7KI4CCXg",
        user_agent="Mozilla/5.0 (X11; Linux x86_64) Chrome/125.0",
    )
