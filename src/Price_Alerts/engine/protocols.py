"""Collaborator interfaces consumed by the scan coordinator.

The SQLite repository, the exchange price service, and the two notification
channels satisfy these structurally; tests substitute ``AsyncMock`` objects.
"""

from collections.abc import Iterable
from typing import Protocol

from Price_Alerts.models.alert import AlertPatch, PriceAlert
from Price_Alerts.models.notifications import (
    DeliveryResult,
    PushPayload,
    PushSubscription,
    UserContact,
)


class PriceLookup(Protocol):
    async def get_price(self, symbol: str) -> float | None:
        """Return a positive price, or None when unknown. Never raises."""
        ...


class AlertStore(Protocol):
    async def list_active(self) -> list[PriceAlert]: ...

    async def update_alert(
        self,
        alert_id: str,
        patch: AlertPatch,
        *,
        require_active: bool = False,
        user_id: str | None = None,
    ) -> PriceAlert | None:
        """Return the updated row, or None when the predicate matched nothing."""
        ...


class SubscriptionDirectory(Protocol):
    async def get_contact(self, user_id: str) -> UserContact: ...

    async def list_push_subscriptions(
        self, user_ids: Iterable[str]
    ) -> dict[str, list[PushSubscription]]: ...


class EmailSender(Protocol):
    async def send(
        self,
        to: str,
        recipient_name: str | None,
        alert: PriceAlert,
        current_price: float,
    ) -> DeliveryResult: ...


class PushSender(Protocol):
    async def send(self, subscription: PushSubscription, payload: PushPayload) -> DeliveryResult: ...
