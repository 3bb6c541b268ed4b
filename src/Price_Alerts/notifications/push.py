"""Web Push channel backed by pywebpush with VAPID authentication."""

from __future__ import annotations

import asyncio
import logging
from typing import Final

from pywebpush import WebPushException, webpush

from Price_Alerts.config import PushSettings
from Price_Alerts.models.notifications import DeliveryResult, PushPayload, PushSubscription

logger = logging.getLogger(__name__)

PUSH_TIMEOUT_SECONDS: Final[float] = 10.0

# Push services answer 404/410 once the browser has unsubscribed
_GONE_STATUSES: Final[frozenset[int]] = frozenset({404, 410})


class PushChannel:
    """Deliver one notification to one browser push subscription per call."""

    def __init__(self, settings: PushSettings, *, timeout: float = PUSH_TIMEOUT_SECONDS) -> None:
        self._settings = settings
        self._timeout = timeout
        if not settings.configured:
            logger.info("Web Push channel not configured; push notifications will be skipped")

    @property
    def configured(self) -> bool:
        return self._settings.configured

    @property
    def public_key(self) -> str:
        """VAPID public key handed to browsers when they subscribe."""
        return self._settings.public_key or ""

    async def send(self, subscription: PushSubscription, payload: PushPayload) -> DeliveryResult:
        """Push *payload* to *subscription*. Never raises."""
        if not self._settings.configured:
            return DeliveryResult.skipped("push_not_configured")

        try:
            await asyncio.to_thread(self._deliver, subscription, payload)
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status in _GONE_STATUSES:
                logger.info("Push subscription for user %s is gone (%s)", subscription.user_id, status)
                return DeliveryResult.failed("subscription_gone")
            logger.warning("Push to user %s failed: %s", subscription.user_id, exc)
            return DeliveryResult.failed("send_failed")
        except OSError as exc:
            logger.warning("Push to user %s failed: %s", subscription.user_id, exc)
            return DeliveryResult.failed("send_failed")

        return DeliveryResult.ok()

    def _deliver(self, subscription: PushSubscription, payload: PushPayload) -> None:
        """Blocking encrypt-and-POST (runs in a worker thread)."""
        webpush(
            subscription_info=subscription.subscription_info(),
            data=payload.model_dump_json(),
            vapid_private_key=self._settings.private_key,
            # webpush() mutates the claims dict, so build a fresh one per call
            vapid_claims={"sub": self._settings.subject or ""},
            timeout=self._timeout,
        )
