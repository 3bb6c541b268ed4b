"""Notification models: recipients, push subscriptions, and delivery outcomes."""

from pydantic import BaseModel, ConfigDict

from Price_Alerts.models.enums import DeliveryStatus


class UserContact(BaseModel):
    """Contact details for an alert owner. Either field may be unknown."""

    model_config = ConfigDict(frozen=True)

    email: str | None = None
    name: str | None = None


class PushSubscription(BaseModel):
    """A browser Web Push endpoint registered by a user."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    endpoint: str
    p256dh: str
    auth: str
    user_agent: str | None = None

    def subscription_info(self) -> dict[str, object]:
        """Return the dict shape expected by the Web Push transport."""
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


class PushPayload(BaseModel):
    """Title, body, and click-through data delivered to a push endpoint."""

    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    data: dict[str, str | int]


class DeliveryResult(BaseModel):
    """Outcome of one channel dispatch.

    ``reason`` is a short machine-readable tag (``mailer_not_configured``,
    ``send_failed``, ``timeout``) and is never inspected by the engine.
    """

    model_config = ConfigDict(frozen=True)

    status: DeliveryStatus
    reason: str | None = None

    @property
    def sent(self) -> bool:
        """True only when the channel accepted the message."""
        return self.status == DeliveryStatus.SENT

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(status=DeliveryStatus.SENT)

    @classmethod
    def failed(cls, reason: str) -> "DeliveryResult":
        return cls(status=DeliveryStatus.FAILED, reason=reason)

    @classmethod
    def skipped(cls, reason: str) -> "DeliveryResult":
        return cls(status=DeliveryStatus.SKIPPED, reason=reason)
