"""Message content for triggered alerts, shared by the email and push channels."""

from __future__ import annotations

from typing import Final

from Price_Alerts.models.alert import PriceAlert
from Price_Alerts.models.enums import AlertDirection
from Price_Alerts.models.notifications import PushPayload

CURRENCY: Final[str] = "TZS"
CLICK_THROUGH_URL: Final[str] = "/"


def format_price(value: float) -> str:
    """Format a price with thousands separators and up to three decimals.

    >>> format_price(1000.0)
    '1,000'
    >>> format_price(1250.5)
    '1,250.5'
    """
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def build_push_payload(alert: PriceAlert, current_price: float) -> PushPayload:
    """Build the Web Push notification for a triggered alert."""
    return PushPayload(
        title=f"Price alert: {alert.company_symbol}",
        body=(
            f"Target {CURRENCY} {format_price(alert.target_price)} reached. "
            f"Current {CURRENCY} {format_price(current_price)}."
        ),
        data={
            "url": CLICK_THROUGH_URL,
            "alertId": alert.id,
            "companyId": alert.company_id,
        },
    )


def build_email_subject(alert: PriceAlert) -> str:
    return f"Price alert triggered: {alert.company_symbol}"


def build_email_body(
    alert: PriceAlert,
    current_price: float,
    recipient_name: str | None = None,
) -> str:
    """Plain-text email body. Empty optional lines are dropped."""
    direction_word = "rose to" if alert.direction == AlertDirection.ABOVE else "dropped to"
    if alert.expires_at is not None:
        expiry_note = f"Expiry: {alert.expires_at.strftime('%Y-%m-%d %H:%M %Z')}"
    else:
        expiry_note = "No expiry"

    lines = [
        f"Hello {recipient_name or 'there'},",
        "",
        f"Your alert for {alert.company_symbol} has triggered.",
        f"Target: {CURRENCY} {format_price(alert.target_price)}",
        f"Current price {direction_word} {CURRENCY} {format_price(current_price)}",
        expiry_note,
        f"Comment: {alert.comment}" if alert.comment else None,
        "",
        "This alert is now marked inactive.",
    ]
    # None marks the absent comment line
    return "\n".join(line for line in lines if line is not None)
