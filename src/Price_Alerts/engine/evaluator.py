"""Pure alert decision logic: expiry, trigger condition, and direction.

Nothing here performs I/O. The scan coordinator supplies the clock and the
fetched price; the alert CRUD service uses ``assign_direction`` when an
owner creates an alert or edits its target.
"""

import datetime

from Price_Alerts.models.alert import PriceAlert
from Price_Alerts.models.enums import AlertDirection, Classification
from Price_Alerts.models.scan import Verdict


def is_expired(alert: PriceAlert, now: datetime.datetime) -> bool:
    """True when the alert has an expiry at or before *now*."""
    return alert.expires_at is not None and alert.expires_at <= now


def should_trigger(direction: AlertDirection, target_price: float, price: float) -> bool:
    """Inclusive crossing test: a price equal to the target fires either way."""
    if direction == AlertDirection.ABOVE:
        return price >= target_price
    return price <= target_price


def classify(
    alert: PriceAlert,
    now: datetime.datetime,
    price: float | None = None,
) -> Verdict:
    """Decide what a scan pass should do with *alert*.

    Expiry wins over triggering, so an alert that is both past its expiry
    and across its target is deactivated as expired. A missing or
    non-positive price leaves the alert untouched.
    """
    if is_expired(alert, now):
        return Verdict(Classification.EXPIRED)
    if price is None or price <= 0:
        return Verdict(Classification.NO_PRICE)
    return Verdict(
        Classification.EVALUATED,
        should_trigger=should_trigger(alert.direction, alert.target_price, price),
    )


def assign_direction(
    target_price: float,
    market_price: float | None,
) -> tuple[AlertDirection, float]:
    """Pick the direction for a new or re-targeted alert.

    The reference is the latest market price, or the target itself when no
    market price is known (which yields ``ABOVE``).

    Returns:
        ``(direction, reference_price)``; the reference is stored as the
        alert's ``last_checked_price``.
    """
    reference = market_price if market_price is not None and market_price > 0 else target_price
    direction = AlertDirection.ABOVE if target_price >= reference else AlertDirection.BELOW
    return direction, reference
