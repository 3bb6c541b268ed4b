"""StrEnum types for the price alert domain.

Values are lowercase strings matching what the store persists.
Use enum members in business logic, never raw strings.
"""

from enum import StrEnum


class AlertDirection(StrEnum):
    """Which side of the target price fires the alert."""

    ABOVE = "above"
    BELOW = "below"


class Classification(StrEnum):
    """Outcome of evaluating one alert against the current pass."""

    EXPIRED = "expired"
    NO_PRICE = "no_price"
    EVALUATED = "evaluated"


class DeliveryStatus(StrEnum):
    """Outcome of a single notification dispatch."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"
