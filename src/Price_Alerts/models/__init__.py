"""Pydantic v2 models, enums, and type definitions.

Re-exports all public models so consumers can import directly:
    from Price_Alerts.models import PriceAlert, AlertDirection, ScanReport
"""

from Price_Alerts.models.alert import AlertCreate, AlertPatch, AlertUpdate, PriceAlert
from Price_Alerts.models.enums import AlertDirection, Classification, DeliveryStatus
from Price_Alerts.models.notifications import (
    DeliveryResult,
    PushPayload,
    PushSubscription,
    UserContact,
)
from Price_Alerts.models.scan import ScanReport, Verdict

__all__ = [
    # Enums
    "AlertDirection",
    "Classification",
    "DeliveryStatus",
    # Alerts
    "AlertCreate",
    "AlertPatch",
    "AlertUpdate",
    "PriceAlert",
    # Notifications
    "DeliveryResult",
    "PushPayload",
    "PushSubscription",
    "UserContact",
    # Scan
    "ScanReport",
    "Verdict",
]
