"""Notification channels for triggered alerts.

Re-exports the channels so consumers can import directly:
    from Price_Alerts.notifications import EmailChannel, PushChannel
"""

from Price_Alerts.notifications.mailer import EmailChannel
from Price_Alerts.notifications.push import PushChannel
from Price_Alerts.notifications.templates import build_push_payload

__all__ = ["EmailChannel", "PushChannel", "build_push_payload"]
