"""SMTP email channel for triggered alerts.

``smtplib`` is synchronous, so each send runs in a worker thread via
``asyncio.to_thread``. The channel never raises: configuration gaps and
transport errors come back as a ``DeliveryResult``.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Final

from Price_Alerts.config import MailSettings
from Price_Alerts.models.alert import PriceAlert
from Price_Alerts.models.notifications import DeliveryResult
from Price_Alerts.notifications.templates import build_email_body, build_email_subject

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS: Final[float] = 10.0


class EmailChannel:
    """Send alert emails through the configured SMTP server."""

    def __init__(self, settings: MailSettings, *, timeout: float = SMTP_TIMEOUT_SECONDS) -> None:
        self._settings = settings
        self._timeout = timeout
        if not settings.configured:
            logger.info("Email channel not configured; alert emails will be skipped")

    @property
    def configured(self) -> bool:
        return self._settings.configured

    async def send(
        self,
        to: str,
        recipient_name: str | None,
        alert: PriceAlert,
        current_price: float,
    ) -> DeliveryResult:
        """Email *to* that *alert* fired at *current_price*."""
        if not self._settings.configured:
            return DeliveryResult.skipped("mailer_not_configured")
        if not to:
            return DeliveryResult.skipped("no_recipient")

        message = EmailMessage()
        message["From"] = self._settings.sender
        message["To"] = to
        message["Subject"] = build_email_subject(alert)
        message.set_content(build_email_body(alert, current_price, recipient_name))

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Email for alert %s to %s failed: %s", alert.id, to, exc)
            return DeliveryResult.failed("send_failed")

        logger.info("Sent alert email for %s (alert %s)", alert.company_symbol, alert.id)
        return DeliveryResult.ok()

    def _deliver(self, message: EmailMessage) -> None:
        """Blocking SMTP exchange (runs in a worker thread)."""
        settings = self._settings
        host = settings.host or ""
        smtp: smtplib.SMTP
        if settings.use_ssl:
            smtp = smtplib.SMTP_SSL(host, settings.port, timeout=self._timeout)
        else:
            smtp = smtplib.SMTP(host, settings.port, timeout=self._timeout)
        with smtp:
            # STARTTLS only when the server advertises it
            if not settings.use_ssl:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
            smtp.login(settings.username or "", settings.password or "")
            smtp.send_message(message)
