"""Scan coordinator: one complete alert-evaluation pass.

A pass loads every active alert, deactivates the expired ones, looks up
each distinct symbol once, fires the alerts whose condition holds, notifies
their owners over email and Web Push, and marks them triggered. All durable
state lives in the alert store; the coordinator keeps nothing between
passes.

Concurrency is bounded by one semaphore per pass that wraps every external
call, and each call carries its own timeout. Every task spawned by a pass
is awaited via ``asyncio.gather`` before ``run()`` returns.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Final

from Price_Alerts.config import DEFAULT_SCAN_CALL_TIMEOUT, DEFAULT_SCAN_MAX_CONCURRENCY
from Price_Alerts.engine.evaluator import classify
from Price_Alerts.engine.protocols import (
    AlertStore,
    EmailSender,
    PriceLookup,
    PushSender,
    SubscriptionDirectory,
)
from Price_Alerts.models.alert import AlertPatch, PriceAlert
from Price_Alerts.models.enums import Classification
from Price_Alerts.models.notifications import DeliveryResult, PushSubscription, UserContact
from Price_Alerts.models.scan import ScanReport
from Price_Alerts.notifications.templates import build_push_payload
from Price_Alerts.services._helpers import positive_or_none
from Price_Alerts.utils.exceptions import AlertStoreError

logger = logging.getLogger(__name__)

_EMPTY_CONTACT: Final[UserContact] = UserContact()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


@dataclass(frozen=True)
class FiringAlert:
    """An alert whose trigger condition held, with the price that fired it."""

    alert: PriceAlert
    price: float


@dataclass
class _PassState:
    """Scan-local state. Discarded when the pass ends."""

    now: datetime.datetime
    semaphore: asyncio.Semaphore
    contacts: dict[str, UserContact] = field(default_factory=dict)
    subscriptions: dict[str, list[PushSubscription]] = field(default_factory=dict)


class ScanCoordinator:
    """Run scan passes against the given collaborators.

    Usage::

        coordinator = ScanCoordinator(
            store=repo,
            prices=market_service,
            directory=repo,
            email=EmailChannel(settings.mail),
            push=PushChannel(settings.push),
        )
        report = await coordinator.run()
    """

    def __init__(
        self,
        *,
        store: AlertStore,
        prices: PriceLookup,
        directory: SubscriptionDirectory,
        email: EmailSender,
        push: PushSender,
        call_timeout: float = DEFAULT_SCAN_CALL_TIMEOUT,
        max_concurrency: int = DEFAULT_SCAN_MAX_CONCURRENCY,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        if max_concurrency < 1:
            msg = f"max_concurrency must be at least 1, got {max_concurrency}"
            raise ValueError(msg)
        if call_timeout <= 0:
            msg = f"call_timeout must be positive, got {call_timeout}"
            raise ValueError(msg)
        self._store = store
        self._prices = prices
        self._directory = directory
        self._email = email
        self._push = push
        self._call_timeout = call_timeout
        self._max_concurrency = max_concurrency
        self._clock = clock

    async def run(self) -> ScanReport:
        """Execute one pass and return its counts.

        Raises:
            AlertStoreError: If the active alerts cannot be loaded. This is
                the only failure that aborts a pass.
        """
        started = time.perf_counter()
        alerts = await self._load_active()
        if not alerts:
            logger.info("Scan complete: no active alerts")
            return ScanReport()

        state = _PassState(now=self._clock(), semaphore=asyncio.Semaphore(self._max_concurrency))

        expired: list[PriceAlert] = []
        candidates: list[PriceAlert] = []
        for alert in alerts:
            if classify(alert, state.now).classification == Classification.EXPIRED:
                expired.append(alert)
            else:
                candidates.append(alert)

        _, prices = await asyncio.gather(
            self._deactivate_expired(state, expired),
            self._fetch_prices(state, candidates),
        )

        firing = self._select_firing(state, candidates, prices)
        sent_emails, sent_push = await self._dispatch_all(state, firing)

        report = ScanReport(
            scanned=len(alerts),
            triggered=len(firing),
            deactivated=len(expired) + len(firing),
            sent_emails=sent_emails,
            sent_push=sent_push,
        )
        logger.info(
            "Scan complete in %.2fs: scanned=%d triggered=%d deactivated=%d "
            "sent_emails=%d sent_push=%d",
            time.perf_counter() - started,
            report.scanned,
            report.triggered,
            report.deactivated,
            report.sent_emails,
            report.sent_push,
        )
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _load_active(self) -> list[PriceAlert]:
        try:
            return await asyncio.wait_for(self._store.list_active(), timeout=self._call_timeout)
        except TimeoutError as exc:
            msg = f"Loading active alerts timed out after {self._call_timeout:.1f}s"
            raise AlertStoreError(msg) from exc

    async def _deactivate_expired(self, state: _PassState, expired: list[PriceAlert]) -> None:
        """Flip each expired alert to inactive. ``triggered_at`` stays unset."""
        if not expired:
            return
        patch = AlertPatch(active=False, updated_at=state.now)
        results = await asyncio.gather(
            *(
                self._guarded(
                    state,
                    self._store.update_alert(alert.id, patch, require_active=True),
                    label=f"Expire alert {alert.id}",
                )
                for alert in expired
            )
        )
        applied = sum(1 for result in results if result is not None)
        logger.info("Expired %d alerts (%d rows changed)", len(expired), applied)

    async def _fetch_prices(
        self, state: _PassState, candidates: list[PriceAlert]
    ) -> dict[str, float | None]:
        """Look up each distinct symbol once, concurrently."""
        symbols = sorted({alert.company_symbol for alert in candidates})
        if not symbols:
            return {}
        results = await asyncio.gather(
            *(
                self._guarded(
                    state,
                    self._prices.get_price(symbol),
                    label=f"Price lookup for {symbol}",
                )
                for symbol in symbols
            )
        )
        prices: dict[str, float | None] = {}
        for symbol, price in zip(symbols, results, strict=True):
            prices[symbol] = positive_or_none(price)
        missing = sum(1 for price in prices.values() if price is None)
        if missing:
            logger.warning("No price for %d of %d symbols", missing, len(symbols))
        return prices

    @staticmethod
    def _select_firing(
        state: _PassState,
        candidates: list[PriceAlert],
        prices: dict[str, float | None],
    ) -> list[FiringAlert]:
        firing: list[FiringAlert] = []
        for alert in candidates:
            price = prices.get(alert.company_symbol)
            verdict = classify(alert, state.now, price)
            if verdict.classification == Classification.EVALUATED and verdict.should_trigger:
                # EVALUATED implies a positive price
                firing.append(FiringAlert(alert=alert, price=price or 0.0))
        return firing

    async def _dispatch_all(
        self, state: _PassState, firing: list[FiringAlert]
    ) -> tuple[int, int]:
        """Notify and finalize every firing alert; return (emails, pushes) sent."""
        if not firing:
            return 0, 0

        await self._resolve_recipients(state, {item.alert.user_id for item in firing})
        results = await asyncio.gather(*(self._notify_and_finalize(state, item) for item in firing))
        return sum(r[0] for r in results), sum(r[1] for r in results)

    async def _resolve_recipients(self, state: _PassState, user_ids: set[str]) -> None:
        """Fill the pass's contact and subscription caches, once per user."""
        pending = sorted(user_ids - state.contacts.keys())
        if not pending:
            return

        contact_results, subscriptions = await asyncio.gather(
            asyncio.gather(
                *(
                    self._guarded(
                        state,
                        self._directory.get_contact(user_id),
                        label=f"Contact lookup for user {user_id}",
                    )
                    for user_id in pending
                )
            ),
            self._guarded(
                state,
                self._directory.list_push_subscriptions(pending),
                label="Push subscription listing",
            ),
        )
        for user_id, contact in zip(pending, contact_results, strict=True):
            state.contacts[user_id] = contact or _EMPTY_CONTACT
        for user_id in pending:
            state.subscriptions[user_id] = (subscriptions or {}).get(user_id, [])

    async def _notify_and_finalize(self, state: _PassState, item: FiringAlert) -> tuple[int, int]:
        """Send every notification for one alert, then mark it triggered.

        The store update is issued whatever the delivery outcomes were.
        """
        alert, price = item.alert, item.price
        contact = state.contacts.get(alert.user_id, _EMPTY_CONTACT)
        subscriptions = state.subscriptions.get(alert.user_id, [])

        email_result: DeliveryResult | None = None
        push_results: list[DeliveryResult | None] = []

        sends: list[Awaitable[DeliveryResult | None]] = []
        if contact.email:
            sends.append(
                self._guarded(
                    state,
                    self._email.send(contact.email, contact.name, alert, price),
                    label=f"Email for alert {alert.id}",
                )
            )
        payload = build_push_payload(alert, price)
        sends.extend(
            self._guarded(
                state,
                self._push.send(subscription, payload),
                label=f"Push for alert {alert.id}",
            )
            for subscription in subscriptions
        )

        outcomes = await asyncio.gather(*sends)
        if contact.email:
            email_result, push_results = outcomes[0], list(outcomes[1:])
        else:
            push_results = list(outcomes)

        updated = await self._guarded(
            state,
            self._store.update_alert(
                alert.id,
                AlertPatch(
                    active=False,
                    triggered_at=state.now,
                    last_checked_price=price,
                    updated_at=state.now,
                ),
                require_active=True,
            ),
            label=f"Trigger alert {alert.id}",
        )
        if updated is None:
            logger.info("Alert %s was not updated; already handled or update failed", alert.id)

        emails_sent = 1 if email_result is not None and email_result.sent else 0
        pushes_sent = sum(1 for result in push_results if result is not None and result.sent)
        logger.info(
            "Alert %s fired for %s at %s (email=%d push=%d/%d)",
            alert.id,
            alert.company_symbol,
            price,
            emails_sent,
            pushes_sent,
            len(subscriptions),
        )
        return emails_sent, pushes_sent

    # ------------------------------------------------------------------
    # Guarded external call
    # ------------------------------------------------------------------

    async def _guarded[T](self, state: _PassState, call: Awaitable[T], *, label: str) -> T | None:
        """Await *call* under the pass semaphore and the per-call timeout.

        Timeouts and errors are logged and collapse to None so one failing
        collaborator never aborts the pass.
        """
        async with state.semaphore:
            try:
                return await asyncio.wait_for(call, timeout=self._call_timeout)
            except TimeoutError:
                logger.warning("%s timed out after %.1fs", label, self._call_timeout)
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s failed: %s", label, exc)
        return None
