"""Tests for ScanCoordinator: one pass over mocked and real collaborators.

Covers:
- Empty store short-circuits after the load
- Simple trigger notifies on both channels and marks the alert triggered
- Expiry wins over triggering
- Unknown prices leave alerts untouched
- Failing or raising channels never block deactivation
- One price lookup per distinct symbol
- Per-user contact and subscription resolution
- Timeouts degrade a single sub-step
- Load failure is fatal
- Back-to-back passes against a real store trigger once
"""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from Price_Alerts.data.database import Database
from Price_Alerts.data.repository import Repository
from Price_Alerts.engine.coordinator import ScanCoordinator
from Price_Alerts.models import (
    AlertDirection,
    AlertPatch,
    DeliveryResult,
    PriceAlert,
    PushSubscription,
    ScanReport,
    UserContact,
)
from Price_Alerts.utils.exceptions import AlertStoreError


def _make_collaborators(
    alerts: list[PriceAlert],
    *,
    prices: dict[str, float | None] | None = None,
    contact: UserContact | None = None,
    subscriptions: dict[str, list[PushSubscription]] | None = None,
) -> dict[str, AsyncMock]:
    """Build AsyncMock collaborators that succeed by default."""
    price_map = prices or {}

    store = AsyncMock()
    store.list_active = AsyncMock(return_value=alerts)
    store.update_alert = AsyncMock(side_effect=lambda alert_id, patch, **kw: alerts[0])

    lookup = AsyncMock()
    lookup.get_price = AsyncMock(side_effect=lambda symbol: price_map.get(symbol))

    directory = AsyncMock()
    directory.get_contact = AsyncMock(return_value=contact or UserContact())
    directory.list_push_subscriptions = AsyncMock(return_value=subscriptions or {})

    email = AsyncMock()
    email.send = AsyncMock(return_value=DeliveryResult.ok())
    push = AsyncMock()
    push.send = AsyncMock(return_value=DeliveryResult.ok())

    return {
        "store": store,
        "prices": lookup,
        "directory": directory,
        "email": email,
        "push": push,
    }


def _coordinator(
    mocks: dict[str, AsyncMock],
    now: datetime.datetime,
    *,
    call_timeout: float = 1.0,
) -> ScanCoordinator:
    return ScanCoordinator(
        store=mocks["store"],
        prices=mocks["prices"],
        directory=mocks["directory"],
        email=mocks["email"],
        push=mocks["push"],
        call_timeout=call_timeout,
        max_concurrency=4,
        clock=lambda: now,
    )


class TestEmptyStore:
    @pytest.mark.asyncio()
    async def test_returns_zero_report_without_further_calls(
        self, now: datetime.datetime
    ) -> None:
        mocks = _make_collaborators([])
        report = await _coordinator(mocks, now).run()

        assert report == ScanReport()
        mocks["store"].list_active.assert_awaited_once()
        mocks["store"].update_alert.assert_not_awaited()
        mocks["prices"].get_price.assert_not_awaited()
        mocks["directory"].get_contact.assert_not_awaited()
        mocks["directory"].list_push_subscriptions.assert_not_awaited()
        mocks["email"].send.assert_not_awaited()
        mocks["push"].send.assert_not_awaited()


class TestSimpleTrigger:
    @pytest.mark.asyncio()
    async def test_counts_and_final_update(
        self,
        alert_factory: Callable[..., PriceAlert],
        sample_contact: UserContact,
        sample_subscription: PushSubscription,
        now: datetime.datetime,
    ) -> None:
        alert = alert_factory(target_price=1000.0, direction=AlertDirection.ABOVE)
        mocks = _make_collaborators(
            [alert],
            prices={"CRDB": 1000.0},
            contact=sample_contact,
            subscriptions={"user-1": [sample_subscription]},
        )

        report = await _coordinator(mocks, now).run()

        assert report == ScanReport(
            scanned=1, triggered=1, deactivated=1, sent_emails=1, sent_push=1
        )
        mocks["store"].update_alert.assert_awaited_once_with(
            alert.id,
            AlertPatch(active=False, triggered_at=now, last_checked_price=1000.0, updated_at=now),
            require_active=True,
        )

    @pytest.mark.asyncio()
    async def test_email_receives_contact_and_price(
        self,
        sample_alert: PriceAlert,
        sample_contact: UserContact,
        now: datetime.datetime,
    ) -> None:
        mocks = _make_collaborators([sample_alert], prices={"CRDB": 510.0}, contact=sample_contact)
        await _coordinator(mocks, now).run()

        mocks["email"].send.assert_awaited_once_with(
            "amina@example.com", "Amina Mushi", sample_alert, 510.0
        )

    @pytest.mark.asyncio()
    async def test_push_payload_names_the_symbol(
        self,
        sample_alert: PriceAlert,
        sample_subscription: PushSubscription,
        now: datetime.datetime,
    ) -> None:
        mocks = _make_collaborators(
            [sample_alert],
            prices={"CRDB": 510.0},
            subscriptions={"user-1": [sample_subscription]},
        )
        await _coordinator(mocks, now).run()

        subscription, payload = mocks["push"].send.await_args.args
        assert subscription == sample_subscription
        assert payload.title == "Price alert: CRDB"
        assert payload.data["alertId"] == sample_alert.id

    @pytest.mark.asyncio()
    async def test_no_email_address_skips_email(
        self, sample_alert: PriceAlert, now: datetime.datetime
    ) -> None:
        mocks = _make_collaborators(
            [sample_alert], prices={"CRDB": 510.0}, contact=UserContact(name="No Mail")
        )
        report = await _coordinator(mocks, now).run()

        mocks["email"].send.assert_not_awaited()
        assert report.triggered == 1
        assert report.sent_emails == 0


class TestExpiry:
    @pytest.mark.asyncio()
    async def test_expired_wins_over_trigger(
        self, alert_factory: Callable[..., PriceAlert], now: datetime.datetime
    ) -> None:
        alert = alert_factory(
            direction=AlertDirection.BELOW,
            target_price=500.0,
            expires_at=now - datetime.timedelta(days=1),
        )
        mocks = _make_collaborators([alert], prices={"CRDB": 100.0})

        report = await _coordinator(mocks, now).run()

        assert report.deactivated == 1
        assert report.triggered == 0
        mocks["prices"].get_price.assert_not_awaited()
        mocks["email"].send.assert_not_awaited()
        mocks["store"].update_alert.assert_awaited_once_with(
            alert.id, AlertPatch(active=False, updated_at=now), require_active=True
        )
        patch = mocks["store"].update_alert.await_args.args[1]
        assert "triggered_at" not in patch.changes()

    @pytest.mark.asyncio()
    async def test_expired_update_failure_still_counts(
        self, alert_factory: Callable[..., PriceAlert], now: datetime.datetime
    ) -> None:
        alert = alert_factory(expires_at=now - datetime.timedelta(hours=1))
        mocks = _make_collaborators([alert])
        mocks["store"].update_alert = AsyncMock(side_effect=RuntimeError("disk I/O error"))

        report = await _coordinator(mocks, now).run()

        assert report == ScanReport(scanned=1, deactivated=1)


class TestNoPrice:
    @pytest.mark.asyncio()
    @pytest.mark.parametrize("price", [None, 0.0, -1.0])
    async def test_unknown_price_is_a_no_op(
        self, sample_alert: PriceAlert, now: datetime.datetime, price: float | None
    ) -> None:
        mocks = _make_collaborators([sample_alert], prices={"CRDB": price})

        report = await _coordinator(mocks, now).run()

        assert report == ScanReport(scanned=1)
        mocks["store"].update_alert.assert_not_awaited()
        mocks["email"].send.assert_not_awaited()
        mocks["push"].send.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_lookup_exception_is_a_no_op(
        self, sample_alert: PriceAlert, now: datetime.datetime
    ) -> None:
        mocks = _make_collaborators([sample_alert])
        mocks["prices"].get_price = AsyncMock(side_effect=ConnectionError("reset"))

        report = await _coordinator(mocks, now).run()

        assert report == ScanReport(scanned=1)
        mocks["store"].update_alert.assert_not_awaited()


class TestChannelFailures:
    @pytest.mark.asyncio()
    async def test_both_channels_failing_still_deactivates(
        self,
        sample_alert: PriceAlert,
        sample_contact: UserContact,
        sample_subscription: PushSubscription,
        now: datetime.datetime,
    ) -> None:
        mocks = _make_collaborators(
            [sample_alert],
            prices={"CRDB": 505.0},
            contact=sample_contact,
            subscriptions={"user-1": [sample_subscription]},
        )
        mocks["email"].send = AsyncMock(return_value=DeliveryResult.failed("send_failed"))
        mocks["push"].send = AsyncMock(return_value=DeliveryResult.skipped("push_not_configured"))

        report = await _coordinator(mocks, now).run()

        assert report == ScanReport(scanned=1, triggered=1, deactivated=1)
        patch = mocks["store"].update_alert.await_args.args[1]
        assert patch.active is False
        assert patch.triggered_at == now

    @pytest.mark.asyncio()
    async def test_raising_channels_still_deactivate(
        self,
        sample_alert: PriceAlert,
        sample_contact: UserContact,
        sample_subscription: PushSubscription,
        now: datetime.datetime,
    ) -> None:
        mocks = _make_collaborators(
            [sample_alert],
            prices={"CRDB": 505.0},
            contact=sample_contact,
            subscriptions={"user-1": [sample_subscription]},
        )
        mocks["email"].send = AsyncMock(side_effect=OSError("smtp down"))
        mocks["push"].send = AsyncMock(side_effect=RuntimeError("boom"))

        report = await _coordinator(mocks, now).run()

        assert report.triggered == 1
        mocks["store"].update_alert.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_one_failed_subscription_does_not_block_others(
        self,
        sample_alert: PriceAlert,
        sample_subscription: PushSubscription,
        now: datetime.datetime,
    ) -> None:
        second = sample_subscription.model_copy(update={"endpoint": "https://push.example/2"})
        third = sample_subscription.model_copy(update={"endpoint": "https://push.example/3"})

        async def _send(subscription: PushSubscription, payload: object) -> DeliveryResult:
            if subscription.endpoint == second.endpoint:
                return DeliveryResult.failed("subscription_gone")
            return DeliveryResult.ok()

        mocks = _make_collaborators(
            [sample_alert],
            prices={"CRDB": 505.0},
            subscriptions={"user-1": [sample_subscription, second, third]},
        )
        mocks["push"].send = AsyncMock(side_effect=_send)

        report = await _coordinator(mocks, now).run()

        assert mocks["push"].send.await_count == 3
        assert report.sent_push == 2

    @pytest.mark.asyncio()
    async def test_stale_update_is_not_an_error(
        self, sample_alert: PriceAlert, now: datetime.datetime
    ) -> None:
        mocks = _make_collaborators([sample_alert], prices={"CRDB": 505.0})
        mocks["store"].update_alert = AsyncMock(return_value=None)

        report = await _coordinator(mocks, now).run()

        assert report.triggered == 1
        assert report.deactivated == 1


class TestFanOut:
    @pytest.mark.asyncio()
    async def test_one_lookup_per_distinct_symbol(
        self, alert_factory: Callable[..., PriceAlert], now: datetime.datetime
    ) -> None:
        alerts = [
            alert_factory(id="a1", company_symbol="CRDB"),
            alert_factory(id="a2", company_symbol="CRDB", target_price=900.0),
            alert_factory(id="a3", company_symbol="NMB", target_price=900.0),
        ]
        mocks = _make_collaborators(alerts, prices={"CRDB": 400.0, "NMB": 4000.0})

        report = await _coordinator(mocks, now).run()

        assert mocks["prices"].get_price.await_count == 2
        symbols = sorted(call.args[0] for call in mocks["prices"].get_price.await_args_list)
        assert symbols == ["CRDB", "NMB"]
        assert report.scanned == 3
        assert report.triggered == 1

    @pytest.mark.asyncio()
    async def test_directory_resolved_once_per_user(
        self, alert_factory: Callable[..., PriceAlert], now: datetime.datetime
    ) -> None:
        alerts = [
            alert_factory(id="a1"),
            alert_factory(id="a2", target_price=450.0),
            alert_factory(id="a3", user_id="user-2"),
        ]
        mocks = _make_collaborators(alerts, prices={"CRDB": 505.0})

        report = await _coordinator(mocks, now).run()

        assert report.triggered == 3
        assert mocks["directory"].get_contact.await_count == 2
        mocks["directory"].list_push_subscriptions.assert_awaited_once()
        (user_ids,) = mocks["directory"].list_push_subscriptions.await_args.args
        assert sorted(user_ids) == ["user-1", "user-2"]

    @pytest.mark.asyncio()
    async def test_directory_failure_skips_notifications_only(
        self, sample_alert: PriceAlert, now: datetime.datetime
    ) -> None:
        mocks = _make_collaborators([sample_alert], prices={"CRDB": 505.0})
        mocks["directory"].get_contact = AsyncMock(side_effect=RuntimeError("db locked"))
        mocks["directory"].list_push_subscriptions = AsyncMock(side_effect=RuntimeError("db locked"))

        report = await _coordinator(mocks, now).run()

        assert report == ScanReport(scanned=1, triggered=1, deactivated=1)
        mocks["store"].update_alert.assert_awaited_once()


class TestTimeouts:
    @pytest.mark.asyncio()
    async def test_slow_price_lookup_counts_as_unknown(
        self, sample_alert: PriceAlert, now: datetime.datetime
    ) -> None:
        async def _slow(symbol: str) -> float:
            await asyncio.sleep(5)
            return 999.0

        mocks = _make_collaborators([sample_alert])
        mocks["prices"].get_price = AsyncMock(side_effect=_slow)

        report = await _coordinator(mocks, now, call_timeout=0.05).run()

        assert report == ScanReport(scanned=1)
        mocks["store"].update_alert.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_slow_email_does_not_block_deactivation(
        self,
        sample_alert: PriceAlert,
        sample_contact: UserContact,
        now: datetime.datetime,
    ) -> None:
        async def _slow(*args: object) -> DeliveryResult:
            await asyncio.sleep(5)
            return DeliveryResult.ok()

        mocks = _make_collaborators([sample_alert], prices={"CRDB": 505.0}, contact=sample_contact)
        mocks["email"].send = AsyncMock(side_effect=_slow)

        report = await _coordinator(mocks, now, call_timeout=0.05).run()

        assert report.sent_emails == 0
        mocks["store"].update_alert.assert_awaited_once()


class TestFatalLoad:
    @pytest.mark.asyncio()
    async def test_store_error_propagates(self, now: datetime.datetime) -> None:
        mocks = _make_collaborators([])
        mocks["store"].list_active = AsyncMock(side_effect=AlertStoreError("no such table"))

        with pytest.raises(AlertStoreError, match="no such table"):
            await _coordinator(mocks, now).run()

    @pytest.mark.asyncio()
    async def test_load_timeout_is_fatal(self, now: datetime.datetime) -> None:
        async def _hang() -> list[PriceAlert]:
            await asyncio.sleep(5)
            return []

        mocks = _make_collaborators([])
        mocks["store"].list_active = AsyncMock(side_effect=_hang)

        with pytest.raises(AlertStoreError, match="timed out"):
            await _coordinator(mocks, now, call_timeout=0.05).run()



class TestLimits:
    @pytest.mark.parametrize(
        ("call_timeout", "max_concurrency"),
        [(1.0, 0), (1.0, -1), (0.0, 4), (-0.5, 4)],
    )
    def test_unusable_limits_rejected(
        self, now: datetime.datetime, call_timeout: float, max_concurrency: int
    ) -> None:
        mocks = _make_collaborators([])
        with pytest.raises(ValueError, match="must be"):
            ScanCoordinator(
                store=mocks["store"],
                prices=mocks["prices"],
                directory=mocks["directory"],
                email=mocks["email"],
                push=mocks["push"],
                call_timeout=call_timeout,
                max_concurrency=max_concurrency,
                clock=lambda: now,
            )

    @pytest.mark.asyncio()
    async def test_single_slot_pass_completes(
        self, now: datetime.datetime, sample_alert: PriceAlert, sample_contact: UserContact
    ) -> None:
        mocks = _make_collaborators(
            [sample_alert], prices={"CRDB": 510.0}, contact=sample_contact
        )
        coordinator = ScanCoordinator(
            store=mocks["store"],
            prices=mocks["prices"],
            directory=mocks["directory"],
            email=mocks["email"],
            push=mocks["push"],
            call_timeout=0.1,
            max_concurrency=1,
            clock=lambda: now,
        )

        report = await asyncio.wait_for(coordinator.run(), timeout=2.0)

        assert report.triggered == 1
        mocks["prices"].get_price.assert_awaited_once_with("CRDB")

# ---------------------------------------------------------------------------
# Against a real store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def database() -> AsyncGenerator[Database]:
    db = Database(db_path=":memory:")
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture()
async def repo(database: Database) -> Repository:
    """Repository over a fresh in-memory database."""
    return Repository(database)


class TestWithRepository:
    @pytest.mark.asyncio()
    async def test_back_to_back_passes_trigger_once(
        self,
        repo: Repository,
        sample_alert: PriceAlert,
        now: datetime.datetime,
    ) -> None:
        await repo.insert_alert(sample_alert)
        await repo.upsert_contact("user-1", email="amina@example.com", full_name="Amina Mushi")

        prices = AsyncMock()
        prices.get_price = AsyncMock(return_value=505.0)
        email = AsyncMock()
        email.send = AsyncMock(return_value=DeliveryResult.ok())
        push = AsyncMock()
        push.send = AsyncMock(return_value=DeliveryResult.ok())
        coordinator = ScanCoordinator(
            store=repo,
            prices=prices,
            directory=repo,
            email=email,
            push=push,
            clock=lambda: now,
        )

        first = await coordinator.run()
        second = await coordinator.run()

        assert first == ScanReport(scanned=1, triggered=1, deactivated=1, sent_emails=1)
        assert second == ScanReport()
        email.send.assert_awaited_once()

        stored = await repo.get_alert(sample_alert.id)
        assert stored is not None
        assert stored.active is False
        assert stored.triggered_at == now
        assert stored.last_checked_price == 505.0

    @pytest.mark.asyncio()
    async def test_expired_row_keeps_null_triggered_at(
        self,
        repo: Repository,
        alert_factory: Callable[..., PriceAlert],
        now: datetime.datetime,
    ) -> None:
        alert = alert_factory(
            direction=AlertDirection.BELOW,
            expires_at=now - datetime.timedelta(days=1),
        )
        await repo.insert_alert(alert)

        prices = AsyncMock()
        prices.get_price = AsyncMock(return_value=100.0)
        coordinator = ScanCoordinator(
            store=repo,
            prices=prices,
            directory=repo,
            email=AsyncMock(),
            push=AsyncMock(),
            clock=lambda: now,
        )

        report = await coordinator.run()

        assert report == ScanReport(scanned=1, deactivated=1)
        stored = await repo.get_alert(alert.id)
        assert stored is not None
        assert stored.active is False
        assert stored.triggered_at is None

    @pytest.mark.asyncio()
    async def test_unreadable_row_does_not_abort_the_pass(
        self,
        database: Database,
        repo: Repository,
        alert_factory: Callable[..., PriceAlert],
        now: datetime.datetime,
    ) -> None:
        await repo.insert_alert(alert_factory(id="good"))
        await repo.insert_alert(alert_factory(id="broken"))
        await repo.insert_alert(alert_factory(id="odd-expiry"))
        await database.connection.execute(
            "UPDATE price_alerts SET created_at = 'garbage' WHERE id = 'broken'"
        )
        await database.connection.execute(
            "UPDATE price_alerts SET expires_at = 'not-a-date' WHERE id = 'odd-expiry'"
        )
        await database.connection.commit()

        prices = AsyncMock()
        prices.get_price = AsyncMock(return_value=505.0)
        email = AsyncMock()
        email.send = AsyncMock(return_value=DeliveryResult.ok())
        push = AsyncMock()
        push.send = AsyncMock(return_value=DeliveryResult.ok())
        coordinator = ScanCoordinator(
            store=repo,
            prices=prices,
            directory=repo,
            email=email,
            push=push,
            clock=lambda: now,
        )

        report = await coordinator.run()

        # The unparsable expiry is treated as no expiry, so that alert fires too
        assert report.scanned == 2
        assert report.triggered == 2
        good = await repo.get_alert("good")
        assert good is not None
        assert good.active is False
