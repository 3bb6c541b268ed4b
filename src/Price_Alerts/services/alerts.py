"""Owner-facing alert CRUD.

Creation and target edits consult the current market price to decide which
way the alert watches: a target at or above the market price waits for the
price to rise, a target below it waits for a drop.
"""

from __future__ import annotations

import datetime
import logging
import uuid

from Price_Alerts.data.repository import Repository
from Price_Alerts.engine.evaluator import assign_direction
from Price_Alerts.engine.protocols import PriceLookup
from Price_Alerts.models.alert import AlertCreate, AlertPatch, AlertUpdate, PriceAlert
from Price_Alerts.utils.exceptions import AlertNotFoundError

logger = logging.getLogger(__name__)


class AlertService:
    """Create, edit, delete, and list one user's price alerts."""

    def __init__(self, repository: Repository, prices: PriceLookup) -> None:
        self._repo = repository
        self._prices = prices

    async def list_alerts(self, user_id: str) -> list[PriceAlert]:
        """Return the user's alerts, newest first."""
        return await self._repo.list_alerts_for_user(user_id)

    async def create_alert(self, user_id: str, payload: AlertCreate) -> PriceAlert:
        """Persist a new active alert with a direction fixed from the market."""
        market_price = await self._prices.get_price(payload.company_symbol)
        direction, reference = assign_direction(payload.target_price, market_price)
        now = datetime.datetime.now(datetime.UTC)

        alert = PriceAlert(
            id=str(uuid.uuid4()),
            user_id=user_id,
            company_id=payload.company_id,
            company_symbol=payload.company_symbol,
            company_name=payload.company_name,
            target_price=payload.target_price,
            direction=direction,
            comment=payload.comment,
            created_at=now,
            updated_at=now,
            expires_at=payload.expires_at,
            active=True,
            last_checked_price=reference,
        )
        await self._repo.insert_alert(alert)
        logger.info(
            "Created alert %s for %s: %s %s (reference %s)",
            alert.id,
            alert.company_symbol,
            alert.direction.value,
            alert.target_price,
            reference,
        )
        return alert

    async def update_alert(self, user_id: str, alert_id: str, payload: AlertUpdate) -> PriceAlert:
        """Apply an owner edit.

        A new target recomputes direction and the reference price. Switching
        an alert back on clears ``triggered_at`` so it can fire again.

        Raises:
            AlertNotFoundError: If the alert does not exist or is not the
                user's.
        """
        existing = await self._repo.get_alert(alert_id, user_id=user_id)
        if existing is None:
            raise AlertNotFoundError(alert_id)

        fields = payload.model_fields_set
        changes: dict[str, object] = {"updated_at": datetime.datetime.now(datetime.UTC)}

        if "target_price" in fields and payload.target_price is not None:
            market_price = await self._prices.get_price(existing.company_symbol)
            direction, reference = assign_direction(payload.target_price, market_price)
            changes.update(
                target_price=payload.target_price,
                direction=direction,
                last_checked_price=reference,
            )
        if "comment" in fields:
            changes["comment"] = payload.comment
        if "expires_at" in fields:
            changes["expires_at"] = payload.expires_at
        if "active" in fields and payload.active is not None:
            changes["active"] = payload.active
            if payload.active:
                changes["triggered_at"] = None

        updated = await self._repo.update_alert(
            alert_id, AlertPatch(**changes), user_id=user_id
        )
        if updated is None:
            raise AlertNotFoundError(alert_id)
        logger.info("Updated alert %s (%s)", alert_id, ", ".join(sorted(fields)))
        return updated

    async def delete_alert(self, user_id: str, alert_id: str) -> None:
        """Remove one of the user's alerts.

        Raises:
            AlertNotFoundError: If nothing was deleted.
        """
        if not await self._repo.delete_alert(alert_id, user_id=user_id):
            raise AlertNotFoundError(alert_id)
        logger.info("Deleted alert %s", alert_id)
