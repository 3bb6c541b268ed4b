"""Repository layer for all database query operations.

Provides typed operations backed by a Database instance. The same class
serves as the engine's alert store (``list_active`` / ``update_alert``) and
subscription directory (``get_contact`` / ``list_push_subscriptions``), and
backs the owner-facing CRUD endpoints. All values are bound as parameters;
the only interpolated SQL is the column list, which comes from
``AlertPatch`` field names.
"""

import datetime
import enum
import logging
import sqlite3
from collections.abc import Iterable
from typing import Any

from Price_Alerts.data.database import Database
from Price_Alerts.models.alert import AlertPatch, PriceAlert
from Price_Alerts.models.enums import AlertDirection
from Price_Alerts.models.notifications import PushSubscription, UserContact
from Price_Alerts.utils.exceptions import AlertStoreError

logger = logging.getLogger(__name__)

_ALERT_COLUMNS = (
    "id, user_id, company_id, company_symbol, company_name, target_price, direction, "
    "comment, created_at, updated_at, expires_at, active, triggered_at, last_checked_price"
)


class Repository:
    """Query interface for the price alert persistence layer.

    All methods operate through the provided Database instance's connection.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Alert store (scan engine)
    # ------------------------------------------------------------------

    async def list_active(self) -> list[PriceAlert]:
        """Return every alert with ``active = 1``.

        Raises:
            AlertStoreError: If the table cannot be read. Individual rows
                that cannot be parsed are logged and skipped.
        """
        try:
            conn = self._db.connection
            cursor = await conn.execute(
                f"SELECT {_ALERT_COLUMNS} FROM price_alerts WHERE active = 1"  # noqa: S608
            )
            rows = await cursor.fetchall()
        except (sqlite3.Error, RuntimeError) as exc:
            msg = f"Failed to load active alerts: {exc}"
            raise AlertStoreError(msg) from exc
        return _rows_to_alerts(rows)

    async def update_alert(
        self,
        alert_id: str,
        patch: AlertPatch,
        *,
        require_active: bool = False,
        user_id: str | None = None,
    ) -> PriceAlert | None:
        """Apply *patch* to one alert and return the updated row.

        With ``require_active`` the write only lands while the row is still
        active, so of two overlapping scans only one deactivates a given
        alert. ``user_id`` scopes the write to the alert's owner.

        Returns:
            The updated alert, or None when no row matched (missing,
            foreign, or already deactivated by another pass).
        """
        changes = patch.changes()
        if not changes:
            return await self.get_alert(alert_id, user_id=user_id)

        assignments = ", ".join(f"{column} = ?" for column in changes)
        params: list[Any] = [_to_db(value) for value in changes.values()]
        where = "id = ?"
        params.append(alert_id)
        if require_active:
            where += " AND active = 1"
        if user_id is not None:
            where += " AND user_id = ?"
            params.append(user_id)

        conn = self._db.connection
        cursor = await conn.execute(
            f"UPDATE price_alerts SET {assignments} WHERE {where}",  # noqa: S608
            params,
        )
        await conn.commit()
        if cursor.rowcount == 0:
            logger.debug("Update on alert %s matched no rows", alert_id)
            return None
        return await self.get_alert(alert_id)

    # ------------------------------------------------------------------
    # Alert CRUD (owner endpoints)
    # ------------------------------------------------------------------

    async def insert_alert(self, alert: PriceAlert) -> None:
        """Persist a newly created alert."""
        conn = self._db.connection
        await conn.execute(
            f"INSERT INTO price_alerts ({_ALERT_COLUMNS}) "  # noqa: S608
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                alert.id,
                alert.user_id,
                alert.company_id,
                alert.company_symbol,
                alert.company_name,
                alert.target_price,
                alert.direction.value,
                alert.comment,
                alert.created_at.isoformat(),
                alert.updated_at.isoformat(),
                _to_db(alert.expires_at),
                int(alert.active),
                _to_db(alert.triggered_at),
                alert.last_checked_price,
            ),
        )
        await conn.commit()

    async def get_alert(self, alert_id: str, *, user_id: str | None = None) -> PriceAlert | None:
        """Return one alert, optionally scoped to its owner, or None."""
        conn = self._db.connection
        if user_id is not None:
            cursor = await conn.execute(
                f"SELECT {_ALERT_COLUMNS} FROM price_alerts "  # noqa: S608
                "WHERE id = ? AND user_id = ?",
                (alert_id, user_id),
            )
        else:
            cursor = await conn.execute(
                f"SELECT {_ALERT_COLUMNS} FROM price_alerts WHERE id = ?",  # noqa: S608
                (alert_id,),
            )
        row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return _row_to_alert(row)
        except (ValueError, TypeError) as exc:
            msg = f"Alert {alert_id} is unreadable: {exc}"
            raise AlertStoreError(msg) from exc

    async def list_alerts_for_user(self, user_id: str) -> list[PriceAlert]:
        """Return a user's alerts, newest first."""
        conn = self._db.connection
        cursor = await conn.execute(
            f"SELECT {_ALERT_COLUMNS} FROM price_alerts "  # noqa: S608
            "WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return _rows_to_alerts(rows)

    async def delete_alert(self, alert_id: str, *, user_id: str) -> bool:
        """Delete an owner's alert. Returns False if nothing was deleted."""
        conn = self._db.connection
        cursor = await conn.execute(
            "DELETE FROM price_alerts WHERE id = ? AND user_id = ?",
            (alert_id, user_id),
        )
        await conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Subscription directory
    # ------------------------------------------------------------------

    async def list_push_subscriptions(
        self, user_ids: Iterable[str]
    ) -> dict[str, list[PushSubscription]]:
        """Return push subscriptions grouped by owner.

        Users without subscriptions are omitted from the result.
        """
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        conn = self._db.connection
        cursor = await conn.execute(
            "SELECT user_id, endpoint, p256dh, auth, user_agent FROM push_subscriptions "  # noqa: S608
            f"WHERE user_id IN ({placeholders}) ORDER BY updated_at",
            ids,
        )
        rows = await cursor.fetchall()
        grouped: dict[str, list[PushSubscription]] = {}
        for row in rows:
            subscription = PushSubscription(
                user_id=row[0],
                endpoint=row[1],
                p256dh=row[2],
                auth=row[3],
                user_agent=row[4],
            )
            grouped.setdefault(subscription.user_id, []).append(subscription)
        return grouped

    async def get_contact(self, user_id: str) -> UserContact:
        """Return a user's email and display name.

        The display name prefers ``full_name`` over ``name``. Unknown users
        yield an empty contact rather than an error.
        """
        conn = self._db.connection
        cursor = await conn.execute(
            "SELECT email, full_name, name FROM user_contacts WHERE user_id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return UserContact()
        return UserContact(email=row[0] or None, name=row[1] or row[2] or None)

    async def upsert_contact(
        self,
        user_id: str,
        *,
        email: str | None,
        full_name: str | None = None,
        name: str | None = None,
    ) -> None:
        """Insert or replace a user's contact record."""
        conn = self._db.connection
        await conn.execute(
            "INSERT INTO user_contacts (user_id, email, full_name, name) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET "
            "email = excluded.email, full_name = excluded.full_name, name = excluded.name",
            (user_id, email, full_name, name),
        )
        await conn.commit()

    async def upsert_push_subscription(self, subscription: PushSubscription) -> None:
        """Save a push subscription, replacing any row with the same endpoint."""
        conn = self._db.connection
        updated_at = datetime.datetime.now(datetime.UTC).isoformat()
        await conn.execute(
            "INSERT INTO push_subscriptions "
            "(endpoint, user_id, p256dh, auth, user_agent, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(endpoint) DO UPDATE SET "
            "user_id = excluded.user_id, p256dh = excluded.p256dh, auth = excluded.auth, "
            "user_agent = excluded.user_agent, updated_at = excluded.updated_at",
            (
                subscription.endpoint,
                subscription.user_id,
                subscription.p256dh,
                subscription.auth,
                subscription.user_agent,
                updated_at,
            ),
        )
        await conn.commit()

    async def delete_push_subscription(self, user_id: str, endpoint: str) -> bool:
        """Remove one of a user's push subscriptions."""
        conn = self._db.connection
        cursor = await conn.execute(
            "DELETE FROM push_subscriptions WHERE user_id = ? AND endpoint = ?",
            (user_id, endpoint),
        )
        await conn.commit()
        return cursor.rowcount > 0


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _to_db(value: object) -> object:
    """Convert a model value to its SQLite column representation."""
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _parse_ts(value: str | None, *, alert_id: str, column: str) -> datetime.datetime | None:
    """Parse an optional timestamp column; an unreadable value counts as unset."""
    if value is None:
        return None
    try:
        return datetime.datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Alert %s has unreadable %s %r; treating it as unset", alert_id, column, value)
        return None


def _rows_to_alerts(rows: Iterable[sqlite3.Row]) -> list[PriceAlert]:
    """Convert rows, skipping any that cannot form a valid PriceAlert."""
    alerts: list[PriceAlert] = []
    for row in rows:
        try:
            alerts.append(_row_to_alert(row))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping unreadable alert row %s: %s", row[0], exc)
    return alerts


def _row_to_alert(row: sqlite3.Row) -> PriceAlert:
    """Convert a database row tuple to a PriceAlert model."""
    return PriceAlert(
        id=row[0],
        user_id=row[1],
        company_id=row[2],
        company_symbol=row[3],
        company_name=row[4],
        target_price=row[5],
        direction=AlertDirection(row[6]),
        comment=row[7],
        created_at=datetime.datetime.fromisoformat(row[8]),
        updated_at=datetime.datetime.fromisoformat(row[9]),
        expires_at=_parse_ts(row[10], alert_id=row[0], column="expires_at"),
        active=bool(row[11]),
        triggered_at=_parse_ts(row[12], alert_id=row[0], column="triggered_at"),
        last_checked_price=row[13],
    )
