"""Web Push subscription routes.

The browser posts the subscription object it received from the push
service; the VAPID public key it needs to subscribe is served here too.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field

from Price_Alerts.data.repository import Repository
from Price_Alerts.models.notifications import PushSubscription
from Price_Alerts.notifications.push import PushChannel
from Price_Alerts.web.deps import get_current_user, get_push_channel, get_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/alerts/subscriptions", tags=["subscriptions"])


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscriptionIn(BaseModel):
    """Browser ``PushSubscription.toJSON()`` shape."""

    endpoint: str = Field(min_length=1, pattern=r"^https?://")
    keys: SubscriptionKeys


class SubscriptionRemove(BaseModel):
    endpoint: str = Field(min_length=1)


@router.get("/vapid-key")
async def vapid_public_key(
    channel: Annotated[PushChannel, Depends(get_push_channel)],
) -> dict[str, str]:
    """Return the VAPID public key, or 404 when push is not configured."""
    if not channel.configured:
        raise HTTPException(status_code=404, detail="Web Push is not configured")
    return {"publicKey": channel.public_key}


@router.post("")
async def save_subscription(
    payload: SubscriptionIn,
    user_id: Annotated[str, Depends(get_current_user)],
    repo: Annotated[Repository, Depends(get_repository)],
    user_agent: Annotated[str | None, Header()] = None,
) -> dict[str, bool]:
    """Store the subscription, replacing any row for the same endpoint."""
    await repo.upsert_push_subscription(
        PushSubscription(
            user_id=user_id,
            endpoint=payload.endpoint,
            p256dh=payload.keys.p256dh,
            auth=payload.keys.auth,
            user_agent=user_agent,
        )
    )
    logger.info("Saved push subscription for user %s", user_id)
    return {"success": True}


@router.delete("")
async def remove_subscription(
    payload: SubscriptionRemove,
    user_id: Annotated[str, Depends(get_current_user)],
    repo: Annotated[Repository, Depends(get_repository)],
) -> dict[str, bool]:
    """Remove one of the caller's subscriptions. Unknown endpoints are a no-op."""
    removed = await repo.delete_push_subscription(user_id, payload.endpoint)
    logger.info("Removed push subscription for user %s (matched=%s)", user_id, removed)
    return {"success": True}
