"""Dependency injection providers for FastAPI route handlers.

Shared resources (Database, price service, notification channels, settings)
are created once during the application lifespan and stored on
``app.state``. Route handlers declare dependencies and FastAPI injects them.
"""

import hmac
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from Price_Alerts.config import Settings
from Price_Alerts.data.database import Database
from Price_Alerts.data.repository import Repository
from Price_Alerts.engine.coordinator import ScanCoordinator
from Price_Alerts.notifications.mailer import EmailChannel
from Price_Alerts.notifications.push import PushChannel
from Price_Alerts.services.alerts import AlertService
from Price_Alerts.services.market_data import MarketPriceService

logger = logging.getLogger(__name__)


async def get_settings(request: Request) -> Settings:
    """Return the Settings the application was created with."""
    settings: Settings = request.app.state.settings
    return settings


async def get_database(request: Request) -> AsyncGenerator[Database]:
    """Yield the Database instance from application state."""
    db: Database = request.app.state.database
    yield db


async def get_repository(
    db: Annotated[Database, Depends(get_database)],
) -> Repository:
    """Return a Repository backed by the shared Database."""
    return Repository(db)


async def get_price_service(request: Request) -> MarketPriceService:
    """Return the app-wide price service so its snapshot cache is shared."""
    service: MarketPriceService = request.app.state.price_service
    return service


async def get_alert_service(
    repo: Annotated[Repository, Depends(get_repository)],
    prices: Annotated[MarketPriceService, Depends(get_price_service)],
) -> AlertService:
    """Return an AlertService over the shared repository and price service."""
    return AlertService(repo, prices)


async def get_push_channel(request: Request) -> PushChannel:
    """Return the app-wide Web Push channel."""
    channel: PushChannel = request.app.state.push_channel
    return channel


async def get_coordinator(
    request: Request,
    repo: Annotated[Repository, Depends(get_repository)],
    prices: Annotated[MarketPriceService, Depends(get_price_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ScanCoordinator:
    """Return a ScanCoordinator wired to the application's collaborators."""
    email: EmailChannel = request.app.state.email_channel
    push: PushChannel = request.app.state.push_channel
    return ScanCoordinator(
        store=repo,
        prices=prices,
        directory=repo,
        email=email,
        push=push,
        call_timeout=settings.scan_call_timeout,
        max_concurrency=settings.scan_max_concurrency,
    )


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Return the authenticated user id set by the upstream auth proxy.

    Raises HTTP 401 when the header is missing or blank.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if not scheme or not token or scheme.lower() != "bearer":
        return None
    return token.strip() or None


async def verify_cron_secret(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """Guard the scan trigger with the shared cron secret.

    The secret may arrive as a Bearer token, an ``x-cron-secret`` header, or a
    ``secret`` query parameter, checked in that order.

    Raises:
        HTTPException: 500 when no secret is configured, 401 on mismatch.
    """
    expected = settings.cron_secret
    if not expected:
        logger.error("Scan trigger called but no cron secret is configured")
        raise HTTPException(status_code=500, detail="Missing CRON_SECRET or ALERT_CRON_SECRET")

    provided = (
        _extract_bearer_token(request.headers.get("authorization"))
        or request.headers.get("x-cron-secret")
        or request.query_params.get("secret")
    )
    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected scan trigger with invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")
