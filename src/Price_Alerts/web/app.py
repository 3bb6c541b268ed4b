"""FastAPI app factory and application lifespan."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from Price_Alerts.config import Settings
from Price_Alerts.data.database import Database
from Price_Alerts.logging_config import configure_logging
from Price_Alerts.notifications.mailer import EmailChannel
from Price_Alerts.notifications.push import PushChannel
from Price_Alerts.services.cache import ServiceCache
from Price_Alerts.services.market_data import MarketPriceService
from Price_Alerts.services.rate_limiter import RateLimiter
from Price_Alerts.web.middleware import RequestLoggingMiddleware, register_exception_handlers
from Price_Alerts.web.routes import alerts_router, check_router, subscriptions_router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Explicit settings; read from the environment when omitted.
    """
    configure_logging()
    resolved = settings if settings is not None else Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        database = Database(resolved.db_path)
        await database.connect()
        price_service = MarketPriceService(
            cache=ServiceCache(),
            rate_limiter=RateLimiter(),
            url=resolved.market_data_url,
            timeout=resolved.market_data_timeout,
            cache_ttl=resolved.market_data_cache_ttl,
        )
        app.state.database = database
        app.state.price_service = price_service
        app.state.email_channel = EmailChannel(resolved.mail)
        app.state.push_channel = PushChannel(resolved.push)
        logger.info(
            "Price alert service started (db=%s, email=%s, push=%s)",
            resolved.db_path,
            "on" if resolved.mail.configured else "off",
            "on" if resolved.push.configured else "off",
        )
        try:
            yield
        finally:
            await price_service.aclose()
            await database.close()
            logger.info("Price alert service stopped")

    app = FastAPI(title="Price Alerts", lifespan=lifespan)
    app.state.settings = resolved

    register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)

    # Subscription paths must be matched before /api/alerts/{alert_id}
    app.include_router(check_router)
    app.include_router(subscriptions_router)
    app.include_router(alerts_router)

    @app.get("/api/health")
    async def health_check() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app
