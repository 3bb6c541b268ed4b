"""FastAPI route modules for the price alert service.

Re-exports all routers so the application factory can import them:
    from Price_Alerts.web.routes import alerts_router, check_router
"""

from Price_Alerts.web.routes.alerts import router as alerts_router
from Price_Alerts.web.routes.check import router as check_router
from Price_Alerts.web.routes.subscriptions import router as subscriptions_router

__all__ = [
    "alerts_router",
    "check_router",
    "subscriptions_router",
]
