"""Market data, caching, rate limiting, and alert CRUD services.

Re-exports all public service classes so consumers can import directly:
    from Price_Alerts.services import MarketPriceService, AlertService
"""

from Price_Alerts.services.alerts import AlertService
from Price_Alerts.services.cache import CacheEntry, ServiceCache
from Price_Alerts.services.market_data import MarketPriceService
from Price_Alerts.services.rate_limiter import RateLimiter

__all__ = [
    # Infrastructure
    "CacheEntry",
    "RateLimiter",
    "ServiceCache",
    # Data services
    "MarketPriceService",
    # Alerts
    "AlertService",
]
