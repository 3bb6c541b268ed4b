"""Exchange market-data service: the engine's price lookup.

The exchange publishes one endpoint listing every listed company with its
latest market and opening prices. A single snapshot fetch therefore serves
all symbols; it is cached for a short TTL and shared by concurrent lookups
so a scan over many symbols costs one upstream request.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Final

import httpx

from Price_Alerts.config import (
    DEFAULT_MARKET_DATA_CACHE_TTL,
    DEFAULT_MARKET_DATA_TIMEOUT,
    DEFAULT_MARKET_DATA_URL,
)
from Price_Alerts.services._helpers import positive_or_none, safe_float
from Price_Alerts.services.cache import ServiceCache
from Price_Alerts.services.rate_limiter import RateLimiter
from Price_Alerts.utils.exceptions import (
    DataFetchError,
    DataSourceUnavailableError,
    SymbolNotFoundError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EXCHANGE_SOURCE: Final[str] = "dse"
SNAPSHOT_CACHE_KEY: Final[str] = "dse:snapshot"
_SNAPSHOT_LABEL: Final[str] = "*"


class MarketPriceService:
    """Async price lookup backed by the exchange market-data endpoint.

    Usage::

        service = MarketPriceService(cache=ServiceCache(), rate_limiter=RateLimiter())
        price = await service.get_price("CRDB")  # float or None
        await service.aclose()
    """

    def __init__(
        self,
        cache: ServiceCache,
        rate_limiter: RateLimiter,
        *,
        url: str = DEFAULT_MARKET_DATA_URL,
        timeout: float = DEFAULT_MARKET_DATA_TIMEOUT,
        cache_ttl: int = DEFAULT_MARKET_DATA_CACHE_TTL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._url = url
        self._timeout = timeout
        self._cache_ttl = cache_ttl
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=timeout, write=5.0, pool=5.0),
            headers={"Accept": "application/json"},
        )
        self._refresh_lock = asyncio.Lock()

    async def aclose(self) -> None:
        """Close the shared httpx client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_price(self, symbol: str) -> float | None:
        """Return the best-known positive price for *symbol*, or None.

        Never raises: upstream errors, unknown symbols, and non-positive
        prices all come back as None.
        """
        try:
            return await self.fetch_price(symbol)
        except SymbolNotFoundError:
            logger.info("No usable price for %s in exchange snapshot", symbol)
            return None
        except DataFetchError as exc:
            logger.warning("Price lookup failed for %s: %s", symbol, exc)
            return None

    async def fetch_price(self, symbol: str) -> float:
        """Return the current price for *symbol*.

        Raises:
            SymbolNotFoundError: If the symbol is missing or has no positive price.
            DataSourceUnavailableError: If the exchange cannot be reached and
                no recent snapshot is cached.
        """
        symbol = symbol.strip()
        prices = await self.fetch_snapshot()
        price = positive_or_none(prices.get(symbol))
        if price is None:
            raise SymbolNotFoundError(
                f"Symbol '{symbol}' has no positive price in the exchange snapshot",
                symbol=symbol,
                source=EXCHANGE_SOURCE,
            )
        return price

    async def fetch_snapshot(self) -> dict[str, float]:
        """Return a ``symbol -> price`` map for every priced company.

        Concurrent callers share one upstream request. When the exchange is
        down, a snapshot within the cache's stale window is served instead.
        """
        cached = await self._cache.get(SNAPSHOT_CACHE_KEY)
        if cached is not None:
            return _deserialize_prices(cached)

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            cached = await self._cache.get(SNAPSHOT_CACHE_KEY)
            if cached is not None:
                return _deserialize_prices(cached)

            try:
                prices = await self._fetch_from_exchange()
            except DataSourceUnavailableError as exc:
                stale = await self._cache.get_stale(SNAPSHOT_CACHE_KEY)
                if stale is None:
                    raise
                logger.warning("Exchange unavailable (%s); serving stale snapshot", exc)
                return _deserialize_prices(stale)

            await self._cache.set(SNAPSHOT_CACHE_KEY, json.dumps(prices), self._cache_ttl)
            logger.info("Fetched exchange snapshot: %d priced symbols", len(prices))
            return prices

    # ------------------------------------------------------------------
    # Upstream call
    # ------------------------------------------------------------------

    async def _fetch_from_exchange(self) -> dict[str, float]:
        """Fetch and normalize the market-data list.

        Raises:
            DataSourceUnavailableError: On timeout, transport error, non-200
                status, or a body that is not a JSON list.
        """
        try:
            async with self._rate_limiter.slot():
                response = await asyncio.wait_for(
                    self._client.get(self._url),
                    timeout=self._timeout,
                )
        except TimeoutError as exc:
            msg = f"Exchange market-data request timed out after {self._timeout:.1f}s."
            raise DataSourceUnavailableError(
                msg, symbol=_SNAPSHOT_LABEL, source=EXCHANGE_SOURCE
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"Exchange market-data request failed: {exc}"
            raise DataSourceUnavailableError(
                msg, symbol=_SNAPSHOT_LABEL, source=EXCHANGE_SOURCE
            ) from exc

        if response.status_code != 200:  # noqa: PLR2004
            raise DataSourceUnavailableError(
                f"Exchange returned HTTP {response.status_code}.",
                symbol=_SNAPSHOT_LABEL,
                source=EXCHANGE_SOURCE,
                http_status=response.status_code,
            )

        try:
            rows = response.json()
        except ValueError as exc:
            raise DataSourceUnavailableError(
                "Exchange returned a non-JSON body.",
                symbol=_SNAPSHOT_LABEL,
                source=EXCHANGE_SOURCE,
            ) from exc

        if not isinstance(rows, list):
            raise DataSourceUnavailableError(
                "Exchange market-data body is not a list.",
                symbol=_SNAPSHOT_LABEL,
                source=EXCHANGE_SOURCE,
            )

        return normalize_market_rows(rows)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def normalize_market_rows(rows: list[object]) -> dict[str, float]:
    """Map each company symbol to its market price, else its opening price.

    Rows without a symbol or without any positive price are dropped.
    """
    prices: dict[str, float] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        company = row.get("company")
        symbol = company.get("symbol") if isinstance(company, dict) else None
        if not isinstance(symbol, str) or not symbol.strip():
            continue

        price = positive_or_none(safe_float(row.get("marketPrice")))
        if price is None:
            price = positive_or_none(safe_float(row.get("openingPrice")))
        if price is not None:
            prices[symbol.strip()] = price
    return prices


def _deserialize_prices(data: str) -> dict[str, float]:
    raw: dict[str, float] = json.loads(data)
    return {symbol: float(price) for symbol, price in raw.items()}
