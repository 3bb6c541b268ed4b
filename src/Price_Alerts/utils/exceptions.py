"""Custom exception hierarchy for the price alert engine.

Upstream market-data failures inherit from DataFetchError, which carries
contextual information about which symbol and source were involved. Store
failures are kept separate because only the initial alert load is fatal.
"""


class DataFetchError(Exception):
    """Base exception for all market-data fetching failures.

    Attributes:
        symbol: The security symbol involved in the failure.
        source: The data source that failed (e.g., "dse").
        http_status: The HTTP status code, if the failure was HTTP-related.
    """

    def __init__(
        self,
        message: str,
        *,
        symbol: str,
        source: str,
        http_status: int | None = None,
    ) -> None:
        self.symbol = symbol
        self.source = source
        self.http_status = http_status
        super().__init__(message)


class SymbolNotFoundError(DataFetchError):
    """Raised when a symbol is absent from the exchange snapshot."""


class DataSourceUnavailableError(DataFetchError):
    """Raised when the exchange API is unreachable or returning errors."""


class AlertStoreError(Exception):
    """Raised when the alert store cannot be read or written."""


class AlertNotFoundError(Exception):
    """Raised when an owner-scoped alert lookup finds no row.

    Attributes:
        alert_id: The alert identifier that was requested.
    """

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")
