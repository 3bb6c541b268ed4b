"""Logging setup shared by the CLI commands and the web app."""

from __future__ import annotations

import logging
import os

LOG_FORMAT: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# LOG_LEVEL_<KEY> env vars tune one package without touching the rest
_MODULE_LOGGERS: dict[str, str] = {
    "ENGINE": "Price_Alerts.engine",
    "SERVICES": "Price_Alerts.services",
    "NOTIFICATIONS": "Price_Alerts.notifications",
    "DATA": "Price_Alerts.data",
    "WEB": "Price_Alerts.web",
}

# httpx logs every exchange request at INFO; urllib3 backs pywebpush.
# uvicorn.access is replaced by RequestLoggingMiddleware.
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "urllib3", "uvicorn.access")


def _level_from_name(name: str | None) -> int | None:
    if not name:
        return None
    value = logging.getLevelName(name.strip().upper())
    return value if isinstance(value, int) else None


def configure_logging(
    *,
    level: str = "",
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Install the root handler and apply level overrides.

    Priority: verbose > quiet > level param > LOG_LEVEL env > INFO.
    ``force=True`` replaces whatever root config uvicorn installed first.
    """
    if verbose:
        effective = logging.DEBUG
    elif quiet:
        effective = logging.WARNING
    else:
        effective = (
            _level_from_name(level) or _level_from_name(os.environ.get("LOG_LEVEL")) or logging.INFO
        )

    logging.basicConfig(level=effective, format=LOG_FORMAT, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(effective, logging.WARNING))

    for key, logger_name in _MODULE_LOGGERS.items():
        override = _level_from_name(os.environ.get(f"LOG_LEVEL_{key}"))
        if override is not None:
            logging.getLogger(logger_name).setLevel(override)
