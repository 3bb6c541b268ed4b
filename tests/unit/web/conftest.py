"""Shared fixtures for web route tests.

Builds the app with explicit Settings and overrides the service dependencies
so route tests never hit a database, the exchange, or a mail server.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from Price_Alerts.config import Settings
from Price_Alerts.web.app import create_app

CRON_SECRET: str = "s3cret"


@pytest.fixture()
def settings() -> Settings:
    return Settings(cron_secret=CRON_SECRET, db_path=":memory:")


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture()
def override(app: FastAPI) -> Callable[[Callable[..., Any], object], None]:
    """Register a dependency override that returns *value*."""

    def _override(dependency: Callable[..., Any], value: object) -> None:
        async def _provide() -> object:
            return value

        app.dependency_overrides[dependency] = _provide

    return _override


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
