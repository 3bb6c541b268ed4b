"""CLI entry point for the price alert service.

Provides the ``price-alerts`` command: ``check`` runs one scan pass against
the configured database, ``serve`` starts the HTTP API, and ``alerts list``
shows one user's alerts.

This is the ONLY module where console output is allowed. All other modules
use ``logging``. Async internals are bridged to typer's synchronous
interface via ``asyncio.run()``.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from Price_Alerts.config import Settings
from Price_Alerts.logging_config import configure_logging
from Price_Alerts.models import PriceAlert, ScanReport
from Price_Alerts.utils.exceptions import AlertStoreError

# ---------------------------------------------------------------------------
# Typer app and sub-apps
# ---------------------------------------------------------------------------

app = typer.Typer(name="price-alerts", help="Price alert scanner and API")
alerts_app = typer.Typer(help="Inspect stored alerts")
app.add_typer(alerts_app, name="alerts")

# Rich console for formatted output
console = Console()


def _load_settings() -> Settings:
    """Read settings from the environment, exiting with code 2 when invalid."""
    try:
        return Settings.from_env()
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(code=2) from exc


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@app.command()
def check(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Suppress info logging")] = False,
) -> None:
    """Run one alert scan pass and print its report."""
    configure_logging(verbose=verbose, quiet=quiet)
    settings = _load_settings()
    try:
        report = asyncio.run(_check_async(settings))
    except AlertStoreError as exc:
        console.print(f"[red]Scan failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    _render_report(report)


async def _check_async(settings: Settings) -> ScanReport:
    """Wire the collaborators from *settings* and run a single pass."""
    from Price_Alerts.data import Database, Repository
    from Price_Alerts.engine import ScanCoordinator
    from Price_Alerts.notifications import EmailChannel, PushChannel
    from Price_Alerts.services import MarketPriceService, RateLimiter, ServiceCache

    prices = MarketPriceService(
        cache=ServiceCache(),
        rate_limiter=RateLimiter(),
        url=settings.market_data_url,
        timeout=settings.market_data_timeout,
        cache_ttl=settings.market_data_cache_ttl,
    )
    try:
        async with Database(settings.db_path) as db:
            repo = Repository(db)
            coordinator = ScanCoordinator(
                store=repo,
                prices=prices,
                directory=repo,
                email=EmailChannel(settings.mail),
                push=PushChannel(settings.push),
                call_timeout=settings.scan_call_timeout,
                max_concurrency=settings.scan_max_concurrency,
            )
            return await coordinator.run()
    finally:
        await prices.aclose()


def _render_report(report: ScanReport) -> None:
    table = Table(title="Scan Report", show_lines=False)
    table.add_column("Scanned", justify="right")
    table.add_column("Triggered", justify="right", style="bold")
    table.add_column("Deactivated", justify="right")
    table.add_column("Emails", justify="right")
    table.add_column("Push", justify="right")
    table.add_row(
        str(report.scanned),
        str(report.triggered),
        str(report.deactivated),
        str(report.sent_emails),
        str(report.sent_push),
    )
    console.print(table)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on")] = 8000,
) -> None:
    """Start the HTTP API with uvicorn."""
    import uvicorn

    console.print(f"[bold]Serving price alerts on http://{host}:{port}[/bold]")
    uvicorn.run(
        "Price_Alerts.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
    )


# ---------------------------------------------------------------------------
# alerts list
# ---------------------------------------------------------------------------


@alerts_app.command("list")
def alerts_list(
    user_id: Annotated[str, typer.Argument(help="Owner whose alerts to show")],
) -> None:
    """List a user's alerts, newest first."""
    settings = _load_settings()
    alerts = asyncio.run(_alerts_list_async(settings, user_id))
    _render_alerts(user_id, alerts)


async def _alerts_list_async(settings: Settings, user_id: str) -> list[PriceAlert]:
    from Price_Alerts.data import Database, Repository

    async with Database(settings.db_path) as db:
        return await Repository(db).list_alerts_for_user(user_id)


def _render_alerts(user_id: str, alerts: list[PriceAlert]) -> None:
    if not alerts:
        console.print(f"[yellow]No alerts for user {user_id}.[/yellow]")
        return

    table = Table(title=f"Alerts for {user_id}")
    table.add_column("Symbol", style="bold", width=10)
    table.add_column("Direction", width=9)
    table.add_column("Target", justify="right")
    table.add_column("Last price", justify="right")
    table.add_column("Expires")
    table.add_column("Status")

    for alert in alerts:
        if alert.active:
            status = "[green]active[/green]"
        elif alert.triggered_at is not None:
            status = f"[cyan]triggered {alert.triggered_at:%Y-%m-%d %H:%M}[/cyan]"
        else:
            status = "[dim]inactive[/dim]"
        table.add_row(
            alert.company_symbol,
            alert.direction.value,
            f"{alert.target_price:,.2f}",
            f"{alert.last_checked_price:,.2f}" if alert.last_checked_price is not None else "-",
            f"{alert.expires_at:%Y-%m-%d}" if alert.expires_at is not None else "never",
            status,
        )
    console.print(table)
