"""
Operator commands for the marketplace payouts backend.
"""

import asyncio
import sys
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from marketplace_payouts.core.config import settings
from marketplace_payouts.core.database import (
    DatabaseManager,
    close_database,
    get_async_session,
    init_database,
)
from marketplace_payouts.core.exceptions import MarketplacePayoutsException
from marketplace_payouts.core.logging import setup_logging, get_logger
from marketplace_payouts.services.earnings_calculator import calculate_vendor_earnings
from marketplace_payouts.scheduler.payout_scheduler import trigger_payout_processing
from marketplace_payouts.services.payout_service import PayoutService

console = Console()
logger = get_logger(__name__)
app = typer.Typer(help="Marketplace payout management commands")
T = TypeVar("T")


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}")


def _run(command: Callable[[], Awaitable[T]]) -> T:
    """Run an async command with logging and the database set up around it."""
    async def _wrapped():
        setup_logging()
        await init_database()
        try:
            return await command()
        finally:
            await close_database()

    try:
        return asyncio.run(_wrapped())
    except MarketplacePayoutsException as e:
        logger.error("Command failed", code=e.code, error=e.message)
        console.print(f"[red]❌ {e.message}[/red] ({e.code})")
        sys.exit(1)


@app.command("init-db")
def init_db():
    """Create all tables."""
    _run(DatabaseManager.create_tables)
    console.print("✅ Database initialized successfully!")


@app.command("drop-db")
def drop_db(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Drop all tables."""
    if not yes and not typer.confirm("Are you sure you want to drop all tables?"):
        console.print("❌ Operation cancelled")
        return

    _run(DatabaseManager.drop_tables)
    console.print("🗑️ All tables dropped!")


@app.command("run-payouts")
def run_payouts(
    run_date: Optional[str] = typer.Option(None, "--date", help="Run as of this date (YYYY-MM-DD)")
):
    """Run the scheduled payout batch once."""
    today = _parse_date(run_date) if run_date else None
    summary = _run(lambda: trigger_payout_processing(today))

    table = Table(title=f"Payout run {summary.run_date.isoformat()}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in summary.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)

    problems = [o for o in summary.outcomes if o.error]
    if problems:
        errors = Table(title="Vendors needing review")
        errors.add_column("Vendor", style="cyan")
        errors.add_column("Outcome", style="yellow")
        errors.add_column("Reason", style="red")
        for outcome in problems:
            errors.add_row(outcome.vendor_id, outcome.outcome.value, outcome.error)
        console.print(errors)


@app.command()
def earnings(vendor_id: str, period_start: str, period_end: str):
    """Preview a vendor's earnings for a date range (inclusive)."""
    start = _parse_date(period_start)
    end = _parse_date(period_end)

    async def _earnings():
        async with get_async_session() as db:
            return await calculate_vendor_earnings(db, vendor_id, start, end)

    result = _run(_earnings)

    table = Table(title=f"Earnings for {vendor_id} {start}..{end}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Paid orders", str(result.order_count))
    table.add_row("Gross sales", str(result.wallet_addition))
    table.add_row("Platform fee", str(result.platform_fee))
    table.add_row("Net earnings", str(result.total_earnings))
    console.print(table)


@app.command()
def history(vendor_id: str):
    """Show a vendor's payout history, newest first."""
    async def _history():
        async with get_async_session() as db:
            service = PayoutService(db)
            try:
                await service.get_vendor(vendor_id)
                return await service.get_vendor_payout_history(vendor_id)
            finally:
                await service.provider.aclose()

    payouts = _run(_history)
    if not payouts:
        console.print(f"No payouts for {vendor_id}")
        return

    table = Table(title=f"Payouts for {vendor_id}")
    table.add_column("ID", style="cyan")
    table.add_column("Period")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    table.add_column("Transaction / Reason")
    for payout in payouts:
        table.add_row(
            payout.id,
            f"{payout.period_start}..{payout.period_end}",
            f"{payout.amount} {payout.currency}",
            payout.status.value,
            payout.transaction_id or payout.failure_reason or ""
        )
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes")
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "marketplace_payouts.api.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None
    )


@app.command()
def scheduler():
    """Run the standalone payout scheduler service."""
    from marketplace_payouts.scheduler.main import main

    asyncio.run(main())


if __name__ == "__main__":
    app()
