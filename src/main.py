"""CLI for the subscription billing system using Typer."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import httpx
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .utils import setup_logging

# Load .env from project directory only
_env_path = Path(__file__).parent.parent / ".env"
load_dotenv(_env_path, override=False)

# CLI styles
STYLE_HEADER = "bold blue"
STYLE_SUCCESS = "bold green"
STYLE_WARNING = "bold yellow"
STYLE_ERROR = "bold red"

STATUS_STYLES = {
    "ACTIVE": "green",
    "SUCCESS": "green",
    "PENDING": "yellow",
    "CANCELLED": "red",
    "FAILED": "red",
}

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="paysub",
    help="Subscription billing - seed data and inspect subscriptions and payments.",
    add_completion=False,
)
console = Console()


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status)
    return f"[{style}]{status}[/{style}]" if style else status


@app.command()
def seed(
    reset: Annotated[bool, typer.Option("--reset", help="Delete all billing rows first")] = False,
    subscription: Annotated[
        bool, typer.Option("--subscription/--no-subscription", help="Also create the fixed active subscription")
    ] = True,
    verbose: Annotated[bool, typer.Option(help="Verbose output")] = False,
):
    """
    Seed the billing database.

    Creates the seed user, the fixed-basic and fixed-pro plans and,
    unless --no-subscription is given, an ACTIVE subscription on fixed-pro.
    Rows that already exist are kept.
    """
    setup_logging(verbose)
    from billing.seed import main as run_seed

    try:
        result = asyncio.run(run_seed(reset=reset, with_subscription=subscription))
    except Exception as e:
        console.print(f"[{STYLE_ERROR}]Seeding failed: {e}[/{STYLE_ERROR}]")
        raise typer.Exit(1)

    console.print(f"[{STYLE_SUCCESS}]Seed complete![/{STYLE_SUCCESS}]")
    console.print(f"  user:         {result.user_email} / {result.user_password} (id={result.user_id})")
    console.print(f"  plans:        {', '.join(result.plan_ids)}")
    if result.active_subscription_id:
        console.print(f"  subscription: {result.active_subscription_id} (ACTIVE)")


async def _load_subscriptions(user_id: Optional[str]):
    from billing.db.session import async_session_factory, engine
    from billing.services.subscription_service import list_subscriptions

    try:
        async with async_session_factory() as db:
            return await list_subscriptions(db, user_id=user_id)
    finally:
        await engine.dispose()


@app.command()
def subscriptions(
    user: Annotated[Optional[str], typer.Option("--user", help="Only this user id")] = None,
    verbose: Annotated[bool, typer.Option(help="Verbose output")] = False,
):
    """
    List subscriptions from the billing database, newest first.
    """
    setup_logging(verbose)
    rows = asyncio.run(_load_subscriptions(user))

    if not rows:
        console.print(f"[{STYLE_WARNING}]No subscriptions found.[/{STYLE_WARNING}]")
        return

    table = Table(title="Subscriptions", header_style=STYLE_HEADER)
    table.add_column("ID")
    table.add_column("User")
    table.add_column("Plan")
    table.add_column("Status")
    table.add_column("Price", justify="right")
    table.add_column("Payment")
    table.add_column("Started")

    for sub in rows:
        table.add_row(
            sub.id,
            sub.user_id,
            sub.plan_id,
            _styled(sub.status),
            f"{sub.price:.2f}",
            sub.payment_id or "-",
            sub.start_date.strftime("%Y-%m-%d %H:%M") if sub.start_date else "-",
        )
    console.print(table)


@app.command()
def transactions(
    subscription_id: Annotated[Optional[str], typer.Option("--subscription", help="Only this subscription id")] = None,
    gateway_url: Annotated[
        Optional[str], typer.Option(help="Payment gateway base URL (default: PAYMENT_SERVICE_URL)")
    ] = None,
    verbose: Annotated[bool, typer.Option(help="Verbose output")] = False,
):
    """
    List payment transactions reported by the payment gateway.
    """
    setup_logging(verbose)
    if gateway_url is None:
        from billing.config import get_settings
        gateway_url = get_settings().payment_service_url

    params = {"subscriptionId": subscription_id} if subscription_id else None
    try:
        resp = httpx.get(f"{gateway_url.rstrip('/')}/payments", params=params, timeout=10)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[{STYLE_ERROR}]Could not reach payment gateway at {gateway_url}: {e}[/{STYLE_ERROR}]")
        raise typer.Exit(1)

    rows = resp.json()
    if not rows:
        console.print(f"[{STYLE_WARNING}]No transactions found.[/{STYLE_WARNING}]")
        return

    table = Table(title="Payment transactions", header_style=STYLE_HEADER)
    table.add_column("ID")
    table.add_column("Subscription")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Last response")

    for tx in rows:
        table.add_row(
            tx["id"],
            tx["subscriptionId"],
            f"{tx['amount']:.2f}",
            _styled(tx["status"]),
            str(tx["attempts"]),
            tx.get("response") or "-",
        )
    console.print(table)


if __name__ == "__main__":
    app()
