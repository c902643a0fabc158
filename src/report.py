"""Print the state of recorded cashbacks as a table.

Usage:
    python -m src.report [--chain CURRENCY_ID] [--pending] [--limit N]
"""

import argparse
from asyncio import run

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from src.cashback.config import load_chain_configs
from src.cashback.store import CashbackStore
from src.helpers.config import get_max_payout_attempts
from src.helpers.db import dispose_engine
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from src.cashback.models import Cashback


logger = get_logger(__name__)


def cashback_status(cashback: "Cashback", max_attempts: int | None = None) -> str:
    """Human-readable state of a cashback."""
    if cashback.txid:
        return "paid"
    if max_attempts is not None and cashback.attempts >= max_attempts:
        return "abandoned"
    if cashback.attempts:
        return f"retrying ({cashback.attempts})"
    return "pending"


def build_table(
    cashbacks: "list[Cashback]",
    labels: dict[str, str] | None = None,
    explorer_urls: dict[str, str] | None = None,
    max_attempts: int | None = None,
) -> Table:
    """Render cashbacks as a rich Table."""
    labels = labels or {}
    explorer_urls = explorer_urls or {}

    table = Table(title="Cashbacks")
    table.add_column("Chain", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("Identity", style="yellow")
    table.add_column("Detected", style="green")
    table.add_column("Status", justify="right")
    table.add_column("Payout", style="blue")

    for cashback in cashbacks:
        status = cashback_status(cashback, max_attempts)
        style = {"paid": "green", "abandoned": "red"}.get(status, "yellow")
        payout = ""
        if cashback.txid:
            payout = f"{explorer_urls.get(cashback.currency_id, '')}{cashback.txid}"
        elif cashback.last_error:
            payout = cashback.last_error
        table.add_row(
            labels.get(cashback.currency_id, cashback.currency_id),
            f"{cashback.name}@",
            cashback.name_id,
            cashback.created_at.strftime("%Y-%m-%d %H:%M") if cashback.created_at else "",
            f"[{style}]{status}[/{style}]",
            payout,
        )

    return table


async def main(argv: list[str] | None = None) -> None:
    """Query the store and print the table."""
    parser = argparse.ArgumentParser(description="Show recorded cashbacks")
    parser.add_argument("--chain", help="Only show this currency id")
    parser.add_argument("--pending", action="store_true", help="Only unpaid cashbacks")
    parser.add_argument("--limit", type=int, default=50)
    args = parser.parse_args(argv)

    configs = load_chain_configs()
    labels = {config.currency_id: config.label for config in configs}
    explorer_urls = {config.currency_id: config.explorer_url for config in configs}
    max_attempts = get_max_payout_attempts()

    console = Console()
    store = CashbackStore()
    try:
        if args.pending:
            cashbacks = await store.get_pending_cashbacks(args.chain)
            cashbacks = cashbacks[: args.limit]
        else:
            cashbacks = await store.get_cashbacks(args.chain, limit=args.limit)
    finally:
        await dispose_engine()

    if not cashbacks:
        console.print("[green]No cashbacks recorded[/green]")
        return

    console.print(build_table(cashbacks, labels, explorer_urls, max_attempts))
    logger.debug("Printed %s cashback(s)", len(cashbacks))


if __name__ == "__main__":
    run(main())
