"""Share/asset conversion calculator."""

import click
from rich.console import Console
from rich.table import Table

from basketlever.libraries.precise_math import MathOverflowError
from basketlever.libraries.shares_math import VIRTUAL_ASSETS, VIRTUAL_SHARES, assets_to_shares, shares_to_assets


@click.command("convert")
@click.argument("direction", type=click.Choice(["to-assets", "to-shares"], case_sensitive=False))
@click.argument("amount", type=click.IntRange(min=0))
@click.option("--total-assets", "-a", type=click.IntRange(min=0), required=True, help="Pool total assets (wei)")
@click.option("--total-shares", "-s", type=click.IntRange(min=0), required=True, help="Pool total shares")
@click.option("--round-up", is_flag=True, help="Round up instead of down (use for debt)")
def convert_command(direction: str, amount: int, total_assets: int, total_shares: int, round_up: bool):
    """
    Convert lending-pool shares to assets or assets to shares.

    Uses the pool's virtual offsets, so an empty pool still has a
    well-defined exchange rate.

    \b
    Examples:
        basketlever convert to-assets 1000000000000000 -a 1000000000 -s 1000000000000000
        basketlever convert to-shares 1000000000 -a 1000000000 -s 1000000000000000 --round-up
    """
    console = Console()
    try:
        if direction.lower() == "to-assets":
            result = shares_to_assets(amount, total_assets, total_shares, round_up)
            label_in, label_out = "Shares", "Assets"
        else:
            result = assets_to_shares(amount, total_assets, total_shares, round_up)
            label_in, label_out = "Assets", "Shares"
    except (ValueError, MathOverflowError) as e:
        raise click.ClickException(str(e))

    table = Table(title="Conversion", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white", justify="right")
    table.add_row(label_in, str(amount))
    table.add_row("Total assets", f"{total_assets} (+{VIRTUAL_ASSETS} virtual)")
    table.add_row("Total shares", f"{total_shares} (+{VIRTUAL_SHARES} virtual)")
    table.add_row("Rounding", "up" if round_up else "down")
    table.add_row(label_out, str(result), style="green bold")
    console.print(table)
