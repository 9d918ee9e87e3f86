"""Rich table formatters for CLI output."""

from typing import Mapping

from rich.table import Table

from basketlever.services.ledger.models import Position, PositionKind
from basketlever.services.scenario.runner import StepOutcome


def format_unit(unit: int, decimals: int) -> str:
    """
    Render a wei amount with the asset's decimals.

    Example:
        >>> format_unit(-1000 * 10**6, 6)
        '-1000'
        >>> format_unit(333333333333333333, 18)
        '0.333333333333333333'
    """
    sign = "-" if unit < 0 else ""
    whole, frac = divmod(abs(unit), 10**decimals)
    if decimals == 0 or frac == 0:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{str(frac).rjust(decimals, '0').rstrip('0')}"


def create_steps_table(outcomes: list[StepOutcome]) -> Table:
    """
    Create a Rich table with one row per scenario step.

    Args:
        outcomes: Step outcomes in execution order

    Returns:
        Populated Rich Table
    """
    table = Table(title="Steps", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Action", style="cyan", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Detail", style="white")

    for outcome in outcomes:
        if outcome.ok:
            status = "[green]✓ ok[/green]"
        else:
            status = f"[yellow]✗ {outcome.error}[/yellow] (expected)"
        table.add_row(str(outcome.index), outcome.action, status, outcome.detail)
    return table


def create_positions_table(
    positions: list[Position],
    symbols: Mapping[str, str],
    decimals: Mapping[str, int],
    module_names: Mapping[str, str],
) -> Table:
    """
    Create a Rich table of basket positions, units rendered per basket token.

    Args:
        positions: Basket positions in ledger order
        symbols: Asset address -> symbol
        decimals: Asset address -> decimals
        module_names: Module address -> display name
    """
    table = Table(title="Positions (per basket token)", show_header=True, header_style="bold cyan")
    table.add_column("Component", style="green", no_wrap=True)
    table.add_column("Kind", style="magenta")
    table.add_column("Module", style="dim")
    table.add_column("Unit", justify="right", style="yellow")
    table.add_column("Raw", justify="right", style="dim")

    for position in positions:
        component = position.component
        kind = "Default" if position.kind == PositionKind.DEFAULT else "External"
        module = module_names.get(position.module, position.module) if position.module else "-"
        table.add_row(
            symbols.get(component, component),
            kind,
            module,
            format_unit(position.unit, decimals.get(component, 18)),
            str(position.unit),
        )
    return table
