"""Scenario simulation command."""

import sys
from pathlib import Path
from typing import Literal, Optional, cast

import click
from rich.console import Console

from basketlever.cli.ui import create_positions_table, create_steps_table, format_unit
from basketlever.services.scenario import ScenarioError, ScenarioRunner, load_scenario
from basketlever.system import LoggerFactory
from basketlever.system.config import ConfigLoadError, reload_system_config

console = Console()


@click.command("simulate")
@click.option(
    "--file",
    "-f",
    "scenario_file",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to scenario file (YAML)",
)
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, path_type=Path),
    help="System config file (default: search order, then built-in defaults)",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level (DEBUG shows every lending and exchange call)",
)
def simulate_command(scenario_file: Path, config_file: Optional[Path], log_level: Optional[str]):
    """
    Run a leverage scenario against the in-memory world.

    Builds the world described in the scenario, executes each step and
    prints the resulting basket positions.

    \b
    Examples:
        basketlever simulate --file scenarios/lever_delever.yaml
        basketlever simulate -f scenarios/lever_delever.yaml -l debug
    """
    try:
        console.rule("[bold blue]basketlever simulate[/bold blue]")
        console.print()

        system_config = reload_system_config(config_file)
        if log_level:
            level = cast(Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], log_level.upper())
            system_config.logging.level = level
        LoggerFactory.configure(system_config.logging.to_logger_config())

        scenario = load_scenario(scenario_file)
        console.print(f"  Scenario: [yellow]{scenario.name}[/yellow]")
        if scenario.description:
            console.print(f"  [dim]{scenario.description}[/dim]")
        console.print(f"  Steps: [magenta]{len(scenario.steps)}[/magenta]")
        console.print()

        runner = ScenarioRunner.from_config(scenario, system_config)
        result = runner.run()
        world = runner.world

        console.print(create_steps_table(result.outcomes))
        console.print()
        decimals = {asset: world.decimals(asset) for asset in (world.collateral, world.loan)}
        module_names = {world.module.address: "LeverageModule"}
        console.print(create_positions_table(result.positions, world.symbols, decimals, module_names))
        console.print()

        collateral_decimals = world.spec.collateral.decimals
        loan_decimals = world.spec.loan.decimals
        console.rule("[bold green]RESULTS[/bold green]")
        console.print(f"[cyan]State:[/cyan]           {result.state.value}")
        console.print(f"[cyan]Total supply:[/cyan]    {format_unit(result.total_supply, 18)}")
        console.print(
            f"[cyan]Collateral:[/cyan]      {format_unit(result.collateral_balance, collateral_decimals)} "
            f"{world.spec.collateral.symbol}"
        )
        console.print(
            f"[cyan]Debt:[/cyan]            {format_unit(result.borrow_balance, loan_decimals)} {world.spec.loan.symbol}"
        )
        console.print(f"[cyan]Events:[/cyan]          {len(result.events)}")
        console.print()
        sys.exit(0)

    except (ConfigLoadError, ScenarioError, ValueError) as e:
        console.print()
        console.print(f"[bold red]✗ Simulation failed:[/bold red] {e}")
        sys.exit(1)
