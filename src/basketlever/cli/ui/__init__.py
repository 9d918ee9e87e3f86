"""CLI UI components - table formatters."""

from basketlever.cli.ui.formatters import create_positions_table, create_steps_table, format_unit

__all__ = [
    "create_positions_table",
    "create_steps_table",
    "format_unit",
]
