"""Commands __init__ - exports all commands."""

from basketlever.cli.commands.convert import convert_command
from basketlever.cli.commands.simulate import simulate_command

__all__ = ["convert_command", "simulate_command"]
