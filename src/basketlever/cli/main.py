"""basketlever CLI main entry point."""

import click

from basketlever import __version__
from basketlever.cli.commands import convert_command, simulate_command


@click.group()
@click.version_option(version=__version__)
def main():
    """basketlever - leveraged basket token simulator"""
    pass


# Register commands
main.add_command(simulate_command)
main.add_command(convert_command)


if __name__ == "__main__":
    main()
