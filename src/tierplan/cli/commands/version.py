"""Version command - show TierPlan version."""

import click
from ... import __version__


@click.command()
def version():
    """Show TierPlan version."""
    click.echo(f"tierplan version {__version__}")
