"""Main CLI entry point for TierPlan."""

import click
from .commands.plan import plan
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.version import version as version_command
from .. import __version__
from ..utils.logging import get_logger

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="tierplan", message="%(prog)s version %(version)s")
def cli():
    """TierPlan - Plan and apply declarative resource graphs."""
    pass


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(version_command)
