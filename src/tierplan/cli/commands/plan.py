"""Plan command - show what apply would change."""

import sys
import click
from ...presentation.plan_formatter import format_plan, plan_to_json
from ...utils.errors import TierPlanError
from ...utils.logging import get_logger
from ..utils import prepare_workspace, format_error, EXIT_ERROR
from .options import input_options

logger = get_logger("cli.plan")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@input_options
@click.option('--refresh', is_flag=True, help='Read every recorded resource back from its provider first')
@click.option('--json', 'json_output', is_flag=True, help='Output the plan as JSON instead of human-readable')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Save the plan as JSON to a file')
def plan(declarations, state_path, cli_vars, var_files, config_path, refresh, json_output, output):
    """
    Show the changes needed to make recorded state match DECLARATIONS.

    Nothing is created, changed or deleted.
    """
    from ... import create_plan

    try:
        workspace = prepare_workspace(declarations, state_path, var_files, cli_vars, config_path)
        result = create_plan(workspace.graph, workspace.store, workspace.registry, refresh=refresh)

        if output:
            result.save(output)
            click.echo(f"Plan saved to: {output}", err=True)

        if json_output:
            click.echo(plan_to_json(result))
        else:
            click.echo(format_plan(result, workspace.graph, workspace.bindings))

    except TierPlanError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)
