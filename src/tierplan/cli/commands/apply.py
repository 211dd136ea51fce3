"""Apply command - execute the plan and record the results."""

import json
import sys
import click
from ...presentation.plan_formatter import format_plan, format_run_result
from ...utils.errors import TierPlanError
from ...utils.logging import get_logger
from ..utils import prepare_workspace, format_error, cancel_on_interrupt, EXIT_ERROR, EXIT_RUN_FAILED
from .options import input_options, run_options

logger = get_logger("cli.apply")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@input_options
@run_options
@click.option('--refresh', is_flag=True, help='Read every recorded resource back from its provider first')
@click.option('--json', 'json_output', is_flag=True, help='Output plan and run result as JSON')
def apply(declarations, state_path, cli_vars, var_files, config_path, parallelism, auto_approve, refresh, json_output):
    """
    Create, update, replace and delete resources to match DECLARATIONS.

    Exits 2 if any action failed, was blocked or was cancelled.
    """
    from ... import create_plan, apply_plan

    try:
        workspace = prepare_workspace(declarations, state_path, var_files, cli_vars, config_path, parallelism)
        planned = create_plan(workspace.graph, workspace.store, workspace.registry, refresh=refresh)
    except TierPlanError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)

    if not json_output:
        click.echo(format_plan(planned, workspace.graph, workspace.bindings))
    if planned.is_empty:
        if json_output:
            click.echo(json.dumps({"plan": planned.model_dump(mode="json"), "result": None}, indent=2))
        return

    if not auto_approve and not click.confirm("Apply these changes?", err=True):
        click.echo("Apply cancelled.", err=True)
        sys.exit(EXIT_ERROR)

    try:
        with cancel_on_interrupt() as cancel_event:
            result = apply_plan(planned, workspace.graph, workspace.store, workspace.registry,
                                workspace.config.executor, cancel_event)
    except TierPlanError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)

    if json_output:
        click.echo(json.dumps({
            "plan": planned.model_dump(mode="json"),
            "result": result.model_dump(mode="json"),
        }, indent=2))
    else:
        click.echo("")
        click.echo(format_run_result(result))

    if not result.succeeded:
        sys.exit(EXIT_RUN_FAILED)
