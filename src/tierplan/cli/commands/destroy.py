"""Destroy command - delete everything recorded in state."""

import json
import sys
import click
from ...graph.dependency_graph import DependencyGraph
from ...presentation.plan_formatter import format_plan, format_run_result
from ...utils.errors import TierPlanError
from ...utils.logging import get_logger
from ..utils import prepare_workspace, format_error, cancel_on_interrupt, EXIT_ERROR, EXIT_RUN_FAILED
from .options import input_options, run_options

logger = get_logger("cli.destroy")


@click.command()
@click.argument('declarations', type=click.Path(exists=False), required=False)
@input_options
@run_options
@click.option('--json', 'json_output', is_flag=True, help='Output plan and run result as JSON')
def destroy(declarations, state_path, cli_vars, var_files, config_path, parallelism, auto_approve, json_output):
    """
    Tear down every resource recorded in state, dependents first.

    DECLARATIONS is optional; when given it is validated before anything is deleted.
    """
    from ... import create_plan, apply_plan

    try:
        workspace = prepare_workspace(declarations, state_path, var_files, cli_vars, config_path, parallelism)
        graph = workspace.graph or DependencyGraph()
        planned = create_plan(graph, workspace.store, workspace.registry, destroy=True)
    except TierPlanError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)

    if not json_output:
        click.echo(format_plan(planned, graph, workspace.bindings))
    if planned.is_empty:
        if json_output:
            click.echo(json.dumps({"plan": planned.model_dump(mode="json"), "result": None}, indent=2))
        return

    if not auto_approve and not click.confirm("Destroy all recorded resources?", err=True):
        click.echo("Destroy cancelled.", err=True)
        sys.exit(EXIT_ERROR)

    try:
        with cancel_on_interrupt() as cancel_event:
            result = apply_plan(planned, graph, workspace.store, workspace.registry,
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
