"""Options shared by the plan, apply and destroy commands."""

import click

STATE_HELP = "State file (default: state.path from config, .tierplan/state.json)"


def input_options(func):
    """Declaration inputs and engine settings."""
    func = click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
                        help='Engine config YAML, applied over user and project config')(func)
    func = click.option('--var-file', 'var_files', multiple=True, type=click.Path(exists=True, dir_okay=False),
                        help='YAML or JSON file of variable values (repeatable)')(func)
    func = click.option('--var', 'cli_vars', multiple=True, metavar='NAME=VALUE',
                        help='Set a variable (repeatable, highest precedence)')(func)
    func = click.option('--state', 'state_path', type=click.Path(dir_okay=False), help=STATE_HELP)(func)
    return func


def run_options(func):
    """Options for commands that execute a plan."""
    func = click.option('--auto-approve', is_flag=True, help='Skip the interactive confirmation')(func)
    func = click.option('--parallelism', type=click.IntRange(min=1),
                        help='Maximum concurrent provider calls (default from config)')(func)
    return func
