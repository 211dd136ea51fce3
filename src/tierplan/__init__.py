"""TierPlan - Declarative resource-graph planner and reconciler."""

import logging
import threading
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from .config.models import ExecutorConfig
from .executor import Executor, RunResult
from .expander import CountExpander
from .graph.dependency_graph import DependencyGraph
from .ingest.declaration_loader import load_declarations
from .ingest.models import DeclarationSet
from .ingest.variables import VariableBindings, bind_variables, load_var_file, parse_cli_vars
from .planner import Plan, Planner, refresh_state
from .providers.base import ProviderRegistry
from .state.store import StateStore
from .utils.logging import setup_logging, get_logger
from .utils.errors import TierPlanError

__version__ = "0.1.0"

__all__ = ["load_inputs", "build_graph", "create_plan", "apply_plan", "TierPlanError"]

setup_logging(logging.WARNING)
logger = get_logger("tierplan")


def load_inputs(
    declaration_path: str,
    var_files: Iterable[str] = (),
    cli_vars: Iterable[str] = (),
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[DeclarationSet, VariableBindings]:
    """
    Load a declaration file and bind its variables.

    Args:
        declaration_path: YAML or JSON declaration file
        var_files: Variable files, later files override earlier ones
        cli_vars: Raw ``name=value`` bindings
        environ: Environment mapping (defaults to os.environ)

    Returns:
        (declarations, variable bindings)
    """
    declarations = load_declarations(declaration_path)
    file_values: Dict[str, Any] = {}
    for path in var_files:
        file_values.update(load_var_file(path))
    bindings = bind_variables(declarations, file_values, parse_cli_vars(cli_vars), environ)
    return declarations, bindings


def build_graph(declarations: DeclarationSet, bindings: VariableBindings) -> DependencyGraph:
    """Expand counts, resolve attributes and build the dependency graph."""
    expander = CountExpander(declarations, bindings.values)
    nodes = expander.expand_all()
    graph = DependencyGraph()
    graph.build_from_nodes(nodes, declared=[d.address for d in declarations.resources])
    return graph


def create_plan(
    graph: DependencyGraph,
    store: StateStore,
    registry: ProviderRegistry,
    destroy: bool = False,
    refresh: bool = False,
) -> Plan:
    """Diff the graph against stored state (optionally refreshed first)."""
    if refresh:
        state = refresh_state(store, registry)
    else:
        state = store.load()
    return Planner(registry).plan(graph, state, destroy=destroy)


def apply_plan(
    plan: Plan,
    graph: DependencyGraph,
    store: StateStore,
    registry: ProviderRegistry,
    config: Optional[ExecutorConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RunResult:
    """Execute a plan and persist state after every successful action."""
    config = config or ExecutorConfig()
    executor = Executor(registry, store, parallelism=config.parallelism, retry=config.retry)
    return executor.run(plan, graph, cancel_event=cancel_event)
