"""CLI utilities package."""

import contextlib
import signal
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional
from ...config import EngineConfig, load_engine_config
from ...graph.dependency_graph import DependencyGraph
from ...ingest.models import DeclarationSet
from ...ingest.variables import VariableBindings
from ...providers.base import ProviderRegistry
from ...providers.simulated import SimulatedProvider, simulated_registry
from ...state.store import JsonFileStateStore
from ...utils.errors import DeclarationLoadError
from ...utils.logging import setup_logging, get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_RUN_FAILED = 2


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


@dataclass
class Workspace:
    """Everything a command needs: settings, inputs, graph, state and providers."""
    config: EngineConfig
    store: JsonFileStateStore
    provider: SimulatedProvider
    registry: ProviderRegistry
    declarations: Optional[DeclarationSet] = None
    bindings: Optional[VariableBindings] = None
    graph: Optional[DependencyGraph] = None


def prepare_workspace(
    declaration_file: Optional[str],
    state_path: Optional[str] = None,
    var_files: Iterable[str] = (),
    cli_vars: Iterable[str] = (),
    config_path: Optional[str] = None,
    parallelism: Optional[int] = None,
) -> Workspace:
    """
    Shared setup helper - all commands call this.

    Loads configuration, opens the state store, seeds the simulated provider
    from recorded state and, when a declaration file is given, builds the
    dependency graph.

    Raises:
        TierPlanError: On any configuration, declaration or resolution error
    """
    from ... import build_graph, load_inputs

    config = load_engine_config(config_path)
    setup_logging(config.logging.level)
    if parallelism is not None:
        config.executor.parallelism = parallelism

    store = JsonFileStateStore(state_path or config.state.path)
    provider = SimulatedProvider()
    provider.seed(store.load().values())
    workspace = Workspace(config=config, store=store, provider=provider, registry=simulated_registry(provider))

    if declaration_file:
        try:
            path = resolve_file_path(declaration_file)
        except FileNotFoundError as e:
            raise DeclarationLoadError(str(e))
        workspace.declarations, workspace.bindings = load_inputs(str(path), var_files, cli_vars)
        workspace.graph = build_graph(workspace.declarations, workspace.bindings)
        workspace.registry.validate_types({n.type for n in workspace.graph.get_all_nodes()})
    return workspace


@contextlib.contextmanager
def cancel_on_interrupt() -> Iterator[threading.Event]:
    """Yield an event that is set on SIGINT instead of raising KeyboardInterrupt."""
    event = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield event
        return

    def handler(signum, frame):
        logger.warning("Interrupt received, finishing in-flight actions")
        event.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield event
    finally:
        signal.signal(signal.SIGINT, previous)


__all__ = [
    "resolve_file_path",
    "format_error",
    "prepare_workspace",
    "cancel_on_interrupt",
    "Workspace",
    "EXIT_OK",
    "EXIT_ERROR",
    "EXIT_RUN_FAILED",
]
