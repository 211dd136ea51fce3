"""Human-friendly output formatter - converts plans and run results to readable text."""

import json
import os
from typing import Any, Iterable, List, Optional, Set
from ..executor.models import NodeStatus, RunResult
from ..graph.dependency_graph import DependencyGraph
from ..ingest.variables import VariableBindings
from ..planner.models import Action, ActionKind, ActionStep, Plan
from ..resolver.values import is_deferred, render_scalar

SENSITIVE = "(sensitive)"
KNOWN_AFTER_APPLY = "(known after apply)"


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("TIERPLAN_ASCII", "").lower() in ("1", "true", "yes")


def sensitive_values(bindings: Optional[VariableBindings]) -> Set[str]:
    """Rendered leaf values of every sensitive variable."""
    secrets: Set[str] = set()
    if bindings is None:
        return secrets

    def collect(value: Any) -> None:
        if isinstance(value, dict):
            for item in value.values():
                collect(item)
        elif isinstance(value, (list, tuple)):
            for item in value:
                collect(item)
        elif value is not None:
            text = render_scalar(value)
            if text:
                secrets.add(text)

    for name in bindings.sensitive:
        collect(bindings.values.get(name))
    return secrets


def render_value(value: Any, secrets: Iterable[str] = ()) -> str:
    """Render an attribute value; masked if it embeds a sensitive value."""
    if is_deferred(value):
        return KNOWN_AFTER_APPLY
    text = json.dumps(value, sort_keys=True, default=str)
    if any(secret in text for secret in secrets):
        return SENSITIVE
    return text


def _symbol(action: Action) -> str:
    if action.kind == ActionKind.CREATE:
        return "+"
    if action.kind == ActionKind.UPDATE:
        return "~"
    if action.kind == ActionKind.REPLACE:
        return "-/+" if action.create_before_destroy else "+/-"
    return "-"


def _action_lines(
    action: Action,
    graph: Optional[DependencyGraph],
    secrets: Set[str],
) -> List[str]:
    symbol = _symbol(action)
    if action.step == ActionStep.DEPOSED:
        return [f"  {symbol} {action.address} (deposed object {action.target_id})"]

    if action.kind == ActionKind.REPLACE:
        if action.step == ActionStep.DELETE:
            return [f"  -   {action.address} (old object {action.target_id})"]
        policy = "create before delete" if action.create_before_destroy else "delete before create"
        header = f"  {symbol} {action.address} ({policy}; forced by {', '.join(action.replace_reasons)})"
    elif action.kind == ActionKind.DELETE:
        return [f"  {symbol} {action.address} ({action.target_id})"]
    else:
        header = f"  {symbol} {action.address}"

    lines = [header]
    node = graph.get_node(action.address) if graph is not None else None
    if node is not None:
        for name in action.changed_attributes:
            if name in node.attributes:
                lines.append(f"      {name} = {render_value(node.attributes[name], secrets)}")
            else:
                lines.append(f"      {name} = null")
    return lines


def format_plan(
    plan: Plan,
    graph: Optional[DependencyGraph] = None,
    bindings: Optional[VariableBindings] = None,
    ascii_mode: Optional[bool] = None,
) -> str:
    """
    Format a plan as human-readable text.

    Args:
        plan: Plan to render
        graph: Desired graph, used to show changed attribute values
        bindings: Variable bindings; sensitive values are masked
        ascii_mode: Force ASCII-only output

    Returns:
        Formatted string
    """
    ascii_mode = _use_ascii(ascii_mode)
    if plan.is_empty:
        return "No changes. Infrastructure matches the declarations."

    secrets = sensitive_values(bindings)
    title = "Destroy plan" if plan.destroy else "Execution plan"
    rule = ("-" if ascii_mode else "\u2500") * 65
    lines = [rule, title.center(65), rule, ""]
    for action in plan.actions:
        lines.extend(_action_lines(action, graph, secrets))

    summary = plan.summary()
    lines.append("")
    lines.append(
        f"Plan: {summary['create']} to create, {summary['update']} to update, "
        f"{summary['replace']} to replace, {summary['delete']} to delete."
    )
    return "\n".join(lines)


def format_run_result(result: RunResult, ascii_mode: Optional[bool] = None) -> str:
    """Format an execution result as human-readable text."""
    ascii_mode = _use_ascii(ascii_mode)
    marks = {
        NodeStatus.SUCCESS: "[ok]" if ascii_mode else "✔",
        NodeStatus.FAILED: "[FAILED]" if ascii_mode else "✘",
        NodeStatus.BLOCKED: "[blocked]" if ascii_mode else "⦸",
        NodeStatus.CANCELLED: "[cancelled]" if ascii_mode else "○",
    }

    lines = []
    for item in result.results:
        line = f"  {marks[item.status]} {item.key}: {item.status.value}"
        if item.status == NodeStatus.FAILED:
            line += f" after {item.attempts} attempt(s): {item.error}"
        elif item.status == NodeStatus.BLOCKED and item.blocked_by:
            line += f" (depends on {item.blocked_by})"
        lines.append(line)

    summary = result.summary()
    lines.append("")
    lines.append(
        f"Apply {result.status.value}: {summary['success']} succeeded, {summary['failed']} failed, "
        f"{summary['blocked']} blocked, {summary['cancelled']} cancelled."
    )
    return "\n".join(lines)


def plan_to_json(plan: Plan) -> str:
    """Format Plan as JSON string."""
    return json.dumps(plan.model_dump(mode="json"), indent=2)


def run_result_to_json(result: RunResult) -> str:
    """Format RunResult as JSON string."""
    return json.dumps(result.model_dump(mode="json"), indent=2)
