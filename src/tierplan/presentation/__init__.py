"""Presentation layer - human-friendly formatting."""

from .plan_formatter import (
    format_plan,
    format_run_result,
    plan_to_json,
    render_value,
    run_result_to_json,
    sensitive_values,
)

__all__ = [
    "format_plan",
    "format_run_result",
    "plan_to_json",
    "render_value",
    "run_result_to_json",
    "sensitive_values",
]
