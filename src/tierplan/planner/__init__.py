"""Planner: desired-vs-recorded diff and dependency-safe action ordering."""

from .models import Action, ActionKind, ActionStep, Plan
from .planner import Planner
from .refresh import refresh_state

__all__ = ["Action", "ActionKind", "ActionStep", "Plan", "Planner", "refresh_state"]
