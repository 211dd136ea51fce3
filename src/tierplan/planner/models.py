"""Pydantic models for plans (versioned, stable, explicit)."""

import json
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict
from pydantic import BaseModel, Field
from ..utils.errors import TierPlanError

PLAN_FORMAT_VERSION = "1.0.0"


class ActionKind(str, Enum):
    """Kinds of planned change."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"


class ActionStep(str, Enum):
    """Which half of an action runs: the forward (create/update) or the delete half."""
    APPLY = "apply"
    CREATE = "create"
    DELETE = "delete"
    DEPOSED = "deposed"


class Action(BaseModel):
    """One step of a plan."""
    key: str = Field(..., description="Unique key within the plan")
    kind: ActionKind = Field(..., description="create, update, delete or replace")
    step: ActionStep = Field(default=ActionStep.APPLY, description="apply; or create/delete half of a replace; or deposed cleanup")
    address: str = Field(..., description="Target node address")
    resource_type: str = Field(..., description="Target resource type")
    target_id: Optional[str] = Field(default=None, description="Provider id acted on (update/delete)")
    dependencies: List[str] = Field(default_factory=list, description="Keys of actions that must succeed first")
    changed_attributes: List[str] = Field(default_factory=list, description="Attributes that differ from state")
    replace_reasons: List[str] = Field(default_factory=list, description="Immutable attributes forcing a replacement")
    create_before_destroy: Optional[bool] = Field(default=None, description="Replacement ordering policy")

    @property
    def is_delete_step(self) -> bool:
        return self.step in (ActionStep.DELETE, ActionStep.DEPOSED) or self.kind == ActionKind.DELETE

    def describe(self) -> str:
        if self.kind == ActionKind.REPLACE:
            return f"replace ({self.step.value}) {self.address}"
        if self.step == ActionStep.DEPOSED:
            return f"delete deposed {self.address} ({self.target_id})"
        return f"{self.kind.value} {self.address}"


class Plan(BaseModel):
    """Ordered actions: every action appears after all actions it depends on."""
    version: str = Field(default=PLAN_FORMAT_VERSION, description="Plan format version")
    destroy: bool = Field(default=False, description="Whether this is a full-teardown plan")
    actions: List[Action] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def get_action(self, key: str) -> Optional[Action]:
        for action in self.actions:
            if action.key == key:
                return action
        return None

    def summary(self) -> Dict[str, int]:
        """Count of changes per kind; a replacement counts once."""
        counts = {kind.value: 0 for kind in ActionKind}
        for action in self.actions:
            if action.kind == ActionKind.REPLACE and action.step != ActionStep.CREATE:
                continue
            counts[action.kind.value] += 1
        return counts

    def save(self, path: str) -> None:
        """Write the plan as JSON."""
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                json.dump(self.model_dump(mode="json"), f, indent=2, sort_keys=True)
                f.write("\n")
        except OSError as e:
            raise TierPlanError(f"Failed to write plan to {target}: {e}")
