"""Pydantic models for execution results."""

from enum import Enum
from typing import List, Optional, Dict
from pydantic import BaseModel, Field
from ..planner.models import ActionKind, ActionStep


class NodeStatus(str, Enum):
    """Outcome of a single action."""
    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class RunStatus(str, Enum):
    """Outcome of a whole run."""
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


# worst first; a node with several actions reports the worst outcome
_SEVERITY = [NodeStatus.FAILED, NodeStatus.BLOCKED, NodeStatus.CANCELLED, NodeStatus.SUCCESS]


class ActionResult(BaseModel):
    """Structured outcome for one plan action."""
    key: str = Field(..., description="Action key")
    address: str = Field(..., description="Node address")
    kind: ActionKind = Field(..., description="Action kind")
    step: ActionStep = Field(..., description="Action step")
    status: NodeStatus = Field(..., description="Outcome")
    attempts: int = Field(default=0, ge=0, description="Provider calls made, retries included")
    error: Optional[str] = Field(default=None, description="Error message for failed actions")
    error_type: Optional[str] = Field(default=None, description="Exception class for failed actions")
    blocked_by: Optional[str] = Field(default=None, description="Key of the failed action that blocked this one")


class RunResult(BaseModel):
    """Aggregate of every action outcome."""
    status: RunStatus = Field(..., description="Overall run status")
    results: List[ActionResult] = Field(default_factory=list, description="Per-action outcomes in plan order")

    def node_status(self, address: str) -> Optional[NodeStatus]:
        """Worst status among the actions targeting address, None if no action did."""
        statuses = {r.status for r in self.results if r.address == address}
        for status in _SEVERITY:
            if status in statuses:
                return status
        return None

    def by_status(self, status: NodeStatus) -> List[ActionResult]:
        return [r for r in self.results if r.status == status]

    def summary(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in NodeStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS
