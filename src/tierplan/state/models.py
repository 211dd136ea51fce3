"""Pydantic model for last-known materialized resource state."""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field


class StateRecord(BaseModel):
    """Last-known state of one node, the diff baseline for the next plan."""
    address: str = Field(..., description="Node address, e.g. aws_subnet.public[0]")
    type: str = Field(..., description="Resource type")
    name: str = Field(..., description="Logical name")
    index: Optional[int] = Field(default=None, description="Count index")
    id: str = Field(..., description="Provider-assigned identifier")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Materialized input attributes")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider outputs (id, arn, ...)")
    dependencies: List[str] = Field(default_factory=list, description="Addresses this node depended on when applied")
    declaration_order: int = Field(default=0, description="Declaration position when applied")
    deposed: List[str] = Field(default_factory=list, description="Old provider ids awaiting deletion after a replacement")

    def lookup(self, attribute: str) -> Any:
        """Output first, then input attribute; KeyError when neither exists."""
        if attribute == "id":
            return self.id
        if attribute in self.outputs:
            return self.outputs[attribute]
        return self.attributes[attribute]

    @property
    def sort_key(self) -> tuple:
        return (self.declaration_order, -1 if self.index is None else self.index)
