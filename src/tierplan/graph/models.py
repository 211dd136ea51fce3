"""Pydantic model for a concrete resource node."""

from typing import Dict, Any, Optional, Set
from pydantic import BaseModel, Field
from ..resolver.resolver import instance_address
from ..resolver.values import iter_references


class ResourceNode(BaseModel):
    """One concrete resource instance in the desired topology."""
    type: str = Field(..., description="Resource type, e.g. aws_subnet")
    name: str = Field(..., description="Logical name from the declaration")
    index: Optional[int] = Field(default=None, ge=0, description="Count index, None for uncounted resources")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Resolved values, References or Interpolations")
    depends_on: Set[str] = Field(default_factory=set, description="Addresses this node depends on")
    explicit_depends_on: Set[str] = Field(default_factory=set, description="type.name targets from depends_on")
    declaration_order: int = Field(default=0, ge=0, description="Position of the declaration, used as a tie-break key")
    create_before_destroy: Optional[bool] = Field(default=None, description="Lifecycle override for replacements")

    @property
    def address(self) -> str:
        return instance_address(self.type, self.name, self.index)

    @property
    def collection_address(self) -> str:
        return instance_address(self.type, self.name)

    @property
    def sort_key(self) -> tuple:
        return (self.declaration_order, -1 if self.index is None else self.index)

    def referenced_addresses(self) -> Set[str]:
        """Addresses of every node referenced from this node's attributes."""
        return {ref.address for ref in iter_references(self.attributes)}
