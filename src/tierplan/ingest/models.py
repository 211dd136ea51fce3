"""Pydantic models for raw resource declarations."""

from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class VariableType(str, Enum):
    """Declared variable value types."""
    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"
    LIST = "list"
    MAP = "map"
    ANY = "any"


class VariableDeclaration(BaseModel):
    """An externally configurable input value."""
    name: str = Field(..., description="Variable name, referenced as var.<name>")
    type: VariableType = Field(default=VariableType.ANY, description="Expected value type")
    default: Any = Field(default=None, description="Default value when no binding is supplied")
    has_default: bool = Field(default=False, description="Whether a default was declared (a null default counts)")
    sensitive: bool = Field(default=False, description="Mask the value in human-readable output")
    description: Optional[str] = Field(default=None, description="Human-readable description")


class Lifecycle(BaseModel):
    """Per-declaration lifecycle overrides."""
    create_before_destroy: Optional[bool] = Field(
        default=None,
        description="Force replace ordering; None lets the planner decide"
    )


class ResourceDeclaration(BaseModel):
    """A resource block as written: literal-or-expression attributes, optional count."""
    type: str = Field(..., description="Resource type, e.g. aws_subnet")
    name: str = Field(..., description="Logical name, unique per type")
    count: Any = Field(default=None, description="Repetition count: integer, expression string or None")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependencies as type.name")
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Raw attribute expressions")
    order: int = Field(default=0, ge=0, description="Position in the declaration file")

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"


class DeclarationSet(BaseModel):
    """Everything read from a declaration file."""
    variables: Dict[str, VariableDeclaration] = Field(default_factory=dict)
    data: Dict[str, Dict[str, Dict[str, Any]]] = Field(
        default_factory=dict,
        description="Data source values: type -> name -> attributes"
    )
    resources: List[ResourceDeclaration] = Field(default_factory=list)

    def get_resource(self, resource_type: str, name: str) -> Optional[ResourceDeclaration]:
        """Find the first declaration with the given type and name."""
        for resource in self.resources:
            if resource.type == resource_type and resource.name == name:
                return resource
        return None
