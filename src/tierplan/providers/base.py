"""Resource Provider capability and the per-type capability table."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple
from ..utils.errors import UnknownResourceTypeError
from ..utils.logging import get_logger

logger = get_logger("providers.base")


class ResourceProvider(ABC):
    """
    Abstract interface for a cloud provider.

    Implementations raise TransientProviderError for retryable failures
    (timeouts, throttling), PermanentProviderError for everything else and
    ResourceNotFoundError from read() when the resource is gone.
    """

    @abstractmethod
    def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create a resource.

        Returns:
            (provider id, outputs)
        """
        pass

    @abstractmethod
    def read(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        """
        Read current attributes of a resource.

        Raises:
            ResourceNotFoundError: If the resource does not exist
        """
        pass

    @abstractmethod
    def update(self, resource_type: str, resource_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a resource in place.

        Returns:
            Outputs after the update
        """
        pass

    @abstractmethod
    def delete(self, resource_type: str, resource_id: str) -> None:
        """Delete a resource."""
        pass


@dataclass(frozen=True)
class TypeSchema:
    """What the planner needs to know about a resource type."""
    immutable_attributes: FrozenSet[str] = field(default_factory=frozenset)
    set_attributes: FrozenSet[str] = field(default_factory=frozenset)
    exclusive_attributes: FrozenSet[str] = field(default_factory=frozenset)
    computed_outputs: Tuple[str, ...] = ()
    id_prefix: str = "res"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TypeSchema":
        return cls(
            immutable_attributes=frozenset(data.get("immutable", ())),
            set_attributes=frozenset(data.get("sets", ())),
            exclusive_attributes=frozenset(data.get("exclusive", ())),
            computed_outputs=tuple(data.get("computed", ())),
            id_prefix=data.get("id_prefix", "res"),
        )


class ProviderRegistry:
    """Capability table keyed by resource type: provider plus type schema."""

    def __init__(self):
        self._entries: Dict[str, Tuple[ResourceProvider, TypeSchema]] = {}

    def register(self, resource_type: str, provider: ResourceProvider, schema: Optional[TypeSchema] = None) -> None:
        """Register (or replace) the provider for one resource type."""
        self._entries[resource_type] = (provider, schema or TypeSchema())
        logger.debug(f"Registered provider for {resource_type}")

    def register_catalog(self, provider: ResourceProvider, catalog: Dict[str, Dict[str, Any]]) -> None:
        """Register one provider for every type in a declarative catalog."""
        for resource_type, data in catalog.items():
            self.register(resource_type, provider, TypeSchema.from_dict(data))

    def provider_for(self, resource_type: str) -> ResourceProvider:
        return self._entry(resource_type)[0]

    def schema_for(self, resource_type: str) -> TypeSchema:
        return self._entry(resource_type)[1]

    def validate_types(self, resource_types: Iterable[str]) -> None:
        """
        Raises:
            UnknownResourceTypeError: For the first unregistered type in sorted order
        """
        for resource_type in sorted(resource_types):
            self._entry(resource_type)

    def _entry(self, resource_type: str) -> Tuple[ResourceProvider, TypeSchema]:
        try:
            return self._entries[resource_type]
        except KeyError:
            raise UnknownResourceTypeError(
                f"No provider registered for resource type '{resource_type}'. "
                f"Registered types: {', '.join(sorted(self._entries)) or 'none'}"
            )

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._entries
