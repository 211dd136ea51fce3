"""Deterministic in-memory provider for local runs and tests."""

import copy
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from .base import ResourceProvider, ProviderRegistry, TypeSchema
from .aws_catalog import AWS_RESOURCE_TYPES
from ..utils.errors import ProviderError, ResourceNotFoundError, PermanentProviderError
from ..utils.logging import get_logger

logger = get_logger("providers.simulated")


@dataclass
class _Injection:
    operation: str
    resource_type: str
    error: ProviderError
    match: Dict[str, Any]
    remaining: Optional[int]


class SimulatedProvider(ResourceProvider):
    """
    Keeps resources in a dict and hands out sequential ids.

    Failures can be injected per operation and resource type, optionally
    only for resources whose attributes contain ``match`` and only for the
    first ``times`` calls (which makes transient errors recover).
    """

    def __init__(self, schemas: Optional[Dict[str, TypeSchema]] = None):
        self.schemas = schemas if schemas is not None else {
            t: TypeSchema.from_dict(d) for t, d in AWS_RESOURCE_TYPES.items()
        }
        self.resources: Dict[str, Tuple[str, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self._injections: List[_Injection] = []
        self._counter = 0
        self._lock = threading.Lock()

    def inject_failure(
        self,
        operation: str,
        resource_type: str,
        error: ProviderError,
        match: Optional[Dict[str, Any]] = None,
        times: Optional[int] = None,
    ) -> None:
        """Make ``operation`` on ``resource_type`` raise ``error``."""
        with self._lock:
            self._injections.append(_Injection(operation, resource_type, error, match or {}, times))

    def seed(self, records) -> None:
        """Pretend every StateRecord in records already exists remotely."""
        with self._lock:
            for record in records:
                self.resources[record.id] = (record.type, copy.deepcopy(record.attributes))
                for deposed_id in record.deposed:
                    self.resources[deposed_id] = (record.type, {})

    def create(self, resource_type: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        with self._lock:
            self.calls.append(("create", resource_type, None))
            self._maybe_fail("create", resource_type, attributes)
            prefix = self.schemas.get(resource_type, TypeSchema()).id_prefix
            resource_id = None
            while resource_id is None or resource_id in self.resources:
                self._counter += 1
                resource_id = f"{prefix}-{self._counter:08x}"
            self.resources[resource_id] = (resource_type, copy.deepcopy(attributes))
            outputs = self._outputs(resource_type, resource_id)
        logger.debug(f"Created {resource_type} {resource_id}")
        return resource_id, outputs

    def read(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        with self._lock:
            self.calls.append(("read", resource_type, resource_id))
            stored = self.resources.get(resource_id)
            if stored is None or stored[0] != resource_type:
                raise ResourceNotFoundError(f"{resource_type} {resource_id} does not exist")
            return copy.deepcopy(stored[1])

    def update(self, resource_type: str, resource_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.calls.append(("update", resource_type, resource_id))
            self._maybe_fail("update", resource_type, attributes)
            if resource_id not in self.resources:
                raise PermanentProviderError(f"{resource_type} {resource_id} does not exist")
            self.resources[resource_id] = (resource_type, copy.deepcopy(attributes))
            return self._outputs(resource_type, resource_id)

    def delete(self, resource_type: str, resource_id: str) -> None:
        with self._lock:
            self.calls.append(("delete", resource_type, resource_id))
            stored = self.resources.get(resource_id)
            self._maybe_fail("delete", resource_type, stored[1] if stored else {})
            self.resources.pop(resource_id, None)
        logger.debug(f"Deleted {resource_type} {resource_id}")

    def _maybe_fail(self, operation: str, resource_type: str, attributes: Dict[str, Any]) -> None:
        for injection in self._injections:
            if injection.operation != operation or injection.resource_type != resource_type:
                continue
            if any(attributes.get(k) != v for k, v in injection.match.items()):
                continue
            if injection.remaining is not None:
                if injection.remaining <= 0:
                    continue
                injection.remaining -= 1
            raise injection.error

    def _outputs(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        schema = self.schemas.get(resource_type, TypeSchema())
        outputs = {}
        for name in schema.computed_outputs:
            if name == "arn":
                outputs[name] = f"arn:aws:simulated:::{resource_type}/{resource_id}"
            elif name.endswith("_ip"):
                outputs[name] = f"198.51.100.{sum(resource_id.encode()) % 250 + 1}"
            elif name == "port":
                outputs[name] = 5432
            else:
                outputs[name] = f"{resource_id}-{name}"
        return outputs


def simulated_registry(provider: Optional[SimulatedProvider] = None) -> ProviderRegistry:
    """Registry with every catalog type backed by one SimulatedProvider."""
    provider = provider or SimulatedProvider()
    registry = ProviderRegistry()
    registry.register_catalog(provider, AWS_RESOURCE_TYPES)
    return registry
