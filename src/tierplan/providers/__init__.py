"""Resource Provider capability table and built-in providers."""

from .base import ResourceProvider, ProviderRegistry, TypeSchema
from .aws_catalog import AWS_RESOURCE_TYPES
from .simulated import SimulatedProvider, simulated_registry

__all__ = [
    "ResourceProvider",
    "ProviderRegistry",
    "TypeSchema",
    "AWS_RESOURCE_TYPES",
    "SimulatedProvider",
    "simulated_registry",
]
