"""Attribute Resolver: expressions, deferred references and their evaluation."""

from .resolver import AttributeResolver, instance_address
from .values import Reference, Interpolation, UNKNOWN, iter_references, materialize, contains_unknown

__all__ = [
    "AttributeResolver",
    "instance_address",
    "Reference",
    "Interpolation",
    "UNKNOWN",
    "iter_references",
    "materialize",
    "contains_unknown",
]
