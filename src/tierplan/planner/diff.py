"""Normalized attribute comparison between desired values and recorded state."""

import json
from typing import Any, Dict, List
from ..providers.base import TypeSchema
from ..resolver.values import contains_unknown


def normalize(value: Any, unordered: bool = False) -> Any:
    """
    Canonical form for comparison: None-valued map keys dropped, tuples as
    lists, set-like lists sorted.
    """
    if isinstance(value, dict):
        return {k: normalize(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        items = [normalize(v) for v in value]
        if unordered:
            items.sort(key=lambda v: json.dumps(v, sort_keys=True, default=str))
        return items
    return value


def _canonical(value: Any, unordered: bool) -> str:
    return json.dumps(normalize(value, unordered), sort_keys=True, default=str)


def diff_attributes(expected: Dict[str, Any], actual: Dict[str, Any], schema: TypeSchema) -> List[str]:
    """
    Names of attributes whose expected value differs from the recorded one.

    A value containing UNKNOWN always differs: it depends on a node that
    will only get its outputs during apply.
    """
    changed = []
    for key in sorted(set(expected) | set(actual)):
        wanted = expected.get(key)
        if contains_unknown(wanted):
            changed.append(key)
            continue
        unordered = key in schema.set_attributes
        if _canonical(wanted, unordered) != _canonical(actual.get(key), unordered):
            changed.append(key)
    return changed
