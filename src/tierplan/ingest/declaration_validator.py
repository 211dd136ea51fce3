"""Validate declaration file structure."""

from typing import Dict, Any, List
from ..utils.errors import DeclarationLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_validator")

TOP_LEVEL_KEYS = {"variables", "data", "resources"}
RESERVED_BODY_KEYS = {"count", "depends_on", "lifecycle"}


def validate_declaration_structure(data: Dict[str, Any]) -> None:
    """
    Validate the top-level shape of a parsed declaration file.

    Args:
        data: Parsed YAML/JSON document

    Raises:
        DeclarationLoadError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise DeclarationLoadError(
            "Declaration file must contain a dictionary with 'variables', 'data' and 'resources' sections."
        )

    unknown = sorted(set(data) - TOP_LEVEL_KEYS)
    if unknown:
        raise DeclarationLoadError(
            f"Unknown top-level sections: {', '.join(unknown)}. "
            f"Allowed sections: {', '.join(sorted(TOP_LEVEL_KEYS))}."
        )

    if "resources" not in data:
        logger.warning("Declaration file has no 'resources' section; nothing will be provisioned")

    variables = data.get("variables") or {}
    if not isinstance(variables, dict):
        raise DeclarationLoadError("'variables' must be a mapping of variable name to settings")

    for name, body in variables.items():
        if body is not None and not isinstance(body, dict):
            raise DeclarationLoadError(
                f"Variable '{name}' must be a mapping (type, default, sensitive, description)"
            )

    data_section = data.get("data") or {}
    if not isinstance(data_section, dict):
        raise DeclarationLoadError("'data' must be a mapping of type -> name -> attributes")

    for data_type, entries in data_section.items():
        if not isinstance(entries, dict):
            raise DeclarationLoadError(f"Data source type '{data_type}' must map names to attributes")
        for name, attrs in entries.items():
            if not isinstance(attrs, dict):
                raise DeclarationLoadError(f"Data source 'data.{data_type}.{name}' must be a mapping")

    resources = data.get("resources") or {}
    if not isinstance(resources, (dict, list)):
        raise DeclarationLoadError(
            "'resources' must be a mapping of type -> name -> body, or a list of resource entries"
        )

    logger.debug("Declaration structure validation passed")


def validate_resource_block(address: str, body: Any) -> List[str]:
    """
    Validate a single resource body.

    Args:
        address: type.name of the resource
        body: Resource body

    Returns:
        List of validation problems (empty if valid)
    """
    problems = []

    if not isinstance(body, dict):
        problems.append(f"{address}: resource body must be a mapping")
        return problems

    depends_on = body.get("depends_on", [])
    if not isinstance(depends_on, list) or not all(isinstance(d, str) for d in depends_on):
        problems.append(f"{address}: 'depends_on' must be a list of type.name strings")

    lifecycle = body.get("lifecycle", {})
    if lifecycle is not None and not isinstance(lifecycle, dict):
        problems.append(f"{address}: 'lifecycle' must be a mapping")

    count = body.get("count")
    if isinstance(count, bool) or (count is not None and not isinstance(count, (int, str))):
        problems.append(f"{address}: 'count' must be an integer or an expression string")
    elif isinstance(count, int) and count < 0:
        problems.append(f"{address}: 'count' must be >= 0, got {count}")

    return problems


def get_declaration_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract summary information from a parsed declaration file.

    Args:
        data: Parsed declaration document

    Returns:
        Dictionary with section counts
    """
    resources = data.get("resources") or {}
    if isinstance(resources, dict):
        resource_count = sum(len(names or {}) for names in resources.values())
    else:
        resource_count = len(resources)

    return {
        "variable_count": len(data.get("variables") or {}),
        "data_source_count": sum(len(v or {}) for v in (data.get("data") or {}).values()),
        "resource_count": resource_count,
    }
