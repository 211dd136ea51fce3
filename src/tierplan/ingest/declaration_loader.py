"""Load and normalize declaration files (YAML or JSON)."""

import json
from pathlib import Path
from typing import Dict, Any, Iterator, Tuple
import yaml
from pydantic import ValidationError as PydanticValidationError
from .models import DeclarationSet, ResourceDeclaration, VariableDeclaration, Lifecycle
from .declaration_validator import (
    validate_declaration_structure,
    validate_resource_block,
    get_declaration_summary,
    RESERVED_BODY_KEYS,
)
from ..utils.errors import DeclarationLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_loader")


def load_declarations(path: str) -> DeclarationSet:
    """
    Load, validate and normalize a declaration file.

    Args:
        path: Path to a .yaml/.yml or .json declaration file

    Returns:
        Normalized DeclarationSet

    Raises:
        DeclarationLoadError: If the file cannot be loaded or is invalid
    """
    file_path = Path(path)

    if not file_path.exists():
        raise DeclarationLoadError(
            f"Declaration file not found: {path}. "
            "Please check the file path and ensure the file exists."
        )

    if not file_path.is_file():
        raise DeclarationLoadError(f"Path is not a file: {path}.")

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            if file_path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except json.JSONDecodeError as e:
        raise DeclarationLoadError(f"Invalid JSON in declaration file: {e}")
    except yaml.YAMLError as e:
        raise DeclarationLoadError(f"Invalid YAML in declaration file: {e}")
    except OSError as e:
        raise DeclarationLoadError(
            f"Error reading declaration file: {e}. "
            "Please check file permissions and try again."
        )

    declarations = parse_declarations(data or {})

    summary = get_declaration_summary(data or {})
    logger.info(
        f"Loaded declarations from {path} "
        f"(variables: {summary['variable_count']}, "
        f"data sources: {summary['data_source_count']}, "
        f"resources: {summary['resource_count']})"
    )
    return declarations


def parse_declarations(data: Dict[str, Any]) -> DeclarationSet:
    """
    Build a DeclarationSet from an already parsed document.

    Args:
        data: Mapping with optional 'variables', 'data' and 'resources' sections

    Returns:
        Normalized DeclarationSet

    Raises:
        DeclarationLoadError: If the structure is invalid
    """
    validate_declaration_structure(data)

    variables = {}
    for name, body in (data.get("variables") or {}).items():
        body = dict(body or {})
        try:
            variables[name] = VariableDeclaration(
                name=name,
                has_default="default" in body,
                **body
            )
        except PydanticValidationError as e:
            raise DeclarationLoadError(f"Invalid variable '{name}': {e}")

    resources = []
    problems = []
    for order, (resource_type, name, body) in enumerate(_iter_resource_entries(data.get("resources") or {})):
        address = f"{resource_type}.{name}"
        problems.extend(validate_resource_block(address, body))
        if problems:
            continue
        resources.append(_build_resource(resource_type, name, body, order))

    if problems:
        raise DeclarationLoadError("Invalid resource declarations:\n  " + "\n  ".join(problems))

    return DeclarationSet(
        variables=variables,
        data=data.get("data") or {},
        resources=resources,
    )


def _iter_resource_entries(resources: Any) -> Iterator[Tuple[str, str, Dict[str, Any]]]:
    """Yield (type, name, body) from mapping or list form, preserving file order."""
    if isinstance(resources, dict):
        for resource_type, named in resources.items():
            if not isinstance(named, dict):
                raise DeclarationLoadError(
                    f"Resource type '{resource_type}' must map logical names to resource bodies"
                )
            for name, body in named.items():
                yield resource_type, name, _split_mapping_body(body)
        return

    for idx, entry in enumerate(resources):
        if not isinstance(entry, dict) or "type" not in entry or "name" not in entry:
            raise DeclarationLoadError(f"Resource entry at index {idx} must have 'type' and 'name'")
        body = {k: v for k, v in entry.items() if k not in ("type", "name")}
        attributes = body.pop("attributes", {}) or {}
        if not isinstance(attributes, dict):
            raise DeclarationLoadError(f"Resource entry at index {idx}: 'attributes' must be a mapping")
        body["attributes"] = attributes
        yield entry["type"], entry["name"], body


def _split_mapping_body(body: Any) -> Any:
    """Mapping form keeps attributes inline next to the reserved keys."""
    if not isinstance(body, dict):
        return body
    split = {k: v for k, v in body.items() if k in RESERVED_BODY_KEYS}
    split["attributes"] = {k: v for k, v in body.items() if k not in RESERVED_BODY_KEYS}
    return split


def _build_resource(resource_type: str, name: str, body: Dict[str, Any], order: int) -> ResourceDeclaration:
    try:
        return ResourceDeclaration(
            type=resource_type,
            name=name,
            count=body.get("count"),
            depends_on=body.get("depends_on") or [],
            lifecycle=Lifecycle(**(body.get("lifecycle") or {})),
            attributes=body.get("attributes") or {},
            order=order,
        )
    except PydanticValidationError as e:
        raise DeclarationLoadError(f"Invalid resource '{resource_type}.{name}': {e}")

