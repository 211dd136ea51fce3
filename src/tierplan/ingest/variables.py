"""Bind variable values from defaults, variable files, environment and CLI flags."""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional, Mapping, Set
import yaml
from .models import DeclarationSet, VariableDeclaration, VariableType
from ..utils.errors import ValidationError, DeclarationLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.variables")

ENV_PREFIX = "TIERPLAN_VAR_"

_TYPE_CHECKS = {
    VariableType.STRING: lambda v: isinstance(v, str),
    VariableType.NUMBER: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    VariableType.BOOL: lambda v: isinstance(v, bool),
    VariableType.LIST: lambda v: isinstance(v, list),
    VariableType.MAP: lambda v: isinstance(v, dict),
    VariableType.ANY: lambda v: True,
}


class VariableBindings:
    """Resolved variable values plus the names whose values must be masked."""

    def __init__(self, values: Dict[str, Any], sensitive: Set[str]):
        self.values = values
        self.sensitive = sensitive

    def is_sensitive(self, name: str) -> bool:
        return name in self.sensitive

    def __repr__(self) -> str:
        return f"VariableBindings(names={sorted(self.values)}, sensitive={sorted(self.sensitive)})"


def load_var_file(path: str) -> Dict[str, Any]:
    """Load a YAML or JSON file of name: value bindings."""
    file_path = Path(path)
    if not file_path.is_file():
        raise DeclarationLoadError(f"Variable file not found: {path}")

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f) if file_path.suffix == ".json" else yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DeclarationLoadError(f"Invalid variable file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DeclarationLoadError(f"Variable file must contain a mapping: {path}")
    return data


def bind_variables(
    declarations: DeclarationSet,
    file_values: Optional[Mapping[str, Any]] = None,
    cli_values: Optional[Mapping[str, str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> VariableBindings:
    """
    Resolve every declared variable.

    Precedence, lowest first: declared default, variable file,
    TIERPLAN_VAR_<name> environment variables, CLI --var flags.

    Args:
        declarations: Parsed declarations
        file_values: Values from a variable file (already typed)
        cli_values: Raw string values from --var name=value
        environ: Environment mapping (defaults to os.environ)

    Returns:
        VariableBindings

    Raises:
        ValidationError: On unknown, missing or mistyped variables
    """
    environ = os.environ if environ is None else environ
    file_values = file_values or {}
    cli_values = cli_values or {}

    for source, names in (("variable file", file_values), ("--var", cli_values)):
        unknown = sorted(set(names) - set(declarations.variables))
        if unknown:
            raise ValidationError(f"Values given in {source} for undeclared variables: {', '.join(unknown)}")

    values = {}
    sensitive = set()
    for name, decl in declarations.variables.items():
        if name in cli_values:
            value = _parse_raw(decl, cli_values[name])
        elif ENV_PREFIX + name in environ:
            value = _parse_raw(decl, environ[ENV_PREFIX + name])
            logger.debug(f"Variable '{name}' bound from environment")
        elif name in file_values:
            value = file_values[name]
        elif decl.has_default:
            value = decl.default
        else:
            raise ValidationError(f"No value for required variable '{name}'", attribute=f"var.{name}")

        if value is not None and not _TYPE_CHECKS[decl.type](value):
            raise ValidationError(
                f"Variable '{name}' expects a {decl.type.value}, got {type(value).__name__}",
                attribute=f"var.{name}",
            )

        values[name] = value
        if decl.sensitive:
            sensitive.add(name)

    logger.info(f"Bound {len(values)} variables ({len(sensitive)} sensitive)")
    return VariableBindings(values, sensitive)


def parse_cli_vars(pairs) -> Dict[str, str]:
    """Split ['name=value', ...] into a dict."""
    result = {}
    for pair in pairs or ():
        if "=" not in pair:
            raise ValidationError(f"Invalid --var '{pair}', expected name=value")
        name, value = pair.split("=", 1)
        result[name.strip()] = value
    return result


def _parse_raw(decl: VariableDeclaration, raw: str) -> Any:
    """Convert a raw string binding according to the declared type."""
    if decl.type in (VariableType.STRING, VariableType.ANY):
        return raw
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ValidationError(f"Cannot parse value for variable '{decl.name}': {e}", attribute=f"var.{decl.name}")
