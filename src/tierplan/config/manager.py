"""Layered configuration manager (defaults, user, project, explicit file, environment)."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from .paths import get_defaults_path, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")

# Environment variable -> (section, key) in the config tree
ENV_OVERRIDES = {
    "TIERPLAN_PARALLELISM": ("executor", "parallelism"),
    "TIERPLAN_MAX_ATTEMPTS": ("executor", "retry", "max_attempts"),
    "TIERPLAN_STATE_PATH": ("state", "path"),
    "TIERPLAN_LOG_LEVEL": ("logging", "level"),
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load full config tree.

    Precedence, lowest first: packaged defaults, user config, project config,
    explicit config file, TIERPLAN_* environment variables.

    Args:
        config_path: Optional explicit config file

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If the defaults or an explicit config file cannot be read
    """
    config = _read_yaml(get_defaults_path(), required=True)

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        try:
            _deep_merge(config, _read_yaml(user_config_path, required=True))
        except ConfigError as e:
            logger.warning(f"Could not load user config from {user_config_path}: {e}")

    project_config_path = get_project_config_path()
    if project_config_path:
        try:
            _deep_merge(config, _read_yaml(project_config_path, required=True))
            logger.info(f"Loaded project config from {project_config_path}")
        except ConfigError as e:
            logger.warning(f"Could not load project config from {project_config_path}: {e}")

    if config_path is not None:
        _deep_merge(config, _read_yaml(Path(config_path), required=True))
        logger.info(f"Loaded config from {config_path}")

    for env_name, key_path in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None and value != "":
            _set_path(config, key_path, value)
            logger.debug(f"Config override from {env_name}")

    return config


def _read_yaml(path: Path, required: bool = False) -> Dict[str, Any]:
    """Read a YAML mapping from path."""
    if not path.exists():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return {}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a dictionary: {path}")
    return data


def _set_path(config: Dict[str, Any], key_path: tuple, value: Any) -> None:
    """Set a nested key, creating intermediate sections."""
    node = config
    for key in key_path[:-1]:
        node = node.setdefault(key, {})
    node[key_path[-1]] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
