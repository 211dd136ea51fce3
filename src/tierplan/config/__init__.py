"""Configuration module: load and validate engine settings."""

from typing import Optional
from pydantic import ValidationError as PydanticValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config
from .models import EngineConfig, ExecutorConfig, RetryConfig, StateConfig, LoggingConfig

logger = get_logger("config")

__all__ = [
    "load_engine_config",
    "load_config",
    "EngineConfig",
    "ExecutorConfig",
    "RetryConfig",
    "StateConfig",
    "LoggingConfig",
]


def load_engine_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load configuration from the layered YAML sources and validate it.

    Args:
        config_path: Optional explicit config YAML file

    Returns:
        Validated EngineConfig

    Raises:
        ConfigError: If config cannot be loaded or is invalid
    """
    raw = load_config(config_path)
    try:
        config = EngineConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    logger.debug(
        f"Engine config: parallelism={config.executor.parallelism}, "
        f"max_attempts={config.executor.retry.max_attempts}, state={config.state.path}"
    )
    return config
