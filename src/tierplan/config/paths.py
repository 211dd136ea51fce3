"""Config path resolution for two-tier config system."""

from pathlib import Path
from typing import Optional


def get_defaults_path() -> Path:
    """Get the packaged defaults file."""
    return Path(__file__).parent / "defaults.yaml"


def get_user_config_path() -> Path:
    """Get user config path: ~/.tierplan/config.yaml"""
    home = Path.home()
    return home / ".tierplan" / "config.yaml"


def get_project_config_path() -> Optional[Path]:
    """Get project config path: .tierplan/config.yaml (from current working directory)"""
    cwd = Path.cwd()
    project_config = cwd / ".tierplan" / "config.yaml"
    if project_config.exists():
        return project_config
    return None
