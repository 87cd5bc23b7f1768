"""Config file locations for oc-cli.

The user config follows ``$XDG_CONFIG_HOME`` (``~/.config/oc-cli`` by default);
project overrides sit next to the code as ``.oc-cli.yaml``.
"""

from pathlib import Path

from xdg_base_dirs import xdg_config_home

APP_NAME = "oc-cli"
CONFIG_FILE_NAME = "config.yaml"
PROJECT_CONFIG_NAME = ".oc-cli.yaml"


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return xdg_config_home() / APP_NAME


def get_config_file_path() -> Path:
    """Get the user config file path."""
    return get_config_dir() / CONFIG_FILE_NAME


def get_project_config_path(project_dir: Path) -> Path:
    """Get the project override file inside ``project_dir``."""
    return project_dir / PROJECT_CONFIG_NAME
