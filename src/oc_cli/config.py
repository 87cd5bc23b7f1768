"""Configuration management for oc-cli.

Config is profile based. Every server operation needs a profile that names at
least a ``base_url``. Profiles live in ``~/.config/oc-cli/config.yaml``::

    title_prefix: "[bishop]"        # global, shared across profiles
    profiles:
      my-project:
        base_url: http://localhost:4096
        directory: /path/to/project  # sent as x-opencode-directory
        default_agent: coder
        description: My project
        tags: [work, frontend]

A ``.oc-cli.yaml`` in the current directory is deep-merged on top.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

import yaml
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from oc_cli.errors import ConfigError
from oc_cli.xdg_paths import get_config_file_path, get_project_config_path

ENV_BASE_URL = "OC_BASE_URL"
ENV_TITLE_PREFIX = "OC_TITLE_PREFIX"

PROFILE_KEYS: tuple[str, ...] = ("base_url", "directory", "default_agent", "description", "tags")
GLOBAL_CONFIG_KEYS: tuple[str, ...] = ("title_prefix",)

ADD_PROFILE_HINT = "Run `oc-cli profile add <name>` to create one."


class Profile(BaseModel):
    """Connection settings for one opencode server/project."""

    base_url: str
    directory: str | None = None
    default_agent: str | None = None
    description: str | None = None
    tags: list[str] = []


class ConfigFile(BaseModel):
    """The shape of the config file on disk."""

    title_prefix: str | None = None
    profiles: dict[str, Profile] = {}

    # When true in a project config, ignore the user config
    ignore_parent_configs: bool = False


@dataclass
class ConfigWarning:
    """A config validation warning."""

    file: str
    field_name: str
    message: str
    value: object = field(default=None, repr=False)


@dataclass
class CliOverrides:
    """Global CLI flags that take precedence over config values."""

    base_url: str | None = None
    title_prefix: str | None = None
    profile: str | None = None


@dataclass
class ResolvedConfig:
    """The runtime configuration after profile selection and overrides."""

    base_url: str
    title_prefix: str
    active_profile: str
    directory: str | None = None
    default_agent: str | None = None


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Recursively merge override dict into base dict.

    For nested dicts, merges recursively. For all other types, override wins.
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> tuple[dict[str, object], list[ConfigWarning]]:
    """Load a YAML file and return its contents as a dict with warnings.

    Args:
        path: Path to the YAML file.

    Returns:
        Tuple of (parsed dict, list of warnings). Empty dict on missing/invalid.
    """
    if not path.exists():
        return {}, []
    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        if not isinstance(raw, dict):
            return {}, []
        return cast(dict[str, object], raw), []
    except yaml.YAMLError as e:
        return {}, [ConfigWarning(file=str(path), field_name="(file)", message=f"YAML parse error: {e}")]
    except OSError as e:
        return {}, [ConfigWarning(file=str(path), field_name="(file)", message=f"File read error: {e}")]


def _validate(data: dict[str, object], source: str) -> tuple[ConfigFile, list[ConfigWarning]]:
    """Validate raw config data, dropping invalid profiles or keys instead of failing."""
    try:
        return ConfigFile.model_validate(data), []
    except ValidationError as e:
        warnings = [
            ConfigWarning(
                file=source,
                field_name=".".join(str(loc) for loc in error["loc"]),
                message=error["msg"],
                value=error.get("input"),
            )
            for error in e.errors()
        ]

    # Partial recovery: drop the offending profile (or top-level key) and retry
    recovered = dict(data)
    profiles = recovered.get("profiles")
    if isinstance(profiles, dict):
        recovered["profiles"] = dict(cast(dict[str, object], profiles))
    for warning in warnings:
        parts = warning.field_name.split(".")
        if parts[0] == "profiles" and len(parts) > 1 and isinstance(recovered.get("profiles"), dict):
            cast(dict[str, object], recovered["profiles"]).pop(parts[1], None)
        else:
            recovered.pop(parts[0], None)
    try:
        return ConfigFile.model_validate(recovered), warnings
    except ValidationError:
        return ConfigFile(), warnings


def load_config_file(
    config_path: Path | None = None,
    project_dir: Path | None = None,
) -> tuple[ConfigFile, list[ConfigWarning]]:
    """Load configuration with layered merging.

    Loading order (last value wins via deep merge):
    1. User config (~/.config/oc-cli/config.yaml) - base
    2. Project config (.oc-cli.yaml in project_dir) - overrides

    If the project config sets ``ignore_parent_configs: true``, the user
    config is skipped.

    Args:
        config_path: Optional path to user config file. Uses default if None.
        project_dir: Optional directory containing a project config.

    Returns:
        Tuple of (loaded ConfigFile, list of ConfigWarnings).
    """
    warnings: list[ConfigWarning] = []

    user_config, user_warnings = _load_yaml_file(config_path or get_config_file_path())
    warnings.extend(user_warnings)
    merged = user_config
    source = "user config"

    if project_dir:
        project_config, proj_warnings = _load_yaml_file(get_project_config_path(project_dir))
        warnings.extend(proj_warnings)
        if project_config:
            source = "merged config"
            if project_config.get("ignore_parent_configs", False):
                merged = project_config
            else:
                merged = _deep_merge(user_config, project_config)

    config, validation_warnings = _validate(merged, source)
    warnings.extend(validation_warnings)
    return config, warnings


def _load_user_config(config_path: Path | None) -> ConfigFile:
    """Load only the user config file, the one profile commands write to."""
    path = config_path or get_config_file_path()
    data, _ = _load_yaml_file(path)
    config, _ = _validate(data, str(path))
    return config


def display_config_warnings(warnings: list[ConfigWarning], console: Console) -> None:
    """Display config warnings using Rich formatting.

    Args:
        warnings: List of warnings to display.
        console: Rich console to output to.
    """
    if not warnings:
        return

    text = Text()
    for i, warning in enumerate(warnings):
        if i > 0:
            text.append("\n")
        text.append(f"  {warning.file}", style="dim")
        text.append(": ", style="dim")
        text.append(warning.field_name, style="bold")
        text.append(f" — {warning.message}", style="yellow")
        if warning.value is not None:
            text.append(f" (got: {warning.value!r})", style="dim")

    console.print(Panel(text, title="[yellow]Config Warnings[/]", border_style="yellow"))


def save_config_file(config: ConfigFile, config_path: Path | None = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: The configuration to save.
        config_path: Optional path to config file. Uses default if None.
    """
    path = config_path or get_config_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(exclude_defaults=True)

    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def get_profiles(config_path: Path | None = None) -> dict[str, Profile]:
    """Get all profiles from the user config file."""
    return _load_user_config(config_path).profiles


def get_profile(name: str, config_path: Path | None = None) -> Profile | None:
    """Get a single profile by name, or None if it does not exist."""
    return get_profiles(config_path).get(name)


def save_profile(name: str, profile: Profile, config_path: Path | None = None) -> None:
    """Add or replace a profile in the user config file."""
    config = _load_user_config(config_path)
    config.profiles[name] = profile
    save_config_file(config, config_path)


def remove_profile(name: str, config_path: Path | None = None) -> bool:
    """Remove a profile from the user config file.

    Returns:
        True if the profile existed.
    """
    config = _load_user_config(config_path)
    if name not in config.profiles:
        return False
    del config.profiles[name]
    save_config_file(config, config_path)
    return True


def set_global_value(key: str, value: str, config_path: Path | None = None) -> None:
    """Write a global (non-profile) key to the user config file."""
    if key not in GLOBAL_CONFIG_KEYS:
        raise ConfigError(f'Unknown global config key: "{key}". Valid keys: {", ".join(GLOBAL_CONFIG_KEYS)}')
    config = _load_user_config(config_path)
    setattr(config, key, value)
    save_config_file(config, config_path)


def profile_not_found_message(name: str, available: list[str]) -> str:
    hint = f" Available: {', '.join(available)}" if available else " No profiles configured."
    return f'Profile "{name}" not found.{hint}'


def _select_profile(profiles: dict[str, Profile], requested: str | None) -> tuple[str, Profile]:
    names = list(profiles)
    if requested:
        found = profiles.get(requested)
        if found is None:
            raise ConfigError(f"{profile_not_found_message(requested, names)} {ADD_PROFILE_HINT}")
        return requested, found
    if len(names) == 1:
        return names[0], profiles[names[0]]
    if not names:
        raise ConfigError(f"No profiles configured. {ADD_PROFILE_HINT}")
    raise ConfigError(f"Multiple profiles configured: {', '.join(names)}. Use -p <name> to select one.")


def resolve_global_prefix(
    config: ConfigFile,
    overrides: CliOverrides,
    env: Mapping[str, str] | None = None,
) -> str:
    """Resolve the global title prefix: CLI flag > env > config file > empty."""
    env = os.environ if env is None else env
    if overrides.title_prefix is not None:
        return overrides.title_prefix
    if ENV_TITLE_PREFIX in env:
        return env[ENV_TITLE_PREFIX]
    return config.title_prefix or ""


def resolve_config(
    config: ConfigFile,
    overrides: CliOverrides | None = None,
    env: Mapping[str, str] | None = None,
) -> ResolvedConfig:
    """Select a profile and merge it with environment and CLI overrides.

    Profile selection: the explicit ``-p`` name, else the only configured
    profile. Values resolve as CLI flag > environment > profile/file >
    default. The title prefix gets ``[<profile>] `` appended, so
    ``"[bishop]"`` with profile ``web`` becomes ``"[bishop][web] "``.

    Raises:
        ConfigError: If no profile can be selected.
    """
    overrides = overrides or CliOverrides()
    env = os.environ if env is None else env

    name, profile = _select_profile(config.profiles, overrides.profile)

    base_url = overrides.base_url or env.get(ENV_BASE_URL) or profile.base_url
    global_prefix = resolve_global_prefix(config, overrides, env)

    return ResolvedConfig(
        base_url=base_url,
        title_prefix=f"{global_prefix}[{name}] ",
        active_profile=name,
        directory=profile.directory,
        default_agent=profile.default_agent,
    )


def get_global_config_source(
    key: str,
    config: ConfigFile,
    overrides: CliOverrides | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Describe where a global config value comes from (for ``config get``)."""
    overrides = overrides or CliOverrides()
    env = os.environ if env is None else env
    if key == "title_prefix":
        if overrides.title_prefix is not None:
            return "cli flag"
        if ENV_TITLE_PREFIX in env:
            return f"env ({ENV_TITLE_PREFIX})"
        if config.title_prefix is not None:
            return "config file"
    return "default"
