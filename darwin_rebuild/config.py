"""User configuration loaded from YAML.

Example ``~/.config/darwin-rebuild/config.yaml``::

    flake: ~/src/dotfiles
    profile: system
    nom: true
    diff: true
    diff_tool: nvd
    sudo: sudo
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, StrictBool, StrictStr, ValidationError, field_validator

from darwin_rebuild.errors import ConfigError

CONFIG_ENV_VAR = "DARWIN_REBUILD_CONFIG"


class RebuildConfig(BaseModel):
    """Defaults that apply when the command line leaves them unset.

    Values are not coerced: ``nom: "false"`` is rejected rather than read
    as a truthy string.
    """

    flake: Optional[StrictStr] = None
    profile: Optional[StrictStr] = None
    nom: StrictBool = True
    diff: StrictBool = True
    diff_tool: StrictStr = "nvd"
    sudo: StrictStr = "sudo"
    editor: Optional[StrictStr] = None

    @field_validator("flake")
    @classmethod
    def _expand_flake(cls, value: Optional[str]) -> Optional[str]:
        return os.path.expanduser(value) if value else None

    @field_validator("profile", "editor")
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        return value if value and value.strip() else None

    @field_validator("diff_tool", "sudo")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "darwin-rebuild" / "config.yaml"


def load_config(path: str | Path | None = None) -> RebuildConfig:
    """Load a config file; a missing file yields the defaults."""
    path = Path(path) if path else default_config_path()
    if not path.exists():
        return RebuildConfig()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e

    if data is None:
        return RebuildConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")

    try:
        return RebuildConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
