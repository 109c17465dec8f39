"""Error types raised while resolving, building and activating a configuration.

Every failure aborts the current action. Errors carry the failing command
and whatever output was captured so the CLI can report them without the
user having to re-run in verbose mode.
"""

from __future__ import annotations

from collections.abc import Sequence


class RebuildError(Exception):
    """Base class for all darwin-rebuild failures."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.command = list(command) if command else []
        self.output = output

    def __str__(self) -> str:
        return self.message

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


class ConfigError(RebuildError):
    """The configuration file could not be read or has the wrong shape."""


class CommandError(RebuildError):
    """An external command could not be started."""


class FlakeReferenceError(RebuildError):
    """The flake reference is empty or its attribute cannot be determined."""


class MetadataResolutionError(RebuildError):
    """``nix flake metadata`` failed or returned an unexpected document."""


class BuildError(RebuildError):
    """The system configuration failed to build."""


class PrivilegeCheckError(RebuildError):
    """The current identity or the profile permissions could not be read."""


class ProfileError(RebuildError):
    """``nix-env`` failed to update or query the profile."""


class ActivationError(RebuildError):
    """An activation script exited with a non-zero status."""


class FileLookupError(RebuildError):
    """A required file (changelog, systemConfig, darwin-config) is missing."""
