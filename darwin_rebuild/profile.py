"""Profile store adapter: point a profile at a build and walk its generations."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from darwin_rebuild.errors import FileLookupError, ProfileError
from darwin_rebuild.privilege import PrivilegeDecision, run_privileged
from darwin_rebuild.utils.commands import CommandRunner
from darwin_rebuild.utils.env import Environment

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = Path("/nix/var/nix/profiles/system")
PROFILES_DIR = Path("/nix/var/nix/profiles/system-profiles")
SYSTEM_CONFIG_FILE = "systemConfig"


def resolve_profile_path(
    name: str | None,
    env: Environment,
    profiles_dir: Path = PROFILES_DIR,
) -> Path:
    """Map a profile name to its path.

    No name (or ``system``) selects the default profile, which the
    ``profile`` environment variable may override. Any other name lives
    under ``profiles_dir``, created on demand.
    """
    if not name or name == "system":
        return Path(env.profile_override() or DEFAULT_PROFILE)

    profile = profiles_dir / name
    try:
        profile.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ProfileError(f"Unable to create {profile.parent}: {e}") from e
    return profile


class ProfileStore:
    """Wraps ``nix-env -p <profile>``."""

    def __init__(self, runner: CommandRunner, profile: Path, sudo: str = "sudo"):
        self.runner = runner
        self.profile = profile
        self.sudo = sudo

    def _nix_env(self, decision: PrivilegeDecision, flags: Sequence[str], action: str) -> None:
        command = ["nix-env", "-p", str(self.profile), *flags]
        argv, code = run_privileged(self.runner, command, decision, sudo=self.sudo)
        if code != 0:
            raise ProfileError(
                f"Failed to {action} (nix-env exited with status {code})", command=argv
            )

    def set_profile(self, decision: PrivilegeDecision, built_path: Path) -> None:
        """Make ``built_path`` the newest generation of the profile."""
        if decision.escalate:
            logger.info("setting the profile as root...")
        else:
            logger.info("setting the profile...")
        self._nix_env(decision, ["--set", str(built_path)], "set profile " + str(self.profile))

    def run_profile_command(self, decision: PrivilegeDecision, extra_flags: Sequence[str]) -> None:
        """Run ``nix-env -p <profile>`` with extra flags (rollback, listing)."""
        self._nix_env(decision, extra_flags, "run nix-env " + " ".join(extra_flags))

    def read_current_system_config(self) -> Path:
        """Return the system configuration the profile currently points at."""
        path = self.profile / SYSTEM_CONFIG_FILE
        try:
            value = path.read_text().strip()
        except FileNotFoundError as e:
            raise FileLookupError(f"{path} does not exist") from e
        except OSError as e:
            raise FileLookupError(f"Unable to read {path}: {e}") from e
        if not value:
            raise FileLookupError(f"{path} is empty")
        return Path(value)
