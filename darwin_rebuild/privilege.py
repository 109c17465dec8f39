"""Privilege policy: decide whether a step has to run through sudo.

The decision is recomputed right before every privileged call. A build can
take minutes, and neither the identity nor the profile permissions are
assumed to be stable across that.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from darwin_rebuild.errors import PrivilegeCheckError
from darwin_rebuild.utils.commands import CommandRunner
from darwin_rebuild.utils.env import Environment

logger = logging.getLogger(__name__)

SUPERUSER = "root"


class Escalation(Enum):
    """How a privileged command is launched."""

    DIRECT = "direct"
    SUDO = "sudo"


@dataclass(frozen=True)
class PrivilegeDecision:
    """Result of evaluating the privilege policy for one call."""

    is_admin: bool
    read_only: bool

    @property
    def escalation(self) -> Escalation:
        if not self.is_admin and self.read_only:
            return Escalation.SUDO
        return Escalation.DIRECT

    @property
    def escalate(self) -> bool:
        return self.escalation is Escalation.SUDO


def is_read_only(path: Path, env: Environment) -> bool:
    """True if ``path`` exists and the current identity cannot write it.

    A missing path is writable: the step that follows will create it.
    """
    try:
        os.lstat(path)
    except FileNotFoundError:
        logger.debug("%s does not exist yet, treating it as writable", path)
        return False
    except OSError as e:
        raise PrivilegeCheckError(f"Unable to read permissions of {path}: {e}") from e
    return not env.is_writable(path)


def decide(env: Environment, target: Path | None = None) -> PrivilegeDecision:
    """Evaluate the privilege policy for ``target``.

    ``target=None`` means a system-scope step with no file of its own
    (system activation); such a step is never writable by a regular user,
    so it escalates exactly when the caller is not the superuser.
    """
    is_admin = env.user() == SUPERUSER
    read_only = True if target is None else is_read_only(target, env)
    decision = PrivilegeDecision(is_admin=is_admin, read_only=read_only)
    logger.debug(
        "Is root user: %s, %s read-only: %s",
        is_admin,
        target if target is not None else "system scope",
        read_only,
    )
    return decision


def privileged_command(
    command: Sequence[str], decision: PrivilegeDecision, sudo: str = "sudo"
) -> list[str]:
    if decision.escalation is Escalation.SUDO:
        return [sudo, *command]
    return list(command)


def run_privileged(
    runner: CommandRunner,
    command: Sequence[str],
    decision: PrivilegeDecision,
    sudo: str = "sudo",
    env: Mapping[str, str] | None = None,
) -> tuple[list[str], int]:
    """Run ``command`` attached to the terminal, through sudo if needed.

    Returns the argv actually executed and its exit status.
    """
    argv = privileged_command(command, decision, sudo)
    if decision.escalate:
        logger.info("Running as root: %s", " ".join(command))
    return argv, runner.status(argv, env=env)
