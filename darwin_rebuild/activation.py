"""Run the activation scripts of a built system configuration.

Activation always runs the user scope first and the system scope second;
the system scope goes through sudo unless we already are root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from darwin_rebuild.errors import ActivationError
from darwin_rebuild.privilege import decide, run_privileged
from darwin_rebuild.utils.commands import CommandRunner
from darwin_rebuild.utils.env import Environment

logger = logging.getLogger(__name__)

CHECK_MARKER = "checkActivation"


class Activator:
    def __init__(self, runner: CommandRunner, env: Environment, sudo: str = "sudo"):
        self.runner = runner
        self.env = env
        self.sudo = sudo

    def activate_user(self, system_config: Path, check: bool = False) -> None:
        command = [str(system_config / "activate-user")]
        child_env = None
        if check:
            child_env = self.env.variables()
            child_env[CHECK_MARKER] = "1"
        code = self.runner.status(command, env=child_env)
        if code != 0:
            raise ActivationError(
                f"Failed to run activate-user (exit status {code})", command=command
            )

    def activate_system(self, system_config: Path) -> None:
        decision = decide(self.env)
        if decision.escalate:
            logger.info("activating system as root...")
        else:
            logger.info("activating system...")
        argv, code = run_privileged(
            self.runner, [str(system_config / "activate")], decision, sudo=self.sudo
        )
        if code != 0:
            raise ActivationError(f"Failed to run activate (exit status {code})", command=argv)

    def activate(self, system_config: Path) -> None:
        logger.info("activating user profile...")
        self.activate_user(system_config)
        self.activate_system(system_config)

    def check(self, system_config: Path) -> None:
        """Run only the user activation script in check mode."""
        logger.info("checking the system configuration...")
        self.activate_user(system_config, check=True)
