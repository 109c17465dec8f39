"""Action orchestrator: sequence build, profile switch and activation.

A run performs exactly one action. Every run allocates a temporary
directory for the build out-link, which is removed when the run ends,
whether it succeeded or not.
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import click
from rich.console import Console

from darwin_rebuild.activation import Activator
from darwin_rebuild.builder import Builder
from darwin_rebuild.changelog import print_changelog
from darwin_rebuild.config import RebuildConfig
from darwin_rebuild.errors import ActivationError, BuildError, FileLookupError, RebuildError
from darwin_rebuild.flake.metadata import FLAKE_FLAGS, MetadataResolver, ResolvedReference
from darwin_rebuild.flake.reference import parse_flake_reference
from darwin_rebuild.privilege import decide
from darwin_rebuild.profile import DEFAULT_PROFILE, PROFILES_DIR, ProfileStore, resolve_profile_path
from darwin_rebuild.runner.action import Action, ActionRequest
from darwin_rebuild.utils.commands import CommandRunner
from darwin_rebuild.utils.env import Environment

logger = logging.getLogger(__name__)

INSTALL_SUFFIX = "/sw/bin/darwin-rebuild"
OUT_DIR_PREFIX = "nix-darwin-"
OUT_LINK_NAME = "result"


@dataclass
class RunContext:
    """State owned by a single run."""

    profile: Path
    build_flags: list[str] = field(default_factory=list)
    metadata_flags: list[str] = field(default_factory=list)
    flake: ResolvedReference | None = None


def prepare_context(
    profile_name: str | None,
    flake: str | None,
    env: Environment,
    runner: CommandRunner,
    build_flags: Sequence[str] = (),
    metadata_flags: Sequence[str] = (),
    profiles_dir: Path = PROFILES_DIR,
) -> RunContext:
    """Resolve the profile path and, when given, the flake reference.

    An empty flake reference means the channel-based ``<darwin>`` setup.
    """
    profile = resolve_profile_path(profile_name, env, profiles_dir)
    logger.info("Current profile: %s", profile)

    resolved = None
    if flake:
        reference = parse_flake_reference(flake)
        resolved = MetadataResolver(runner, env, metadata_flags).resolve(reference)

    return RunContext(
        profile=profile,
        build_flags=list(build_flags),
        metadata_flags=list(metadata_flags),
        flake=resolved,
    )


class RebuildRunner:
    """Runs one action against a prepared ``RunContext``."""

    def __init__(
        self,
        context: RunContext,
        request: ActionRequest,
        runner: CommandRunner,
        env: Environment,
        config: RebuildConfig | None = None,
        console: Console | None = None,
        completion_source: Callable[[str], str] | None = None,
    ):
        self.context = context
        self.request = request
        self.runner = runner
        self.env = env
        self.config = config or RebuildConfig()
        self.console = console or Console()
        self.completion_source = completion_source

        self.store = ProfileStore(runner, context.profile, sudo=self.config.sudo)
        self.activator = Activator(runner, env, sudo=self.config.sudo)
        self.builder = Builder(
            runner,
            extra_flags=context.build_flags,
            use_nom=self.config.nom,
            diff_tool=self.config.diff_tool if self.config.diff else None,
            diff_against=context.profile,
        )

    @property
    def action(self) -> Action:
        return self.request.action

    def run(self) -> Path | None:
        """Perform the action; returns the built output for build actions."""
        handlers = {
            Action.BUILD: self._build,
            Action.CHECK: self._check,
            Action.SWITCH: self._switch,
            Action.EDIT: self._edit,
            Action.ACTIVATE: self._activate,
            Action.ROLLBACK: self._rollback,
            Action.LIST_GENERATIONS: self._list_generations,
            Action.SWITCH_GENERATION: self._switch_generation,
            Action.CHANGELOG: self._changelog,
            Action.COMPLETIONS: self._completions,
        }
        logger.info("Starting action: %s", self.action.value)

        with tempfile.TemporaryDirectory(prefix=OUT_DIR_PREFIX) as out_dir:
            out_link = Path(out_dir) / OUT_LINK_NAME
            logger.debug("out_link: %s", out_link)
            return handlers[self.action](out_link)

    # ── Build actions ────────────────────────────────────────────────

    def _build(self, out_link: Path) -> Path:
        return self.builder.build(self.context.flake, out_link)

    def _build_existing(self, out_link: Path) -> Path:
        system_config = self._build(out_link)
        if not system_config.exists():
            raise BuildError(f"The build did not produce a system configuration at {out_link}")
        return system_config

    def _check(self, out_link: Path) -> None:
        system_config = self._build_existing(out_link)
        self.activator.check(system_config)

    def _switch(self, out_link: Path) -> Path:
        system_config = self._build_existing(out_link)
        self.store.set_profile(decide(self.env, self.context.profile), system_config)
        self.activator.activate(system_config)
        return system_config

    # ── Profile actions ──────────────────────────────────────────────

    def _rollback(self, out_link: Path) -> None:
        self._profile_then_activate(["--rollback"])

    def _switch_generation(self, out_link: Path) -> None:
        self._profile_then_activate(["--switch-generation", str(self.request.argument)])

    def _profile_then_activate(self, flags: list[str]) -> None:
        self.store.run_profile_command(decide(self.env, self.context.profile), flags)
        system_config = self.store.read_current_system_config()
        self.activator.activate(system_config)

    def _list_generations(self, out_link: Path) -> None:
        self.store.run_profile_command(
            decide(self.env, self.context.profile), ["--list-generations"]
        )

    def _activate(self, out_link: Path) -> None:
        self.activator.activate(self.installed_system_config())

    def installed_system_config(self) -> Path:
        """Locate the system configuration this executable belongs to.

        The program is installed as ``<system>/sw/bin/darwin-rebuild``; the
        part before that suffix, with symlinks resolved, is the system.
        """
        executable = self.env.executable()
        if not executable.endswith(INSTALL_SUFFIX):
            raise ActivationError(
                f"Cannot locate the system configuration: {executable} is not "
                f"installed under a system profile (*{INSTALL_SUFFIX})"
            )
        system_config = Path(os.path.realpath(executable[: -len(INSTALL_SUFFIX)]))
        if not system_config.is_dir():
            raise ActivationError(f"System configuration {system_config} does not exist")
        return system_config

    # ── Other actions ────────────────────────────────────────────────

    def _edit(self, out_link: Path) -> None:
        flake = self.context.flake
        if flake is not None:
            command = ["nix", *FLAKE_FLAGS, "edit", "--", flake.edit_target]
            code = self.runner.status(command)
            if code != 0:
                raise RebuildError(
                    f"Failed to edit {flake.edit_target} (exit status {code})", command=command
                )
            return

        darwin_config = self.find_darwin_config()
        command = [*self.editor_command(), str(darwin_config)]
        code = self.runner.status(command)
        if code != 0:
            raise RebuildError(f"Editor exited with status {code}", command=command)

    def editor_command(self) -> list[str]:
        line = self.config.editor or self.env.editor()
        try:
            editor = shlex.split(line)
        except ValueError as e:
            raise RebuildError(f"Cannot parse editor command {line!r}: {e}") from e
        if not editor:
            raise RebuildError("No editor configured; set EDITOR or `editor` in the config file")
        return editor

    def find_darwin_config(self) -> Path:
        command = ["nix-instantiate", "--find-file", "darwin-config"]
        result = self.runner.run(command)
        path = result.stdout.strip()
        if not result.ok or not path:
            raise FileLookupError(
                "Unable to find darwin-config in NIX_PATH",
                command=command,
                output=result.diagnostics,
            )
        return Path(path)

    def _changelog(self, out_link: Path) -> None:
        print_changelog(DEFAULT_PROFILE, self.console)

    def _completions(self, out_link: Path) -> None:
        if self.completion_source is None:
            from darwin_rebuild.cli import main
            from darwin_rebuild.completion import completion_script

            script = completion_script(main, str(self.request.argument))
        else:
            script = self.completion_source(str(self.request.argument))
        click.echo(script)
