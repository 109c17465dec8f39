"""Build engine adapter: materialize a configuration into the nix store."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from darwin_rebuild.errors import BuildError, CommandError
from darwin_rebuild.flake.metadata import FLAKE_FLAGS, ResolvedReference
from darwin_rebuild.utils.commands import CommandRunner

logger = logging.getLogger(__name__)

LEGACY_EXPRESSION = "<darwin>"
LEGACY_ATTRIBUTE = "system"
NOM_COMMAND = ["nom", "--json"]


class Builder:
    """Runs ``nix build`` (flakes) or ``nix-build`` (channels).

    Args:
        runner: Command runner used for every child process.
        extra_flags: Build flags forwarded verbatim to nix.
        use_nom: Pipe flake builds through nix-output-monitor when present.
        diff_tool: Program used for the post-build summary, or None.
        diff_against: Profile the new build is compared with.
    """

    def __init__(
        self,
        runner: CommandRunner,
        extra_flags: Sequence[str] = (),
        use_nom: bool = True,
        diff_tool: str | None = "nvd",
        diff_against: Path | None = None,
    ):
        self.runner = runner
        self.extra_flags = list(extra_flags)
        self.use_nom = use_nom
        self.diff_tool = diff_tool
        self.diff_against = diff_against

    def build(self, reference: ResolvedReference | None, out_link: Path) -> Path:
        """Build the system configuration and return its output path.

        The out-link lives in a per-run temporary directory; the returned
        path is what that link points to once the build has finished.
        """
        if reference is not None:
            logger.info("building the system configuration from %s...", reference.url)
            self._build_flake(reference, out_link)
        else:
            logger.info("building the system configuration from %s...", LEGACY_EXPRESSION)
            self._build_legacy(out_link)

        output = self._resolve_output(out_link)
        self.report_diff(out_link)
        return output

    def _build_flake(self, reference: ResolvedReference, out_link: Path) -> None:
        formatter = None
        command = ["nix", *FLAKE_FLAGS, "build"]
        if self.use_nom and self.runner.available(NOM_COMMAND[0]):
            command += ["--log-format", "internal-json", "-v"]
            formatter = NOM_COMMAND
        command += ["--out-link", str(out_link), *self.extra_flags, "--", reference.installable]

        result = self.runner.stream(command, formatter=formatter)
        if not result.ok:
            raise BuildError(
                f"Failed to build {reference.installable} (exit status {result.returncode})",
                command=command,
                output=result.diagnostics,
            )

    def _build_legacy(self, out_link: Path) -> None:
        command = [
            "nix-build",
            LEGACY_EXPRESSION,
            *self.extra_flags,
            "--out-link",
            str(out_link),
            "-A",
            LEGACY_ATTRIBUTE,
        ]
        result = self.runner.stream(command)
        if not result.ok:
            raise BuildError(
                f"Failed to build {LEGACY_EXPRESSION} (exit status {result.returncode})",
                command=command,
                output=result.diagnostics,
            )

    @staticmethod
    def _resolve_output(out_link: Path) -> Path:
        # Dry runs and --no-out-link style flags leave no link behind.
        if os.path.lexists(out_link):
            return Path(os.path.realpath(out_link))
        return out_link

    def report_diff(self, out_link: Path) -> None:
        """Print what changed relative to the current profile.

        Purely informational: any failure is logged and ignored.
        """
        if not self.diff_tool or self.diff_against is None:
            return
        if not os.path.lexists(out_link) or not os.path.lexists(self.diff_against):
            return
        if not self.runner.available(self.diff_tool):
            logger.debug("%s not found, skipping diff", self.diff_tool)
            return

        command = [self.diff_tool, "diff", str(self.diff_against), str(out_link)]
        try:
            code = self.runner.status(command)
        except CommandError as e:
            logger.warning("Unable to run %s: %s", self.diff_tool, e)
            return
        if code != 0:
            logger.warning("%s exited with status %d", self.diff_tool, code)
