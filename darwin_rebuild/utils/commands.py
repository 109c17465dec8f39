"""Thin wrapper around child processes.

All external tools (nix, nix-env, nix-build, sudo, activation scripts) are
invoked through a ``CommandRunner`` so the orchestrator can be tested with
a recording fake.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import IO

from darwin_rebuild.errors import CommandError

logger = logging.getLogger(__name__)

STREAM_TAIL_LINES = 200


@dataclass
class CommandResult:
    """Outcome of a finished child process."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    tail: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def diagnostics(self) -> str:
        """Best available text explaining a failure."""
        if self.tail:
            return "\n".join(self.tail)
        return (self.stderr or self.stdout).strip()


class CommandRunner:
    """Runs commands as blocking child processes."""

    def __init__(self, stream_to: IO[str] | None = None):
        self.stream_to = stream_to

    def run(self, command: Sequence[str], env: Mapping[str, str] | None = None) -> CommandResult:
        """Run a command and capture its output."""
        argv = list(command)
        logger.debug("Running %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                env=dict(env) if env is not None else None,
            )
        except OSError as e:
            raise CommandError(f"Unable to run {argv[0]}: {e}", command=argv) from e

        result = CommandResult(
            command=argv,
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )
        if result.ok:
            logger.debug("%s -> %d", argv[0], proc.returncode)
        else:
            logger.debug("%s -> %d\nstderr: %s", argv[0], proc.returncode, proc.stderr.strip())
        return result

    def status(self, command: Sequence[str], env: Mapping[str, str] | None = None) -> int:
        """Run a command attached to the terminal and return its exit code."""
        argv = list(command)
        logger.debug("Running %s", " ".join(argv))
        try:
            return subprocess.call(argv, env=dict(env) if env is not None else None)
        except OSError as e:
            raise CommandError(f"Unable to run {argv[0]}: {e}", command=argv) from e

    def available(self, program: str) -> bool:
        """Return True if ``program`` is on PATH."""
        return shutil.which(program) is not None

    def probe(self, command: Sequence[str]) -> bool:
        """Return True if the command runs and exits successfully."""
        argv = list(command)
        logger.debug("Probing %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            return False
        return proc.returncode == 0

    def stream(
        self,
        command: Sequence[str],
        formatter: Sequence[str] | None = None,
    ) -> CommandResult:
        """Run a long command, echoing its merged output as it arrives.

        When ``formatter`` is given the output is piped through that
        command instead (e.g. ``nom --json``) and only the exit status of
        ``command`` is reported. Otherwise the last lines are kept so a
        failure can be explained.
        """
        argv = list(command)
        logger.debug("Streaming %s", " ".join(argv))
        sink = self.stream_to or sys.stderr
        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise CommandError(f"Unable to run {argv[0]}: {e}", command=argv) from e

        tail: deque[str] = deque(maxlen=STREAM_TAIL_LINES)
        with proc:
            if formatter:
                fmt_argv = list(formatter)
                try:
                    fmt = subprocess.Popen(fmt_argv, stdin=proc.stdout)
                except OSError as e:
                    proc.kill()
                    raise CommandError(
                        f"Unable to run {fmt_argv[0]}: {e}", command=fmt_argv
                    ) from e
                # Let the formatter see EOF once the producer exits.
                proc.stdout.close()
                fmt.wait()
                returncode = proc.wait()
            else:
                for line in proc.stdout:
                    sink.write(line)
                    sink.flush()
                    tail.append(line.rstrip("\n"))
                returncode = proc.wait()

        logger.debug("%s -> %d", argv[0], returncode)
        return CommandResult(command=argv, returncode=returncode, tail=list(tail))
