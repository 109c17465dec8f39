"""Shared fakes: a recording command runner and an in-memory environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from darwin_rebuild.utils.commands import CommandResult


class FakeRunner:
    """Records every command instead of running it.

    Responses are keyed by a token that must appear in the argv.
    """

    def __init__(self):
        self.calls: list[tuple[str, list[str], dict | None]] = []
        self.outputs: dict[str, CommandResult] = {}
        self.codes: dict[str, int] = {}
        self.programs: set[str] = set()
        self.probe_ok = True
        self.build_output: Path | None = None
        self.stream_code = 0
        self.stream_tail: list[str] = []

    def respond(self, token: str, stdout: str = "", returncode: int = 0, stderr: str = ""):
        self.outputs[token] = CommandResult(
            command=[], returncode=returncode, stdout=stdout, stderr=stderr
        )

    def fail(self, token: str, code: int = 1):
        self.codes[token] = code

    def run(self, command, env=None):
        argv = list(command)
        self.calls.append(("run", argv, env))
        for token, result in self.outputs.items():
            if token in argv:
                return CommandResult(
                    command=argv,
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                )
        return CommandResult(command=argv, returncode=0)

    def status(self, command, env=None):
        argv = list(command)
        self.calls.append(("status", argv, env))
        for token, code in self.codes.items():
            if any(part == token or part.endswith("/" + token) for part in argv):
                return code
        return 0

    def probe(self, command):
        self.calls.append(("probe", list(command), None))
        return self.probe_ok

    def available(self, program):
        return program in self.programs

    def stream(self, command, formatter=None):
        argv = list(command)
        self.calls.append(("stream", argv, {"formatter": formatter}))
        if self.stream_code == 0 and self.build_output is not None:
            out_link = Path(argv[argv.index("--out-link") + 1])
            os.symlink(self.build_output, out_link)
        return CommandResult(command=argv, returncode=self.stream_code, tail=self.stream_tail)

    def commands(self, kind: str | None = None) -> list[list[str]]:
        return [argv for k, argv, _ in self.calls if kind is None or k == kind]


@dataclass
class FakeEnvironment:
    user_name: str | None = "alice"
    host: str | None = "bar"
    editor_command: str = "vi"
    profile: str | None = None
    executable_path: str = "/usr/local/bin/darwin-rebuild"
    writable: bool = True
    env: dict[str, str] = field(default_factory=lambda: {"PATH": "/usr/bin"})
    hostname_calls: int = 0

    def user(self) -> str:
        from darwin_rebuild.errors import PrivilegeCheckError

        if self.user_name is None:
            raise PrivilegeCheckError("Unable to determine the current user")
        return self.user_name

    def hostname(self) -> str:
        self.hostname_calls += 1
        if self.host is None:
            raise OSError("no host name")
        return self.host

    def editor(self) -> str:
        return self.editor_command

    def profile_override(self) -> str | None:
        return self.profile

    def executable(self) -> str:
        return self.executable_path

    def is_writable(self, path: Path) -> bool:
        return self.writable

    def variables(self) -> dict[str, str]:
        return dict(self.env)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_env() -> FakeEnvironment:
    return FakeEnvironment()


@pytest.fixture
def system_config(tmp_path: Path) -> Path:
    """A directory shaped like a built nix-darwin system."""
    system = tmp_path / "store" / "abc123-darwin-system"
    system.mkdir(parents=True)
    (system / "activate").write_text("#!/bin/sh\n")
    (system / "activate-user").write_text("#!/bin/sh\n")
    return system


@pytest.fixture
def profile_dir(tmp_path: Path, system_config: Path) -> Path:
    """A profile whose current generation points at ``system_config``."""
    profile = tmp_path / "profiles" / "system"
    profile.mkdir(parents=True)
    (profile / "systemConfig").write_text(f"{system_config}\n")
    return profile
