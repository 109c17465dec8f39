"""Tests for the child-process runner."""

import io
import sys

import pytest

from darwin_rebuild.errors import CommandError
from darwin_rebuild.utils.commands import CommandRunner


def test_run_captures_output():
    result = CommandRunner().run([sys.executable, "-c", "print('hello')"])
    assert result.ok
    assert result.stdout.strip() == "hello"


def test_run_reports_failure():
    result = CommandRunner().run(
        [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
    )
    assert result.returncode == 3
    assert result.diagnostics == "boom"


def test_missing_program():
    with pytest.raises(CommandError):
        CommandRunner().run(["definitely-not-a-real-program-xyz"])


def test_probe():
    runner = CommandRunner()
    assert runner.probe([sys.executable, "-c", "pass"])
    assert not runner.probe([sys.executable, "-c", "raise SystemExit(1)"])
    assert not runner.probe(["definitely-not-a-real-program-xyz"])


def test_stream_echoes_and_keeps_tail():
    sink = io.StringIO()
    script = "import sys\nfor i in range(3): print(f'building {i}')\nsys.exit(2)"
    result = CommandRunner(stream_to=sink).stream([sys.executable, "-c", script])
    assert result.returncode == 2
    assert sink.getvalue().splitlines() == ["building 0", "building 1", "building 2"]
    assert result.diagnostics.splitlines()[-1] == "building 2"


def test_stream_through_formatter():
    producer = [sys.executable, "-c", "print('raw')"]
    formatter = [sys.executable, "-c", "import sys; sys.stdin.read()"]
    result = CommandRunner().stream(producer, formatter=formatter)
    assert result.ok
    assert result.tail == []


def test_status_passes_environment():
    code = CommandRunner().status(
        [sys.executable, "-c", "import os, sys; sys.exit(0 if os.environ.get('X') == '1' else 1)"],
        env={"X": "1"},
    )
    assert code == 0
