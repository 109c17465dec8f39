"""Shell completion scripts, generated by click."""

from __future__ import annotations

import click
from click.shell_completion import get_completion_class

PROG_NAME = "darwin-rebuild"
SHELLS = ("bash", "zsh", "fish")


def completion_script(command: click.Command, shell: str, prog_name: str = PROG_NAME) -> str:
    """Return the completion script for ``shell``."""
    cls = get_completion_class(shell)
    if cls is None:
        raise click.BadParameter(f"Unsupported shell: {shell}", param_hint="SHELL")
    complete_var = "_{}_COMPLETE".format(prog_name.replace("-", "_").upper())
    return cls(command, {}, prog_name, complete_var).source()
