"""Print the nix-darwin changelog of the current system."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from darwin_rebuild.errors import FileLookupError

CHANGELOG_FILE = "darwin-changes"
CHANGELOG_LINES = 32


def read_changelog(profile: Path, limit: int = CHANGELOG_LINES) -> list[str]:
    path = profile / CHANGELOG_FILE
    try:
        with open(path) as f:
            lines = []
            for line in f:
                if len(lines) >= limit:
                    break
                lines.append(line.rstrip("\n"))
    except FileNotFoundError as e:
        raise FileLookupError(f"No changelog at {path}") from e
    except OSError as e:
        raise FileLookupError(f"Unable to read {path}: {e}") from e
    return lines


def print_changelog(profile: Path, console: Console) -> None:
    console.print("\n[bold]CHANGELOG[/]\n")
    for line in read_changelog(profile):
        console.print(line, markup=False, highlight=False)
