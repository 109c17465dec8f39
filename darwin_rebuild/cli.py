"""darwin-rebuild CLI: the main entry point."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from darwin_rebuild import __version__
from darwin_rebuild.completion import SHELLS
from darwin_rebuild.config import CONFIG_ENV_VAR, load_config
from darwin_rebuild.errors import RebuildError
from darwin_rebuild.runner.action import Action, ActionRequest, select_action
from darwin_rebuild.runner.rebuild_runner import RebuildRunner, prepare_context
from darwin_rebuild.utils.commands import CommandRunner
from darwin_rebuild.utils.env import SystemEnvironment
from darwin_rebuild.utils.logging import setup_logging

console = Console()
err_console = Console(stderr=True)

# Options that only make sense for nix evaluation/building. Each maps the
# click parameter name to the nix flag and whether it also applies to
# ``nix flake metadata``.
_VALUE_FLAGS = [
    ("max_jobs", "--max-jobs", True),
    ("cores", "--cores", True),
    ("update_input", "--update-input", True),
    ("substituters", "--substituters", True),
]
_PAIR_FLAGS = [
    ("option", "--option", True),
    ("arg", "--arg", True),
    ("argstr", "--argstr", True),
    ("override_input", "--override-input", True),
]
_SWITCH_FLAGS = [
    ("dry_run", "--dry-run", False),
    ("keep_going", "--keep-going", False),
    ("keep_failed", "--keep-failed", False),
    ("fallback", "--fallback", False),
    ("show_trace", "--show-trace", False),
    ("offline", "--offline", True),
]


def forwarded_flags(params: dict) -> tuple[list[str], list[str]]:
    """Translate build-only options into (build flags, metadata flags)."""
    build_flags: list[str] = []
    metadata_flags: list[str] = []

    def add(flags: list[str], for_metadata: bool) -> None:
        build_flags.extend(flags)
        if for_metadata:
            metadata_flags.extend(flags)

    for name, flag, for_metadata in _VALUE_FLAGS:
        value = params.get(name)
        if value is not None:
            add([flag, str(value)], for_metadata)
    for name, flag, for_metadata in _PAIR_FLAGS:
        for key, value in params.get(name) or ():
            add([flag, key, value], for_metadata)
    for name, flag, for_metadata in _SWITCH_FLAGS:
        if params.get(name):
            add([flag], for_metadata)
    return build_flags, metadata_flags


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--profile-name", "-p", default=None, help="Profile name (default: system)")
@click.option("--rollback", is_flag=True, help="Roll back to the previous generation")
@click.option("--list-generations", is_flag=True, help="List the profile's generations")
@click.option("--switch-generation", "-G", default=None, help="Switch to generation N")
@click.option("--flake", "-f", envvar="FLAKE", default=None, help="Flake reference, e.g. ~/dotfiles#host")
@click.option("--config", "config_path", envvar=CONFIG_ENV_VAR, default=None, help="Config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
@click.option("--max-jobs", "-j", default=None, help="Maximum number of build jobs")
@click.option("--cores", default=None, help="Cores per build job")
@click.option("--dry-run", is_flag=True, help="Show what would be built")
@click.option("--keep-going", "-k", is_flag=True, help="Keep going after a failed build")
@click.option("--keep-failed", "-K", is_flag=True, help="Keep failed build directories")
@click.option("--fallback", is_flag=True, help="Build from source if substitution fails")
@click.option("--show-trace", is_flag=True, help="Show evaluation traces")
@click.option("--option", nargs=2, multiple=True, help="Set a nix option NAME VALUE")
@click.option("--arg", nargs=2, multiple=True, help="Pass NAME EXPR to the configuration")
@click.option("--argstr", nargs=2, multiple=True, help="Pass NAME STRING to the configuration")
@click.option("--update-input", default=None, help="Update a flake input")
@click.option("--override-input", nargs=2, multiple=True, help="Override flake input INPUT URL")
@click.option("--offline", is_flag=True, help="Do not use the network")
@click.option("--substituters", default=None, help="Binary caches to use")
@click.option("--no-nom", is_flag=True, help="Do not pipe builds through nix-output-monitor")
@click.option("--no-diff", is_flag=True, help="Skip the post-build diff")
@click.pass_context
def main(ctx: click.Context, **params):
    """Build and activate nix-darwin configurations.

    Run a subcommand, or use --rollback / --list-generations /
    --switch-generation on their own.
    """
    exclusive = [
        name
        for name, given in (
            ("--rollback", params["rollback"]),
            ("--list-generations", params["list_generations"]),
            ("--switch-generation", params["switch_generation"] is not None),
        )
        if given
    ]
    if len(exclusive) > 1:
        raise click.UsageError(f"{' and '.join(exclusive)} are mutually exclusive")

    ctx.obj = params

    if ctx.invoked_subcommand is None:
        request = _select(params, None)
        if request is None:
            click.echo(ctx.get_help())
            ctx.exit(2)
        _execute(ctx, request)


def _select(params: dict, subcommand: ActionRequest | None) -> ActionRequest | None:
    return select_action(
        rollback=params["rollback"],
        list_generations=params["list_generations"],
        switch_generation=params["switch_generation"],
        subcommand=subcommand,
    )


def _execute(ctx: click.Context, request: ActionRequest) -> None:
    params = ctx.obj
    verbose = params["verbose"]
    setup_logging(verbose, err_console)
    runner = CommandRunner()
    env = SystemEnvironment()

    try:
        config = load_config(params["config_path"])
        if params["no_nom"]:
            config.nom = False
        if params["no_diff"]:
            config.diff = False

        build_flags, metadata_flags = forwarded_flags(params)
        flake = params["flake"] or config.flake
        context = prepare_context(
            params["profile_name"] or config.profile,
            flake if request.action.uses_flake else None,
            env,
            runner,
            build_flags=build_flags,
            metadata_flags=metadata_flags,
        )
        RebuildRunner(context, request, runner, env, config=config, console=console).run()
    except RebuildError as e:
        _report_error(e, verbose)
        ctx.exit(1)


def _report_error(error: RebuildError, verbose: bool) -> None:
    err_console.print(f"[red]error:[/] {escape(str(error))}", highlight=False)
    if error.command:
        err_console.print(f"  command: {error.command_line}", markup=False, highlight=False)
    if error.output:
        output = error.output if verbose else "\n".join(error.output.splitlines()[-20:])
        err_console.print(output, markup=False, highlight=False)
    if verbose:
        err_console.print_exception(show_locals=False)


# ── Subcommands ──────────────────────────────────────────────────────

# --verbose is accepted after the subcommand as well as before it.
verbose_option = click.option(
    "--verbose", "-v", "sub_verbose", is_flag=True, help="Show debug logs"
)


def _run_subcommand(ctx: click.Context, request: ActionRequest, sub_verbose: bool) -> None:
    if sub_verbose:
        ctx.obj["verbose"] = True
    _execute(ctx, _select(ctx.obj, request))


@main.command()
@verbose_option
@click.pass_context
def build(ctx: click.Context, sub_verbose: bool):
    """Build the system configuration without activating it."""
    _run_subcommand(ctx, ActionRequest(Action.BUILD), sub_verbose)


@main.command()
@verbose_option
@click.pass_context
def check(ctx: click.Context, sub_verbose: bool):
    """Build the configuration and run the activation checks."""
    _run_subcommand(ctx, ActionRequest(Action.CHECK), sub_verbose)


@main.command()
@verbose_option
@click.pass_context
def switch(ctx: click.Context, sub_verbose: bool):
    """Build, set the profile and activate the configuration."""
    _run_subcommand(ctx, ActionRequest(Action.SWITCH), sub_verbose)


@main.command()
@verbose_option
@click.pass_context
def edit(ctx: click.Context, sub_verbose: bool):
    """Open the configuration in an editor."""
    _run_subcommand(ctx, ActionRequest(Action.EDIT), sub_verbose)


@main.command()
@verbose_option
@click.pass_context
def activate(ctx: click.Context, sub_verbose: bool):
    """Activate the system this executable belongs to."""
    _run_subcommand(ctx, ActionRequest(Action.ACTIVATE), sub_verbose)


@main.command()
@verbose_option
@click.pass_context
def changelog(ctx: click.Context, sub_verbose: bool):
    """Show the nix-darwin changelog of the current system."""
    _run_subcommand(ctx, ActionRequest(Action.CHANGELOG), sub_verbose)


@main.command()
@click.argument("shell", type=click.Choice(SHELLS))
@verbose_option
@click.pass_context
def completions(ctx: click.Context, shell: str, sub_verbose: bool):
    """Print the shell completion script for SHELL.

    Supported shells are bash, zsh and fish; powershell and elvish are
    not generated.
    """
    _run_subcommand(ctx, ActionRequest(Action.COMPLETIONS, shell), sub_verbose)


if __name__ == "__main__":
    main()
