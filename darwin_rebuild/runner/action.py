"""The actions a single darwin-rebuild invocation can perform."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Action(Enum):
    BUILD = "build"
    CHECK = "check"
    SWITCH = "switch"
    EDIT = "edit"
    ACTIVATE = "activate"
    ROLLBACK = "rollback"
    LIST_GENERATIONS = "list-generations"
    SWITCH_GENERATION = "switch-generation"
    CHANGELOG = "changelog"
    COMPLETIONS = "completions"

    @property
    def builds(self) -> bool:
        return self in (Action.BUILD, Action.CHECK, Action.SWITCH)

    @property
    def uses_flake(self) -> bool:
        return self.builds or self is Action.EDIT


@dataclass(frozen=True)
class ActionRequest:
    """The chosen action plus its argument (shell or generation), if any."""

    action: Action
    argument: str | None = None


def select_action(
    rollback: bool = False,
    list_generations: bool = False,
    switch_generation: str | None = None,
    subcommand: ActionRequest | None = None,
) -> ActionRequest | None:
    """Pick the single action for this run.

    Precedence: ``--rollback``, then ``--list-generations``, then
    ``--switch-generation``, then the subcommand. Returns None when
    nothing was requested.
    """
    if rollback:
        return ActionRequest(Action.ROLLBACK)
    if list_generations:
        return ActionRequest(Action.LIST_GENERATIONS)
    if switch_generation is not None:
        return ActionRequest(Action.SWITCH_GENERATION, switch_generation)
    return subcommand
