"""Tests for action selection."""

from darwin_rebuild.runner.action import Action, ActionRequest, select_action


def test_rollback_wins_over_subcommand():
    request = select_action(rollback=True, subcommand=ActionRequest(Action.SWITCH))
    assert request == ActionRequest(Action.ROLLBACK)


def test_list_generations_without_rollback():
    request = select_action(list_generations=True, subcommand=ActionRequest(Action.BUILD))
    assert request.action is Action.LIST_GENERATIONS


def test_rollback_wins_over_list_generations():
    assert select_action(rollback=True, list_generations=True).action is Action.ROLLBACK


def test_switch_generation_carries_number():
    request = select_action(switch_generation="12", subcommand=ActionRequest(Action.BUILD))
    assert request == ActionRequest(Action.SWITCH_GENERATION, "12")


def test_subcommand_when_no_flags():
    request = ActionRequest(Action.COMPLETIONS, "fish")
    assert select_action(subcommand=request) is request


def test_nothing_requested():
    assert select_action() is None


def test_build_actions():
    assert {a for a in Action if a.builds} == {Action.BUILD, Action.CHECK, Action.SWITCH}
    assert Action.EDIT.uses_flake
    assert not Action.ROLLBACK.uses_flake
