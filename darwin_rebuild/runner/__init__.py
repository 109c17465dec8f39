"""Action selection and orchestration for a single darwin-rebuild run."""

from darwin_rebuild.runner.action import Action, ActionRequest, select_action
from darwin_rebuild.runner.rebuild_runner import RebuildRunner, RunContext, prepare_context

__all__ = [
    "Action",
    "ActionRequest",
    "RebuildRunner",
    "RunContext",
    "prepare_context",
    "select_action",
]
