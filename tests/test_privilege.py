"""Tests for the privilege policy."""

import pytest

from darwin_rebuild.errors import PrivilegeCheckError
from darwin_rebuild.privilege import (
    Escalation,
    PrivilegeDecision,
    decide,
    is_read_only,
    privileged_command,
    run_privileged,
)


def test_root_never_escalates(tmp_path, fake_env):
    target = tmp_path / "profile"
    target.mkdir()
    fake_env.user_name = "root"
    fake_env.writable = False
    decision = decide(fake_env, target)
    assert decision.is_admin
    assert decision.read_only
    assert decision.escalation is Escalation.DIRECT


def test_root_never_escalates_for_system_scope(fake_env):
    fake_env.user_name = "root"
    assert not decide(fake_env).escalate


def test_user_escalates_on_read_only_target(tmp_path, fake_env):
    target = tmp_path / "profile"
    target.mkdir()
    fake_env.writable = False
    assert decide(fake_env, target).escalation is Escalation.SUDO


def test_user_writes_writable_target_directly(tmp_path, fake_env):
    target = tmp_path / "profile"
    target.mkdir()
    assert decide(fake_env, target).escalation is Escalation.DIRECT


def test_missing_target_is_writable(tmp_path, fake_env):
    fake_env.writable = False
    assert not is_read_only(tmp_path / "does-not-exist", fake_env)
    assert not decide(fake_env, tmp_path / "does-not-exist").escalate


def test_system_scope_escalates_for_regular_user(fake_env):
    assert decide(fake_env).escalate


def test_unreadable_identity_is_fatal(tmp_path, fake_env):
    fake_env.user_name = None
    with pytest.raises(PrivilegeCheckError):
        decide(fake_env, tmp_path)


def test_privileged_command():
    sudo = PrivilegeDecision(is_admin=False, read_only=True)
    direct = PrivilegeDecision(is_admin=False, read_only=False)
    assert privileged_command(["nix-env", "-p", "p"], sudo) == ["sudo", "nix-env", "-p", "p"]
    assert privileged_command(["nix-env", "-p", "p"], direct) == ["nix-env", "-p", "p"]
    assert privileged_command(["x"], sudo, sudo="doas") == ["doas", "x"]


def test_run_privileged_returns_argv_and_status(fake_runner):
    fake_runner.fail("nix-env", code=3)
    decision = PrivilegeDecision(is_admin=False, read_only=True)
    argv, code = run_privileged(fake_runner, ["nix-env", "--rollback"], decision)
    assert argv == ["sudo", "nix-env", "--rollback"]
    assert code == 3
    assert fake_runner.commands("status") == [argv]
