"""Tests for loading the YAML configuration."""

import pytest
import yaml

from darwin_rebuild.config import RebuildConfig, load_config
from darwin_rebuild.errors import ConfigError


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "nope.yaml") == RebuildConfig()


def test_load_values(tmp_path):
    path = tmp_path / "config.yaml"
    with open(path, "w") as f:
        yaml.dump({"flake": "/etc/dotfiles", "nom": False, "diff_tool": "nix-diff", "unknown": 1}, f)

    config = load_config(path)
    assert config.flake == "/etc/dotfiles"
    assert config.nom is False
    assert config.diff is True
    assert config.diff_tool == "nix-diff"
    assert config.sudo == "sudo"


def test_flake_path_is_expanded(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    path = tmp_path / "config.yaml"
    path.write_text("flake: ~/dotfiles\n")
    assert load_config(path).flake == str(tmp_path / "dotfiles")


def test_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == RebuildConfig()


def test_env_var_selects_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("profile: work\n")
    monkeypatch.setenv("DARWIN_REBUILD_CONFIG", str(path))
    assert load_config().profile == "work"


@pytest.mark.parametrize(
    "content",
    [
        "- a\n- b\n",
        "flake: [unterminated\n",
        "profile: 5\n",
        'nom: "false"\n',
        "diff: 1\n",
        "flake: [a, b]\n",
        "diff_tool: null\n",
        'sudo: "  "\n',
    ],
)
def test_invalid_file(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


def test_blank_values_are_unset(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text('flake: ""\nprofile: ""\neditor: "   "\n')
    config = load_config(path)
    assert config.flake is None
    assert config.profile is None
    assert config.editor is None
