"""CLI tests using typer's CliRunner."""

import pytest
from omeka_deploy.cli import app
from typer.testing import CliRunner

REGISTRY = """
[defaults]
modules = ["Common"]
themes = ["Freedom"]

[github.modules]
Common = { repo = "Daniel-KM/Omeka-S-module-Common", revision = "master", preinstalled = true }
ModuleX = { repo = "acme/Omeka-S-module-ModuleX", revision = "3.x", dependencies = ["Common"] }

[gitlab.modules]
IiifSearch = { repo = "Daniel-KM/Omeka-S-module-IiifSearch", revision = "master", dependencies = ["Common"] }

[github.themes]
Freedom = { repo = "omeka-s-themes/Freedom", revision = "master" }
"""


@pytest.fixture
def cli():
    return CliRunner()


@pytest.fixture
def root(tmp_path, monkeypatch):
    registry_path = tmp_path / "registry.toml"
    registry_path.write_text(REGISTRY)
    for name in ("OMEKA_ROOT", "OMEKA_VERSION", "OMEKA_BACKUP_DIR", "OMEKA_RESTART_COMMAND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OMEKA_REGISTRY", str(registry_path))
    monkeypatch.setenv("OMEKA_RUNTIME_USER", "")
    monkeypatch.setenv("OMEKA_RUNTIME_GROUP", "")
    root = tmp_path / "html"
    root.mkdir()
    return root


def test_list(cli, root):
    result = cli.invoke(app, ["--root", str(root), "list"])

    assert result.exit_code == 0
    assert "Pre-installed modules (included by default):\n  - Common" in result.output
    assert "Available modules (GitHub):" in result.output
    assert "Available modules (GitLab):" in result.output
    assert "  - ModuleX [branch: 3.x] requires: Common" in result.output
    assert "  - Freedom [branch: master]" in result.output


def test_install_list_delegates(cli, root):
    listing = cli.invoke(app, ["--root", str(root), "list"])
    result = cli.invoke(app, ["--root", str(root), "install", "list"])

    assert result.exit_code == 0
    assert result.output == listing.output


def test_install_unknown(cli, root):
    result = cli.invoke(app, ["--root", str(root), "install", "Unknown"])

    assert result.exit_code == 1
    assert "Unknown component: Unknown" in result.output
    assert "install list" in result.output
    assert list(root.iterdir()) == []


def test_update_unknown(cli, root):
    result = cli.invoke(app, ["--root", str(root), "update", "Unknown"])

    assert result.exit_code == 1
    assert "Unknown component: Unknown" in result.output
    assert list(root.iterdir()) == []


def test_update_all_with_nothing_installed(cli, root):
    result = cli.invoke(app, ["--root", str(root), "update", "all"])

    assert result.exit_code == 0
    assert "Clear Omeka S cache" in result.output
    for name in ("files", "sideload", "modules", "themes", "config"):
        assert (root / name).is_dir()


def test_broken_registry(cli, root, tmp_path, monkeypatch):
    broken = tmp_path / "broken.toml"
    broken.write_text("[github.modules\n")
    monkeypatch.setenv("OMEKA_REGISTRY", str(broken))

    result = cli.invoke(app, ["--root", str(root), "list"])

    assert result.exit_code == 1
    assert "Invalid registry file" in result.output


def test_no_args_shows_help(cli):
    result = cli.invoke(app, [])

    assert "install" in result.output
    assert "update-core" in result.output


def test_invalid_environment(cli, root, monkeypatch):
    monkeypatch.setenv("OMEKA_DB_MAX_ATTEMPTS", "many")

    result = cli.invoke(app, ["--root", str(root), "list"])

    assert result.exit_code == 1
    assert "Invalid settings" in result.output
