"""Tests for the component registry."""

import pytest
from omeka_deploy import ComponentKind
from omeka_deploy import Registry
from omeka_deploy import RegistryError
from omeka_deploy import SourceHost
from omeka_deploy import UnknownComponentError


def test_bundled_registry_entries_are_complete():
    """Every registered component has a repository and a default revision."""
    registry = Registry.load()

    assert len(registry) > 0
    for name in registry.names:
        entry = registry.lookup(name)
        assert entry.repo
        assert entry.revision


def test_bundled_registry_known_entries():
    registry = Registry.load()

    easy_admin = registry.lookup("EasyAdmin")
    assert easy_admin.host == SourceHost.GITHUB
    assert easy_admin.kind == ComponentKind.MODULE
    assert easy_admin.dependencies == ("Common", "Cron")

    iiif_search = registry.lookup("IiifSearch")
    assert iiif_search.host == SourceHost.GITLAB

    assert registry.lookup("CSVImport").revision == "develop"
    assert registry.lookup("CSVImport").preinstalled
    assert registry.lookup("Freedom").kind == ComponentKind.THEME


def test_bundled_registry_defaults():
    registry = Registry.load()

    modules = [e.name for e in registry.defaults(ComponentKind.MODULE)]
    themes = [e.name for e in registry.defaults(ComponentKind.THEME)]

    assert modules[0] == "ActivityLog"
    assert "FileSideload" in modules
    assert themes == ["Freedom", "Lively"]


def test_lookup_is_case_sensitive(registry):
    assert registry.lookup("Common").name == "Common"

    with pytest.raises(UnknownComponentError, match="common"):
        registry.lookup("common")


def test_lookup_unknown_component(registry):
    with pytest.raises(UnknownComponentError) as exc_info:
        registry.lookup("Unknown")

    assert exc_info.value.name == "Unknown"
    assert exc_info.value.context == {"component": "Unknown"}
    assert "Unknown" not in registry


def test_entries_filtered_and_sorted(registry):
    modules = registry.entries(ComponentKind.MODULE)
    themes = registry.entries(ComponentKind.THEME)

    assert [e.name for e in modules] == ["Chain", "Common", "IiifSearch", "ModuleX"]
    assert [e.name for e in themes] == ["Freedom"]


def test_name_in_both_host_tables_rejected(tmp_path):
    """A name declared for GitHub and GitLab is rejected at load time."""
    path = tmp_path / "registry.toml"
    path.write_text(
        """
[github.modules]
Common = { repo = "Daniel-KM/Omeka-S-module-Common", revision = "master" }

[gitlab.modules]
Common = { repo = "Daniel-KM/Omeka-S-module-Common", revision = "master" }
"""
    )

    with pytest.raises(RegistryError, match="declared more than once"):
        Registry.load(path)


def test_unknown_dependency_rejected(tmp_path):
    path = tmp_path / "registry.toml"
    path.write_text(
        """
[github.modules]
Log = { repo = "Daniel-KM/Omeka-S-module-Log", revision = "master", dependencies = ["Common"] }
"""
    )

    with pytest.raises(RegistryError, match="unknown component 'Common'"):
        Registry.load(path)


def test_empty_revision_rejected(tmp_path):
    path = tmp_path / "registry.toml"
    path.write_text(
        """
[github.themes]
Cozy = { repo = "omeka-s-themes/Cozy", revision = "" }
"""
    )

    with pytest.raises(RegistryError, match="Cozy"):
        Registry.load(path)


def test_default_must_be_registered(tmp_path):
    path = tmp_path / "registry.toml"
    path.write_text(
        """
[defaults]
themes = ["Cozy"]

[github.modules]
Cozy = { repo = "omeka-s-modules/Cozy", revision = "master" }
"""
    )

    with pytest.raises(RegistryError, match="Default theme 'Cozy'"):
        Registry.load(path)


def test_invalid_toml(tmp_path):
    path = tmp_path / "registry.toml"
    path.write_text("[github.modules\n")

    with pytest.raises(RegistryError, match="Invalid registry file"):
        Registry.load(path)


def test_missing_registry_file(tmp_path):
    with pytest.raises(RegistryError, match="not found"):
        Registry.load(tmp_path / "missing.toml")
