"""Data model for components, archives and install outcomes.

All models are immutable; they describe a single operation and are never persisted.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class SourceHost(str, Enum):
    """Where a component's archives are published."""

    GITHUB = "github"
    GITLAB = "gitlab"


class ComponentKind(str, Enum):
    """Kind of installable unit."""

    CORE = "core"
    MODULE = "module"
    THEME = "theme"


class ComponentEntry(BaseModel):
    """
    Registry entry for a module or theme.

    Replaces the "repo:branch" strings of the deployment scripts with typed fields.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    kind: ComponentKind
    host: SourceHost
    repo: str = Field(min_length=1)
    revision: str = Field(min_length=1)
    dependencies: tuple[str, ...] = ()
    preinstalled: bool = False

    @property
    def repo_basename(self) -> str:
        """Last path segment of the repository (used by GitLab archive names)."""
        return self.repo.rsplit("/", 1)[-1]


class InstallTarget(BaseModel):
    """Fixed destination directory for one component kind."""

    model_config = ConfigDict(frozen=True)

    kind: ComponentKind
    destination: Path


class FetchResult(BaseModel):
    """Downloaded archive (temporary, owned by the operation that fetched it)."""

    model_config = ConfigDict(frozen=True)

    component: str
    revision: str
    archive_path: Path
    http_status: int
    url: str


class ExtractedComponent(BaseModel):
    """Extracted archive directory already renamed to the component name."""

    model_config = ConfigDict(frozen=True)

    directory: Path
    final_name: str


class InstallStatus(str, Enum):
    """Outcome of an install or update."""

    INSTALLED = "installed"
    INSTALLED_WITH_WARNINGS = "installed_with_warnings"
    ALREADY_INSTALLED = "already_installed"
    UPDATED = "updated"
    UPDATED_WITH_WARNINGS = "updated_with_warnings"


class InstallResult(BaseModel):
    """Result of placing one component."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ComponentKind
    status: InstallStatus
    path: Path
    revision: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether the filesystem was modified."""
        return self.status != InstallStatus.ALREADY_INSTALLED


class BackupSet(BaseModel):
    """Point-in-time copy of config, modules and themes taken before a core update."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    path: Path

    @property
    def config_dir(self) -> Path:
        return self.path / "config"

    @property
    def modules_dir(self) -> Path:
        return self.path / "modules"

    @property
    def themes_dir(self) -> Path:
        return self.path / "themes"
