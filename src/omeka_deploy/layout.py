"""Application directory layout.

The filesystem is the source of truth for what is installed: a component is
installed iff its directory exists under the destination for its kind.
"""

import logging
from pathlib import Path

from .schema import ComponentKind
from .schema import InstallTarget

logger = logging.getLogger(__name__)

# Directories that survive a core replacement
USER_DATA_DIRS = ("files", "modules", "themes", "config", "sideload")

CORE_MARKER = Path("application") / "Module.php"


class AppLayout:
    """Fixed paths under the application root."""

    def __init__(self, root: Path):
        self.root = root

    @property
    def files_dir(self) -> Path:
        return self.root / "files"

    @property
    def sideload_dir(self) -> Path:
        return self.root / "sideload"

    @property
    def modules_dir(self) -> Path:
        return self.root / "modules"

    @property
    def themes_dir(self) -> Path:
        return self.root / "themes"

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def cache_dir(self) -> Path:
        return self.root / "data" / "cache"

    @property
    def core_marker(self) -> Path:
        return self.root / CORE_MARKER

    def ensure_directories(self) -> None:
        """Create files/, sideload/, modules/, themes/ and config/ if absent."""
        for directory in (self.files_dir, self.sideload_dir, self.modules_dir, self.themes_dir, self.config_dir):
            if not directory.exists():
                logger.debug(f"Creating {directory}")
            directory.mkdir(parents=True, exist_ok=True)

    def target(self, kind: ComponentKind) -> InstallTarget:
        """Install target for a component kind."""
        destinations = {
            ComponentKind.CORE: self.root,
            ComponentKind.MODULE: self.modules_dir,
            ComponentKind.THEME: self.themes_dir,
        }
        return InstallTarget(kind=kind, destination=destinations[kind])

    def component_path(self, kind: ComponentKind, name: str) -> Path:
        return self.target(kind).destination / name

    def is_installed(self, kind: ComponentKind, name: str) -> bool:
        """Check whether a module/theme directory exists (the core uses its marker file)."""
        if kind == ComponentKind.CORE:
            return self.core_installed()
        return self.component_path(kind, name).is_dir()

    def core_installed(self) -> bool:
        return self.core_marker.is_file()
