"""Omeka S core placement and configuration files."""

import logging
import re
import shutil
from pathlib import Path

from .config import DatabaseSettings
from .exceptions import InstallError
from .layout import CORE_MARKER
from .layout import AppLayout
from .schema import ExtractedComponent

logger = logging.getLogger(__name__)

DATABASE_INI = "database.ini"
LOCAL_CONFIG = "local.config.php"
LOCAL_CONFIG_DIST = "local.config.php.dist"

_VERSION_PATTERN = re.compile(r"const\s+VERSION\s*=\s*['\"]([^'\"]+)['\"]")


def install_core_files(extracted: ExtractedComponent, layout: AppLayout) -> None:
    """
    Copy an extracted core release into the application root, except the core marker.

    Existing directories (files/, modules/, ...) are merged, not replaced.
    The marker is placed separately by install_core_marker once configuration
    is written.

    Raises:
        InstallError: If copying fails
    """
    marker_dir = extracted.directory / CORE_MARKER.parent

    def skip_marker(directory: str, names: list[str]) -> list[str]:
        if Path(directory) == marker_dir and CORE_MARKER.name in names:
            return [CORE_MARKER.name]
        return []

    logger.info("Installing Omeka S files...")
    try:
        shutil.copytree(extracted.directory, layout.root, ignore=skip_marker, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise InstallError(f"Failed to copy Omeka S files into {layout.root}: {e}") from e


def install_core_marker(extracted: ExtractedComponent, layout: AppLayout) -> None:
    """
    Copy application/Module.php from the release, marking the core as installed.

    Raises:
        InstallError: If the release has no marker or the copy fails (no partial marker is left)
    """
    source = extracted.directory / CORE_MARKER
    if not source.is_file():
        raise InstallError(f"Release has no {CORE_MARKER}", context={"path": str(extracted.directory)})
    try:
        layout.core_marker.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, layout.core_marker)
    except OSError as e:
        layout.core_marker.unlink(missing_ok=True)
        raise InstallError(f"Failed to write {layout.core_marker}: {e}") from e


def render_database_ini(database: DatabaseSettings) -> str:
    """Render the INI connection descriptor read by Omeka S."""
    return (
        f'user     = "{database.user}"\n'
        f'password = "{database.password}"\n'
        f'dbname   = "{database.name}"\n'
        f'host     = "{database.host}"\n'
        "driver_options[1009] = false\n"
    )


def write_database_ini(layout: AppLayout, database: DatabaseSettings) -> None:
    """Write config/database.ini from the configured connection."""
    logger.info("Configuring database connection...")
    path = layout.config_dir / DATABASE_INI
    try:
        layout.config_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(render_database_ini(database))
    except OSError as e:
        raise InstallError(f"Failed to write {path}: {e}", context={"path": str(path)}) from e


def ensure_local_config(layout: AppLayout) -> bool:
    """
    Create config/local.config.php from the shipped .dist file if absent.

    Returns:
        True if the file was created, False if it already existed or no .dist is available
    """
    local_config = layout.config_dir / LOCAL_CONFIG
    if local_config.exists():
        return False

    dist = layout.config_dir / LOCAL_CONFIG_DIST
    if not dist.exists():
        logger.warning(f"{LOCAL_CONFIG_DIST} not found, skipping {LOCAL_CONFIG}")
        return False

    logger.info(f"Creating {LOCAL_CONFIG}...")
    try:
        shutil.copyfile(dist, local_config)
    except OSError as e:
        raise InstallError(f"Failed to create {local_config}: {e}", context={"path": str(local_config)}) from e
    return True


def read_installed_version(layout: AppLayout) -> str | None:
    """Read `const VERSION` from application/Module.php (None if not installed or unparseable)."""
    if not layout.core_installed():
        return None
    match = _VERSION_PATTERN.search(layout.core_marker.read_text(errors="replace"))
    return match.group(1) if match else None
