"""Module and theme installation.

Process for one component:
1. Download the archive (branch, then tag) into an operation-scoped work dir
2. Extract it and rename the top-level directory to the component name
3. Move it into modules/ or themes/ (replacing the old copy on update)
4. Normalize ownership and permissions
5. Install composer dependencies, downgrading failures to warnings

The work dir is removed on every exit path. An existing installation is only
removed once the new copy has been downloaded and extracted.
"""

import logging
import shutil
import tempfile
from pathlib import Path

from .composer import ComposerRunner
from .config import Settings
from .exceptions import DeployError
from .exceptions import InstallError
from .extractor import extract_archive
from .fetcher import ArchiveFetcher
from .layout import AppLayout
from .permissions import normalize_permissions
from .registry import Registry
from .resolver import DependencyResolver
from .schema import ComponentEntry
from .schema import ExtractedComponent
from .schema import InstallResult
from .schema import InstallStatus

logger = logging.getLogger(__name__)


def place_component(
    extracted: ExtractedComponent,
    destination: Path,
    replace: bool = False,
) -> Path:
    """
    Move an extracted component into its destination directory.

    Args:
        extracted: Extracted component (directory already named final_name)
        destination: Parent directory (modules/ or themes/)
        replace: Remove an existing copy first (update)

    Returns:
        Path of the installed component

    Raises:
        InstallError: If the move fails (no partial directory is left behind)
    """
    target = destination / extracted.final_name
    destination.mkdir(parents=True, exist_ok=True)

    if target.exists():
        if not replace:
            raise InstallError(
                f"{extracted.final_name} already exists at {target}",
                context={"component": extracted.final_name, "path": str(target)},
            )
        logger.info(f"Removing existing {extracted.final_name}...")
        shutil.rmtree(target)

    try:
        shutil.move(str(extracted.directory), str(target))
    except OSError as e:
        shutil.rmtree(target, ignore_errors=True)
        raise InstallError(
            f"Failed to copy {extracted.final_name} to {destination}: {e}",
            context={"component": extracted.final_name, "path": str(target)},
        ) from e
    return target


class ComponentInstaller:
    """
    Install and update registered modules and themes under an application root.

    Example:
        >>> installer = ComponentInstaller(Registry.load(), Settings(root=Path("/var/www/html")))
        >>> result = await installer.install("EasyAdmin")  # installs Common and Cron first
        >>> result.status
        <InstallStatus.INSTALLED: 'installed'>
    """

    def __init__(
        self,
        registry: Registry,
        settings: Settings,
        fetcher: ArchiveFetcher | None = None,
        composer: ComposerRunner | None = None,
    ):
        self.registry = registry
        self.settings = settings
        self.layout = AppLayout(settings.root)
        self.fetcher = fetcher or ArchiveFetcher(settings)
        self.composer = composer or ComposerRunner()

    def is_installed(self, name: str) -> bool:
        """Whether a registered component's directory exists."""
        entry = self.registry.lookup(name)
        return self.layout.is_installed(entry.kind, entry.name)

    async def install(self, name: str, revision: str | None = None) -> InstallResult:
        """
        Install a component and any missing dependencies.

        Installing something already present is a no-op.

        Args:
            name: Registered component name
            revision: Branch/tag override for the component itself

        Returns:
            InstallResult for the requested component

        Raises:
            UnknownComponentError: If name is not registered
            DependencyFailedError: If a prerequisite fails
            DeployError: If download, extraction or placement fails
        """
        entry = self.registry.lookup(name)

        if self.layout.is_installed(entry.kind, entry.name):
            if entry.preinstalled:
                logger.info(f"{entry.name} is pre-installed by default.")
            logger.warning(f"{entry.kind.value.capitalize()} {entry.name} already exists. Use update to update it.")
            return InstallResult(
                name=entry.name,
                kind=entry.kind,
                status=InstallStatus.ALREADY_INSTALLED,
                path=self.layout.component_path(entry.kind, entry.name),
            )

        resolver = DependencyResolver(self.registry, self.is_installed, self.install_entry)
        await resolver.ensure_installed(entry.name)

        return await self.install_entry(entry, revision)

    async def install_entry(self, entry: ComponentEntry, revision: str | None = None) -> InstallResult:
        """Install a single component without dependency handling (skips if present)."""
        if self.layout.is_installed(entry.kind, entry.name):
            return InstallResult(
                name=entry.name,
                kind=entry.kind,
                status=InstallStatus.ALREADY_INSTALLED,
                path=self.layout.component_path(entry.kind, entry.name),
            )
        return await self._deploy(entry, revision or entry.revision, update=False)

    async def update(self, name: str, revision: str | None = None) -> InstallResult:
        """
        Re-install a component at its default (or the given) revision.

        The current copy is replaced only after the new archive has been
        downloaded and extracted.
        """
        entry = self.registry.lookup(name)
        return await self._deploy(entry, revision or entry.revision, update=True)

    async def update_all(self, revision: str | None = None) -> list[InstallResult]:
        """
        Update every registered component that is currently installed.

        Stops at the first failure.
        """
        logger.info("Updating all installed components...")
        results = []
        for entry in self.registry.entries():
            if not self.layout.is_installed(entry.kind, entry.name):
                continue
            results.append(await self.update(entry.name, revision))
        logger.info(f"Updated {len(results)} components")
        return results

    async def _deploy(self, entry: ComponentEntry, revision: str, update: bool) -> InstallResult:
        action = "Updating" if update else "Installing"
        target = self.layout.target(entry.kind)
        logger.info(f"{action} {entry.kind.value}: {entry.name} from {entry.host.value}:{entry.repo} (branch: {revision})")

        try:
            with tempfile.TemporaryDirectory(prefix=f"omeka-{entry.name}-") as tmp:
                fetched = await self.fetcher.fetch(entry, revision, Path(tmp))
                extracted = extract_archive(fetched, entry.name)
                path = place_component(extracted, target.destination, replace=update)
        except DeployError:
            raise
        except Exception as e:
            raise InstallError(f"Failed to install {entry.name}: {e}", context={"component": entry.name}) from e

        logger.info("Setting ownership and permissions...")
        try:
            normalize_permissions(path, self.settings.runtime_user, self.settings.runtime_group)
        except InstallError:
            if not update:
                shutil.rmtree(path, ignore_errors=True)
            raise

        warnings = []
        warning = await self.composer.install(path)
        if warning:
            warnings.append(warning)

        if update:
            status = InstallStatus.UPDATED_WITH_WARNINGS if warnings else InstallStatus.UPDATED
            logger.info(f"{entry.kind.value.capitalize()} {entry.name} updated successfully!")
        else:
            status = InstallStatus.INSTALLED_WITH_WARNINGS if warnings else InstallStatus.INSTALLED
            logger.info(f"{entry.kind.value.capitalize()} {entry.name} installed successfully!")

        return InstallResult(
            name=entry.name,
            kind=entry.kind,
            status=status,
            path=path,
            revision=revision,
            warnings=warnings,
        )
