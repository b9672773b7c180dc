"""Container entrypoint - First-run installation of the Omeka S core.

State machine:

    absent -> version_resolving -> waiting_for_database -> installing -> installed
                    |                       |                   |
                    +-----------------------+-------------------+--> failed

The core marker (application/Module.php) is copied last, after the release
files and configuration, and removed again if anything in between fails. A
failed run leaves the root in the absent state and the next start retries
from scratch. On every start, missing default modules and themes are
installed afterwards.
"""

import asyncio
import logging
import tempfile
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from pathlib import Path

from .config import DatabaseSettings
from .config import Settings
from .core import ensure_local_config
from .core import install_core_files
from .core import install_core_marker
from .core import read_installed_version
from .core import write_database_ini
from .exceptions import DatabaseUnreachableError
from .exceptions import DeployError
from .extractor import extract_archive
from .fetcher import ArchiveFetcher
from .fetcher import strip_version_prefix
from .installer import ComponentInstaller
from .layout import AppLayout
from .permissions import GROUP_WRITABLE
from .permissions import normalize_permissions
from .protocols import CommandRunnerProtocol
from .protocols import DatabaseProbeProtocol
from .protocols import SubprocessRunner
from .registry import Registry
from .schema import ComponentKind
from .schema import InstallResult

logger = logging.getLogger(__name__)


class BootstrapState(str, Enum):
    ABSENT = "absent"
    VERSION_RESOLVING = "version_resolving"
    WAITING_FOR_DATABASE = "waiting_for_database"
    INSTALLING = "installing"
    INSTALLED = "installed"
    FAILED = "failed"


def _php_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class PdoDatabaseProbe:
    """Check MySQL connectivity through PHP's PDO (supports caching_sha2_password)."""

    def __init__(self, database: DatabaseSettings, runner: CommandRunnerProtocol | None = None):
        self.database = database
        self.runner = runner or SubprocessRunner()

    async def is_reachable(self) -> bool:
        dsn = f"mysql:host={self.database.host};dbname={self.database.name}"
        script = (
            f"new PDO({_php_string(dsn)}, {_php_string(self.database.user)}, {_php_string(self.database.password)});"
        )
        result = await self.runner.run(["php", "-r", script])
        return result.ok


@dataclass
class BootstrapReport:
    """What a bootstrap run did."""

    state: BootstrapState
    version: str | None = None
    core_installed_now: bool = False
    components: list[InstallResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class CoreBootstrapper:
    """
    Install the core on first run, then make sure default components exist.

    Example:
        >>> bootstrapper = CoreBootstrapper(Settings(), Registry.load())
        >>> report = await bootstrapper.run()
        >>> report.state
        <BootstrapState.INSTALLED: 'installed'>
    """

    def __init__(
        self,
        settings: Settings,
        registry: Registry,
        fetcher: ArchiveFetcher | None = None,
        installer: ComponentInstaller | None = None,
        probe: DatabaseProbeProtocol | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.registry = registry
        self.layout = AppLayout(settings.root)
        self.fetcher = fetcher or ArchiveFetcher(settings)
        self.installer = installer or ComponentInstaller(registry, settings, fetcher=self.fetcher)
        self.probe = probe or PdoDatabaseProbe(settings.database)
        self.sleep = sleep
        self.state = BootstrapState.ABSENT

    def _transition(self, state: BootstrapState) -> None:
        logger.debug(f"Bootstrap state: {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> BootstrapReport:
        """
        Run the entrypoint sequence.

        Raises:
            VersionResolutionError: If "latest" cannot be resolved
            DatabaseUnreachableError: If the database never becomes reachable
            DeployError: If the core download, extraction or copy fails
        """
        logger.info("Creating required directories...")
        self.layout.ensure_directories()

        report = BootstrapReport(state=self.state)
        if self.layout.core_installed():
            logger.info("Omeka S is already installed")
            self._transition(BootstrapState.INSTALLED)
            report.version = read_installed_version(self.layout)
        else:
            logger.info("Omeka S not found. Starting installation...")
            try:
                report.version = await self.install_core()
            except DeployError:
                self._transition(BootstrapState.FAILED)
                raise
            report.core_installed_now = True

        report.state = self.state
        await self.install_defaults(report)
        self.normalize_permissions()
        logger.info("Entrypoint completed.")
        return report

    async def install_core(self) -> str:
        """Resolve the version, wait for the database and install the core. Returns the version."""
        self._transition(BootstrapState.VERSION_RESOLVING)
        version = await self.resolve_version(self.settings.version)
        logger.info(f"Will install Omeka S version: {version}")

        self._transition(BootstrapState.WAITING_FOR_DATABASE)
        await self.wait_for_database()

        self._transition(BootstrapState.INSTALLING)
        logger.info(f"Installing Omeka S v{version}...")
        with tempfile.TemporaryDirectory(prefix="omeka-core-") as tmp:
            fetched = await self.fetcher.fetch_release(version, Path(tmp))
            extracted = extract_archive(fetched, "omeka-s")
            try:
                install_core_files(extracted, self.layout)
                write_database_ini(self.layout, self.settings.database)
                ensure_local_config(self.layout)
                install_core_marker(extracted, self.layout)
            except Exception:
                self.layout.core_marker.unlink(missing_ok=True)
                raise

        self._transition(BootstrapState.INSTALLED)
        logger.info(f"Omeka S v{version} installed successfully!")
        return version

    async def resolve_version(self, requested: str) -> str:
        if requested == "latest":
            return await self.fetcher.latest_release_version()
        return strip_version_prefix(requested)

    async def wait_for_database(self) -> None:
        """Poll the database probe on a fixed interval up to the configured attempt count."""
        logger.info("Waiting for MySQL to be ready...")
        max_attempts = self.settings.db_max_attempts
        for attempt in range(1, max_attempts + 1):
            if await self.probe.is_reachable():
                logger.info("MySQL is ready!")
                return
            if attempt == max_attempts:
                break
            logger.info(f"Waiting for MySQL... (attempt {attempt}/{max_attempts})")
            await self.sleep(self.settings.db_poll_interval)

        raise DatabaseUnreachableError(
            f"MySQL is not ready after {max_attempts} attempts",
            context={"host": self.settings.database.host, "attempts": max_attempts},
        )

    async def install_defaults(self, report: BootstrapReport) -> None:
        """Install missing default modules and themes; failures are warnings."""
        for kind in (ComponentKind.MODULE, ComponentKind.THEME):
            logger.info(f"Installing default {kind.value}s...")
            for entry in self.registry.defaults(kind):
                if self.layout.is_installed(entry.kind, entry.name):
                    logger.info(f"{kind.value.capitalize()} {entry.name} already exists, skipping...")
                    continue
                try:
                    report.components.append(await self.installer.install(entry.name))
                except DeployError as e:
                    message = f"Failed to install {entry.name}, continuing... ({e.message})"
                    logger.warning(message)
                    report.warnings.append(message)
            logger.info(f"Default {kind.value}s installation completed!")

    def normalize_permissions(self) -> None:
        logger.info("Setting proper permissions...")
        user, group = self.settings.runtime_user, self.settings.runtime_group
        if user or group:
            for directory in (
                self.layout.modules_dir,
                self.layout.themes_dir,
                self.layout.files_dir,
                self.layout.sideload_dir,
                self.layout.config_dir,
            ):
                normalize_permissions(directory, user, group, mode=None)
        for directory in (
            self.layout.sideload_dir,
            self.layout.files_dir,
            self.layout.modules_dir,
            self.layout.themes_dir,
        ):
            directory.chmod(GROUP_WRITABLE)
