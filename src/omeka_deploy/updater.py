"""Omeka S core update pipeline.

A linear sequence of steps; the first failing step aborts the update and
leaves completed steps in place. There is no automatic rollback: the backup
set is kept and the rollback commands are logged at the end of every run that
got past release verification.

The bulk file store (files/) is never copied or replaced, only preserved in
place.
"""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Awaitable
from collections.abc import Callable
from contextlib import nullcontext
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from pathlib import Path

from .config import Settings
from .core import DATABASE_INI
from .core import LOCAL_CONFIG
from .core import read_installed_version
from .exceptions import DeployError
from .exceptions import InstallError
from .exceptions import ReleaseNotFoundError
from .exceptions import RuntimeUnavailableError
from .extractor import extract_archive
from .fetcher import RELEASE_PROBE_OK
from .fetcher import ArchiveFetcher
from .fetcher import strip_version_prefix
from .layout import USER_DATA_DIRS
from .layout import AppLayout
from .permissions import GROUP_WRITABLE
from .permissions import normalize_permissions
from .protocols import CommandRunnerProtocol
from .protocols import SubprocessRunner
from .schema import BackupSet

logger = logging.getLogger(__name__)

# Bundled release directories that must not override the user's installed set
RELEASE_STRIPPED_DIRS = ("modules", "themes", "files")


@dataclass
class CoreUpdateReport:
    """What a core update run did (or would do, in dry-run mode)."""

    version: str
    previous_version: str
    dry_run: bool
    backup: BackupSet
    steps: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    completed: bool = False


def _clear_directory(directory: Path) -> None:
    """Remove every entry inside directory, keeping the directory itself."""
    if not directory.is_dir():
        return
    for item in directory.iterdir():
        if item.is_dir() and not item.is_symlink():
            shutil.rmtree(item)
        else:
            item.unlink()


class CoreUpdater:
    """
    Back up, replace and restore an Omeka S core installation.

    Example:
        >>> updater = CoreUpdater(Settings(root=Path("/var/www/html")))
        >>> report = await updater.run("4.1.1", dry_run=True)
        >>> report.steps[0]
        'Creating backup directory...'
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: ArchiveFetcher | None = None,
        runner: CommandRunnerProtocol | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self.layout = AppLayout(settings.root)
        self.fetcher = fetcher or ArchiveFetcher(settings)
        self.runner = runner or SubprocessRunner()
        self.sleep = sleep
        self.clock = clock

    def preserved_names(self) -> set[str]:
        """Top-level entries of the root that survive core file removal."""
        preserved = set(USER_DATA_DIRS)
        backups_root = self.settings.backups_root
        if backups_root.is_relative_to(self.layout.root) and backups_root != self.layout.root:
            preserved.add(backups_root.relative_to(self.layout.root).parts[0])
        return preserved

    def rollback_commands(self, backup: BackupSet) -> list[str]:
        root = self.layout.root
        return [
            f"cp {backup.config_dir / LOCAL_CONFIG} {root / 'config'}/",
            f"cp {backup.config_dir / DATABASE_INI} {root / 'config'}/",
            f"cp -r {backup.modules_dir}/* {root / 'modules'}/",
            f"cp -r {backup.themes_dir}/* {root / 'themes'}/",
            " ".join(self.settings.restart_command),
        ]

    async def run(self, version: str = "latest", dry_run: bool = False) -> CoreUpdateReport:
        """
        Update the core to version ("latest" resolves the newest release).

        Args:
            version: Target version or "latest"
            dry_run: Log every step without touching the filesystem or restarting anything

        Returns:
            CoreUpdateReport

        Raises:
            VersionResolutionError: If "latest" cannot be resolved
            ReleaseNotFoundError: If the release does not exist (checked in dry-run too)
            DeployError: If any later step fails
        """
        if version == "latest":
            version = await self.fetcher.latest_release_version()
        version = strip_version_prefix(version)

        timestamp = self.clock().strftime("%Y%m%d_%H%M%S")
        backup = BackupSet(timestamp=timestamp, path=self.settings.backups_root / f"backup_{timestamp}")
        report = CoreUpdateReport(
            version=version,
            previous_version=read_installed_version(self.layout) or "unknown",
            dry_run=dry_run,
            backup=backup,
        )

        logger.info("Omeka S Core Update")
        logger.info(f"Current version: {report.previous_version}")
        logger.info(f"Target version:  {version}")
        if dry_run:
            logger.warning("DRY RUN MODE - No changes will be made")

        await self.verify_release(version)

        try:
            await self._run_steps(report)
        finally:
            self._log_rollback(report)

        if dry_run:
            logger.warning("DRY RUN COMPLETE - No changes were made")
        else:
            logger.info(f"Omeka S updated to v{version}!")
            logger.info(f"Backup location: {backup.path}")
        logger.info("Post-update: visit the site, run database migrations if prompted, and check modules and themes")
        return report

    async def verify_release(self, version: str) -> None:
        """Check the release asset exists (non-mutating, also performed in dry-run)."""
        url = self.fetcher.release_url(version)
        logger.info(f"Verifying release v{version} exists...")
        status = await self.fetcher.probe_release(version)
        if status not in RELEASE_PROBE_OK:
            logger.error(f"Check available releases at: {self.settings.github_url}/{self.settings.core_repo}/releases")
            raise ReleaseNotFoundError(version, url, status)
        logger.info("Release verified!")

    def _step(self, report: CoreUpdateReport, title: str, would: str) -> bool:
        """Log a numbered step; returns False in dry-run mode (after logging the intended action)."""
        report.steps.append(title)
        logger.info(f"Step {len(report.steps)}: {title}")
        if report.dry_run:
            logger.info(f"  Would {would}")
            return False
        return True

    async def _run_steps(self, report: CoreUpdateReport) -> None:
        root = self.layout.root
        backup = report.backup
        work = nullcontext(None) if report.dry_run else tempfile.TemporaryDirectory(prefix="omeka-core-update-")

        try:
            with work as tmp:
                if self._step(report, "Creating backup directory...", f"create: {backup.path}"):
                    backup.path.mkdir(parents=True, exist_ok=True)
                    logger.info(f"Backup directory: {backup.path}")

                for name, source, target in (
                    ("config", self.layout.config_dir, backup.config_dir),
                    ("modules", self.layout.modules_dir, backup.modules_dir),
                    ("themes", self.layout.themes_dir, backup.themes_dir),
                ):
                    if self._step(report, f"Backing up /{name} directory...", f"backup: {source} -> {target}"):
                        if source.is_dir():
                            shutil.copytree(source, target, symlinks=True)
                            logger.info(f"{name.capitalize()} backed up successfully")
                        else:
                            self._warn(report, f"/{name} directory not found, nothing to back up")

                logger.info("Note: /files directory will be preserved in-place (not copied)")

                extracted = None
                if self._step(
                    report, f"Downloading Omeka S v{report.version}...", f"download: {self.fetcher.release_url(report.version)}"
                ):
                    fetched = await self.fetcher.fetch_release(report.version, Path(tmp))
                    logger.info("Download complete")

                if self._step(report, "Extracting new release...", "extract the release archive"):
                    extracted = extract_archive(fetched, "omeka-s")
                    logger.info(f"Extracted to: {extracted.directory}")

                if self._step(report, "Removing old Omeka S core files...", "remove core files while preserving user data"):
                    preserved = self.preserved_names()
                    for item in root.iterdir():
                        if item.name in preserved:
                            continue
                        if item.is_dir() and not item.is_symlink():
                            shutil.rmtree(item)
                        else:
                            item.unlink()
                    logger.info("Old core files removed")

                if self._step(report, "Copying new Omeka S files...", f"copy new release files to {root}"):
                    for name in RELEASE_STRIPPED_DIRS:
                        _clear_directory(extracted.directory / name)
                    shutil.copytree(extracted.directory, root, symlinks=True, dirs_exist_ok=True)
                    logger.info("New Omeka S files copied")

                if self._step(
                    report, f"Restoring {LOCAL_CONFIG} and {DATABASE_INI}...", "restore config files from backup"
                ):
                    self.layout.config_dir.mkdir(parents=True, exist_ok=True)
                    for filename in (LOCAL_CONFIG, DATABASE_INI):
                        saved = backup.config_dir / filename
                        if saved.is_file():
                            shutil.copy2(saved, self.layout.config_dir / filename)
                        else:
                            self._warn(report, f"{filename} not found in backup")
                    logger.info("Config files restored")

                for name, saved, target in (
                    ("modules", backup.modules_dir, self.layout.modules_dir),
                    ("themes", backup.themes_dir, self.layout.themes_dir),
                ):
                    if self._step(report, f"Restoring {name}...", f"restore: {saved} -> {target}"):
                        if saved.is_dir():
                            shutil.copytree(saved, target, symlinks=True, dirs_exist_ok=True)
                        logger.info(f"{name.capitalize()} restored")

                user, group = self.settings.runtime_user, self.settings.runtime_group
                if self._step(
                    report, "Setting proper ownership and permissions...", f"set: chown -R {user}:{group} {root}"
                ):
                    if user or group:
                        normalize_permissions(root, user, group, mode=None)
                    for directory in (self.layout.files_dir, self.layout.modules_dir, self.layout.themes_dir):
                        normalize_permissions(directory, mode=GROUP_WRITABLE)
                    logger.info("Permissions set")

                if self._step(report, "Clearing Omeka S cache...", f"remove: {self.layout.cache_dir}/*"):
                    _clear_directory(self.layout.cache_dir)
                    logger.info("Cache cleared")

            restart = list(self.settings.restart_command)
            if self._step(report, "Restarting application to clear OPcache...", f"run: {' '.join(restart)}"):
                result = await self.runner.run(restart)
                if not result.ok:
                    raise RuntimeUnavailableError(
                        f"Failed to restart application: {result.output.strip() or result.returncode}",
                        context={"command": restart},
                    )
                await self.sleep(self.settings.restart_settle_seconds)
                logger.info("Application restarted")
        except DeployError:
            raise
        except OSError as e:
            raise InstallError(
                f"Core update to v{report.version} failed at '{report.steps[-1]}': {e}",
                context={"version": report.version, "backup": str(backup.path)},
            ) from e

        report.completed = True

    def _warn(self, report: CoreUpdateReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)

    def _log_rollback(self, report: CoreUpdateReport) -> None:
        logger.info("To rollback if issues occur:")
        for command in self.rollback_commands(report.backup):
            logger.info(f"  {command}")
