"""Composer (PHP package manager) bootstrap and invocation.

Many modules ship a composer.json for optional runtime libraries. Installing
them is best effort: a composer failure is reported as a warning and the
component still counts as installed.
"""

import hashlib
import logging
import shutil
import tempfile
from pathlib import Path

import httpx

from .exceptions import DeployError
from .exceptions import RuntimeUnavailableError
from .protocols import CommandRunnerProtocol
from .protocols import SubprocessRunner

logger = logging.getLogger(__name__)

MANIFEST = "composer.json"
INSTALLER_URL = "https://getcomposer.org/installer"
SIGNATURE_URL = "https://composer.github.io/installer.sig"

INSTALL_ARGS = ["install", "--no-dev", "--no-interaction", "--quiet"]


class ComposerRunner:
    """
    Run `composer install` in production mode inside component directories.

    If composer is not on PATH it is downloaded once, verified against the
    published SHA-384 signature, and installed into install_dir.
    """

    def __init__(
        self,
        runner: CommandRunnerProtocol | None = None,
        client: httpx.AsyncClient | None = None,
        install_dir: Path = Path("/usr/local/bin"),
        executable: str = "composer",
        php: str = "php",
    ):
        self.runner = runner or SubprocessRunner()
        self._client = client
        self.install_dir = install_dir
        self.executable = executable
        self.php = php
        self._resolved: str | None = None

    def needs_install(self, directory: Path) -> bool:
        return (directory / MANIFEST).is_file()

    async def ensure_composer(self) -> str:
        """
        Make sure a composer executable is available.

        Returns:
            Command to invoke composer

        Raises:
            RuntimeUnavailableError: If the installer cannot be downloaded,
                fails checksum verification, or exits non-zero
        """
        if self._resolved:
            return self._resolved

        found = shutil.which(self.executable)
        if found:
            self._resolved = found
            return found

        logger.info("Composer not found, downloading...")
        with tempfile.TemporaryDirectory(prefix="composer-") as tmp:
            setup_path = Path(tmp) / "composer-setup.php"
            expected, installer = await self._download_installer()

            actual = hashlib.sha384(installer).hexdigest()
            if actual != expected:
                raise RuntimeUnavailableError(
                    "Composer installer checksum mismatch",
                    context={"expected": expected, "actual": actual},
                )
            setup_path.write_bytes(installer)

            result = await self.runner.run(
                [
                    self.php,
                    str(setup_path),
                    f"--install-dir={self.install_dir}",
                    "--filename=composer",
                    "--quiet",
                ]
            )
            if not result.ok:
                raise RuntimeUnavailableError(
                    f"Composer installer failed: {result.output.strip() or result.returncode}",
                )

        self._resolved = str(self.install_dir / "composer")
        logger.info("Composer installed successfully")
        return self._resolved

    async def _download_installer(self) -> tuple[str, bytes]:
        try:
            if self._client is not None:
                return await self._fetch(self._client)
            async with httpx.AsyncClient(follow_redirects=True) as client:
                return await self._fetch(client)
        except httpx.HTTPError as e:
            raise RuntimeUnavailableError(f"Failed to download composer installer: {e}") from e

    async def _fetch(self, client: httpx.AsyncClient) -> tuple[str, bytes]:
        signature = await client.get(SIGNATURE_URL)
        signature.raise_for_status()
        installer = await client.get(INSTALLER_URL)
        installer.raise_for_status()
        return signature.text.strip(), installer.content

    async def install(self, directory: Path) -> str | None:
        """
        Install composer dependencies of a component if it has a composer.json.

        Args:
            directory: Installed component directory

        Returns:
            None on success (or nothing to do), otherwise a warning message
            including the manual remediation command
        """
        if not self.needs_install(directory):
            return None

        logger.info("Installing composer dependencies...")
        try:
            composer = await self.ensure_composer()
            result = await self.runner.run([composer, *INSTALL_ARGS], cwd=directory)
        except DeployError as e:
            failure = e.message
        else:
            if result.ok:
                logger.info("Composer dependencies installed successfully!")
                return None
            failure = result.output.strip() or f"exit code {result.returncode}"

        warning = (
            f"Failed to install composer dependencies for {directory.name} ({failure}). "
            f"You may need to run manually: cd {directory} && composer install --no-dev"
        )
        logger.warning(warning)
        return warning
