"""Archive fetcher - Download component and core archives over HTTP.

A revision string may name a branch or a tag and the caller cannot tell which,
so module/theme downloads try the branch archive first and the tag archive
once. Transport errors and missing revisions are treated the same way.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx

from .config import Settings
from .exceptions import FetchFailedError
from .exceptions import VersionResolutionError
from .schema import ComponentEntry
from .schema import FetchResult
from .schema import SourceHost

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "archive.zip"

# Statuses accepted when probing a release asset without downloading it
RELEASE_PROBE_OK = (200, 302)


class ArchiveFetcher:
    """
    Download archives from GitHub and GitLab.

    An httpx.AsyncClient may be injected (tests use httpx.MockTransport);
    otherwise a short-lived client is created for each call.
    """

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or Settings()
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(follow_redirects=True, timeout=None) as client:
            yield client

    def branch_url(self, entry: ComponentEntry, revision: str) -> str:
        """Archive URL treating revision as a branch."""
        if entry.host == SourceHost.GITLAB:
            return self._gitlab_url(entry, revision)
        return f"{self.settings.github_url}/{entry.repo}/archive/refs/heads/{revision}.zip"

    def tag_url(self, entry: ComponentEntry, revision: str) -> str:
        """Archive URL treating revision as a tag."""
        if entry.host == SourceHost.GITLAB:
            # GitLab resolves branches and tags through the same archive URL
            return self._gitlab_url(entry, revision)
        return f"{self.settings.github_url}/{entry.repo}/archive/refs/tags/{revision}.zip"

    def _gitlab_url(self, entry: ComponentEntry, revision: str) -> str:
        return f"{self.settings.gitlab_url}/{entry.repo}/-/archive/{revision}/{entry.repo_basename}-{revision}.zip"

    def release_url(self, version: str) -> str:
        """Download URL of a core release asset."""
        return f"{self.settings.github_url}/{self.settings.core_repo}/releases/download/v{version}/omeka-s-{version}.zip"

    async def fetch(self, entry: ComponentEntry, revision: str, work_dir: Path) -> FetchResult:
        """
        Download a module/theme archive, falling back from branch to tag once.

        Args:
            entry: Registry entry of the component
            revision: Branch or tag to download
            work_dir: Operation-scoped temporary directory

        Returns:
            FetchResult pointing at the archive inside work_dir

        Raises:
            FetchFailedError: If both attempts fail (no archive is left behind)
        """
        archive_path = work_dir / ARCHIVE_NAME

        async with self._session() as client:
            url = self.branch_url(entry, revision)
            logger.info(f"Downloading {entry.name} from {url}")
            status = await self._download(client, url, archive_path)

            if status != 200:
                url = self.tag_url(entry, revision)
                logger.warning(f"Branch not found (HTTP {status}), trying as tag...")
                status = await self._download(client, url, archive_path)

        if status != 200:
            archive_path.unlink(missing_ok=True)
            raise FetchFailedError(entry.name, revision, status or None)

        return FetchResult(
            component=entry.name,
            revision=revision,
            archive_path=archive_path,
            http_status=status,
            url=url,
        )

    async def fetch_release(self, version: str, work_dir: Path) -> FetchResult:
        """Download a core release archive (single attempt)."""
        archive_path = work_dir / ARCHIVE_NAME
        url = self.release_url(version)

        async with self._session() as client:
            logger.info(f"Downloading Omeka S v{version}...")
            status = await self._download(client, url, archive_path)

        if status != 200:
            archive_path.unlink(missing_ok=True)
            raise FetchFailedError("omeka-s", version, status or None)

        return FetchResult(
            component="omeka-s",
            revision=version,
            archive_path=archive_path,
            http_status=status,
            url=url,
        )

    async def probe_release(self, version: str) -> int:
        """Return the HTTP status of a release asset without downloading it (0 on transport error)."""
        url = self.release_url(version)
        async with self._session() as client:
            try:
                response = await client.head(url, follow_redirects=True)
            except httpx.HTTPError as e:
                logger.debug(f"Probe of {url} failed: {e}")
                return 0
        return response.status_code

    async def latest_release_version(self) -> str:
        """
        Query the newest tagged core release.

        Returns:
            Version without a leading "v" (e.g. "4.1.1")

        Raises:
            VersionResolutionError: If the API call fails or has no tag_name
        """
        url = f"{self.settings.github_api_url}/repos/{self.settings.core_repo}/releases/latest"
        logger.info("Fetching latest version from GitHub...")

        async with self._session() as client:
            try:
                response = await client.get(url, headers={"Accept": "application/vnd.github+json"})
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise VersionResolutionError(
                    f"Failed to fetch latest version from GitHub: {e}",
                    context={"url": url},
                ) from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not isinstance(tag, str) or not tag.strip():
            raise VersionResolutionError(
                "Failed to fetch latest version from GitHub: response has no tag_name",
                context={"url": url},
            )
        return strip_version_prefix(tag.strip())

    async def _download(self, client: httpx.AsyncClient, url: str, destination: Path) -> int:
        """Stream url into destination; returns the HTTP status (0 on transport error)."""
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                if response.status_code != 200:
                    return response.status_code
                with open(destination, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                return response.status_code
        except httpx.HTTPError as e:
            logger.debug(f"Download of {url} failed: {e}")
            destination.unlink(missing_ok=True)
            return 0


def strip_version_prefix(version: str) -> str:
    """Drop a leading "v" from a release tag ("v4.1.1" -> "4.1.1")."""
    return version[1:] if version.startswith("v") else version
