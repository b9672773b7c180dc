"""Tests for archive downloads and release lookups."""

import httpx
import pytest
from conftest import github_branch
from conftest import github_tag
from conftest import module_zip
from omeka_deploy import ArchiveFetcher
from omeka_deploy import FetchFailedError
from omeka_deploy import VersionResolutionError


@pytest.mark.asyncio
async def test_fetch_branch_archive(host, settings, registry, tmp_path):
    entry = registry.lookup("Common")
    host.add(github_branch(entry.repo, "master"), module_zip("Omeka-S-module-Common-master"))
    fetcher = ArchiveFetcher(settings, client=host.client())

    result = await fetcher.fetch(entry, "master", tmp_path)

    assert result.http_status == 200
    assert result.archive_path.exists()
    assert result.url == github_branch(entry.repo, "master")
    assert host.urls() == [github_branch(entry.repo, "master")]


@pytest.mark.asyncio
async def test_fetch_falls_back_to_tag_once(host, settings, registry, tmp_path):
    """Branch URL 404 -> tag URL tried exactly once -> success."""
    entry = registry.lookup("Common")
    host.add(github_tag(entry.repo, "3.4.60"), module_zip("Omeka-S-module-Common-3.4.60"))
    fetcher = ArchiveFetcher(settings, client=host.client())

    result = await fetcher.fetch(entry, "3.4.60", tmp_path)

    assert result.url == github_tag(entry.repo, "3.4.60")
    assert host.urls() == [github_branch(entry.repo, "3.4.60"), github_tag(entry.repo, "3.4.60")]


@pytest.mark.asyncio
async def test_fetch_fails_after_both_attempts(host, settings, registry, tmp_path):
    entry = registry.lookup("Common")
    fetcher = ArchiveFetcher(settings, client=host.client())

    with pytest.raises(FetchFailedError, match="'nope' exists") as exc_info:
        await fetcher.fetch(entry, "nope", tmp_path)

    assert exc_info.value.component == "Common"
    assert exc_info.value.revision == "nope"
    assert len(host.urls()) == 2
    assert not (tmp_path / "archive.zip").exists()


@pytest.mark.asyncio
async def test_fetch_transport_error_treated_as_missing(settings, registry, tmp_path):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = ArchiveFetcher(settings, client=client)

    with pytest.raises(FetchFailedError):
        await fetcher.fetch(registry.lookup("Common"), "master", tmp_path)

    assert len(calls) == 2
    assert not (tmp_path / "archive.zip").exists()


@pytest.mark.asyncio
async def test_fetch_gitlab_archive(host, settings, registry, tmp_path):
    entry = registry.lookup("IiifSearch")
    url = "https://gitlab.com/Daniel-KM/Omeka-S-module-IiifSearch/-/archive/master/Omeka-S-module-IiifSearch-master.zip"
    host.add(url, module_zip("Omeka-S-module-IiifSearch-master"))
    fetcher = ArchiveFetcher(settings, client=host.client())

    result = await fetcher.fetch(entry, "master", tmp_path)

    assert result.url == url


def test_release_url(settings):
    fetcher = ArchiveFetcher(settings)

    assert fetcher.release_url("4.1.1") == (
        "https://github.com/omeka/omeka-s/releases/download/v4.1.1/omeka-s-4.1.1.zip"
    )


@pytest.mark.asyncio
async def test_latest_release_version_strips_prefix(host, settings):
    host.add("https://api.github.com/repos/omeka/omeka-s/releases/latest", {"tag_name": "v4.1.1"})
    fetcher = ArchiveFetcher(settings, client=host.client())

    assert await fetcher.latest_release_version() == "4.1.1"


@pytest.mark.asyncio
async def test_latest_release_version_without_tag(host, settings):
    host.add("https://api.github.com/repos/omeka/omeka-s/releases/latest", {"message": "rate limited"})
    fetcher = ArchiveFetcher(settings, client=host.client())

    with pytest.raises(VersionResolutionError, match="tag_name"):
        await fetcher.latest_release_version()


@pytest.mark.asyncio
async def test_latest_release_version_http_error(host, settings):
    fetcher = ArchiveFetcher(settings, client=host.client())

    with pytest.raises(VersionResolutionError):
        await fetcher.latest_release_version()


@pytest.mark.asyncio
async def test_probe_release(host, settings):
    fetcher = ArchiveFetcher(settings, client=host.client())
    host.add(fetcher.release_url("4.1.1"), method="HEAD")

    assert await fetcher.probe_release("4.1.1") == 200
    assert await fetcher.probe_release("9.9.9") == 404
