"""Shared fixtures: in-memory archives, a fake HTTP host and a fake command runner."""

import io
import zipfile
from pathlib import Path

import httpx
import pytest
from omeka_deploy.config import Settings
from omeka_deploy.protocols import CommandResult
from omeka_deploy.registry import Registry
from omeka_deploy.schema import ComponentEntry
from omeka_deploy.schema import ComponentKind
from omeka_deploy.schema import SourceHost


def build_zip(files: dict[str, str]) -> bytes:
    """Zip archive bytes from {"path/in/archive": "content"}."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def module_zip(top_dir: str, extra: dict[str, str] | None = None) -> bytes:
    """Archive shaped like a GitHub download: one top-level directory."""
    files = {f"{top_dir}/Module.php": "<?php\n", f"{top_dir}/config/module.ini": "[info]\n"}
    for name, content in (extra or {}).items():
        files[f"{top_dir}/{name}"] = content
    return build_zip(files)


class FakeHost:
    """Routes URLs to canned responses and records every request."""

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, bytes | dict]] = {}
        self.requests: list[tuple[str, str]] = []

    def add(self, url: str, body: bytes | dict = b"", status: int = 200, method: str = "GET") -> None:
        self.routes[(method, url)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append((request.method, url))
        status, body = self.routes.get((request.method, url), (404, b"Not Found"))
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)

    def urls(self, method: str = "GET") -> list[str]:
        return [url for m, url in self.requests if m == method]


class FakeRunner:
    """Command runner that records calls and returns a fixed result per program."""

    def __init__(self, results: dict[str, CommandResult] | None = None):
        self.results = results or {}
        self.calls: list[tuple[list[str], Path | None]] = []

    async def run(self, args: list[str], cwd: Path | None = None) -> CommandResult:
        self.calls.append((list(args), cwd))
        return self.results.get(Path(args[0]).name, CommandResult(returncode=0))


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory, without chown."""
    root = tmp_path / "html"
    root.mkdir()
    return Settings(
        root=root,
        runtime_user=None,
        runtime_group=None,
        db_poll_interval=0,
        restart_settle_seconds=0,
    )


@pytest.fixture
def registry():
    """Small registry: ModuleX -> Common, Chain -> ModuleX, GitLab module and a theme."""
    return Registry(
        [
            ComponentEntry(
                name="Common",
                kind=ComponentKind.MODULE,
                host=SourceHost.GITHUB,
                repo="Daniel-KM/Omeka-S-module-Common",
                revision="master",
            ),
            ComponentEntry(
                name="ModuleX",
                kind=ComponentKind.MODULE,
                host=SourceHost.GITHUB,
                repo="acme/Omeka-S-module-ModuleX",
                revision="master",
                dependencies=("Common",),
            ),
            ComponentEntry(
                name="Chain",
                kind=ComponentKind.MODULE,
                host=SourceHost.GITHUB,
                repo="acme/Chain",
                revision="main",
                dependencies=("ModuleX",),
            ),
            ComponentEntry(
                name="IiifSearch",
                kind=ComponentKind.MODULE,
                host=SourceHost.GITLAB,
                repo="Daniel-KM/Omeka-S-module-IiifSearch",
                revision="master",
                dependencies=("Common",),
            ),
            ComponentEntry(
                name="Freedom",
                kind=ComponentKind.THEME,
                host=SourceHost.GITHUB,
                repo="omeka-s-themes/Freedom",
                revision="master",
            ),
        ],
        defaults={ComponentKind.MODULE: ("Common",), ComponentKind.THEME: ("Freedom",)},
    )


def github_branch(repo: str, revision: str) -> str:
    return f"https://github.com/{repo}/archive/refs/heads/{revision}.zip"


def github_tag(repo: str, revision: str) -> str:
    return f"https://github.com/{repo}/archive/refs/tags/{revision}.zip"
