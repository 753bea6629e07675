"""Shared test fixtures for cursetool.

Provides a controllable clock for the response cache, an in-process fake
of the catalog API and file CDN served through :class:`httpx.MockTransport`,
and isolated config environments. These fixtures are discovered by pytest
automatically.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from cursetool.cache import CacheStore
from cursetool.client import CatalogClient, Fetcher
from cursetool.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Install a quiet, colourless OutputManager and reset it afterwards.

    Typer's CliRunner swaps sys.stdout/sys.stderr during a run; a manager
    created earlier would keep references to closed streams.
    """
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable returning a manually advanced Unix time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> CacheStore:
    """An in-memory cache store driven by the fake clock."""
    s = CacheStore.in_memory(clock=clock)
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Fake catalog + CDN
# ---------------------------------------------------------------------------


_MOD_RE = re.compile(r"^/v1/mods/(\d+)$")
_FILES_RE = re.compile(r"^/v1/mods/(\d+)/files$")
_FILE_RE = re.compile(r"^/v1/mods/(\d+)/files/(\d+)$")


def addon_json(project_id: int, slug: str, name: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": project_id,
        "name": name or slug.replace("-", " ").title(),
        "slug": slug,
        "summary": f"The {slug} mod",
        "links": {"websiteUrl": f"https://www.curseforge.com/minecraft/mc-mods/{slug}"},
    }


def file_json(
    project_id: int,
    file_id: int,
    file_name: str,
    game_versions: tuple[str, ...] = ("1.12.2",),
    release_type: int = 1,
    file_date: str = "2021-01-01T00:00:00Z",
    download_url: Optional[str] = "default",
) -> dict[str, Any]:
    if download_url == "default":
        download_url = (
            f"https://edge.forgecdn.net/files/{file_id // 1000}/{file_id % 1000}/{file_name}"
        )
    return {
        "id": file_id,
        "modId": project_id,
        "displayName": file_name,
        "fileName": file_name,
        "downloadUrl": download_url,
        "releaseType": release_type,
        "fileLength": 0,
        "fileDate": file_date,
        "gameVersions": list(game_versions),
    }


class FakeCatalog:
    """Minimal CurseForge core API and CDN, recording every request.

    Projects are registered with :meth:`add_mod`; CDN content is keyed by
    the decoded URL path via :meth:`add_blob`. Unknown CDN paths answer
    with an XML error document, like the real CDN does.
    """

    def __init__(self) -> None:
        self.addons: dict[int, dict[str, Any]] = {}
        self.files: dict[int, list[dict[str, Any]]] = {}
        self.blobs: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []

    def add_mod(
        self, project_id: int, slug: str, files: tuple[dict[str, Any], ...] = (), name: Optional[str] = None
    ) -> dict[str, Any]:
        addon = addon_json(project_id, slug, name)
        self.addons[project_id] = addon
        self.files[project_id] = list(files)
        return addon

    def add_blob(self, path: str, content: bytes) -> None:
        self.blobs[path] = content

    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "api.curseforge.com"]

    def cdn_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host.endswith("forgecdn.net")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host.endswith("forgecdn.net"):
            return self._cdn(request)
        path = request.url.path

        if path == "/v1/mods/search":
            slug = request.url.params.get("slug")
            hits = [a for a in self.addons.values() if a["slug"] == slug]
            return _json({"data": hits, "pagination": _pagination(0, 50, len(hits))})

        match = _MOD_RE.match(path)
        if match:
            addon = self.addons.get(int(match.group(1)))
            if addon is None:
                return _json({"error": "not found"}, status_code=404)
            return _json({"data": addon})

        match = _FILES_RE.match(path)
        if match:
            files = self.files.get(int(match.group(1)), [])
            version = request.url.params.get("gameVersion")
            if version is not None:
                files = [f for f in files if version in f["gameVersions"]]
            index = int(request.url.params.get("index", "0"))
            size = int(request.url.params.get("pageSize", "50"))
            page = files[index:index + size]
            return _json({"data": page, "pagination": _pagination(index, size, len(page))})

        match = _FILE_RE.match(path)
        if match:
            for f in self.files.get(int(match.group(1)), []):
                if f["id"] == int(match.group(2)):
                    return _json({"data": f})
            return _json({"error": "not found"}, status_code=404)

        return _json({"error": "unknown route"}, status_code=404)

    def _cdn(self, request: httpx.Request) -> httpx.Response:
        content = self.blobs.get(request.url.path)
        if content is None:
            return httpx.Response(
                404,
                headers={"content-type": "application/xml"},
                content=b"<Error><Code>NoSuchKey</Code></Error>",
            )
        return httpx.Response(
            200, headers={"content-type": "application/java-archive"}, content=content
        )


def _pagination(index: int, size: int, count: int) -> dict[str, int]:
    return {"index": index, "pageSize": size, "resultCount": count, "totalCount": count}


def _json(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"content-type": "application/json; charset=utf-8"},
        content=json.dumps(data).encode(),
    )


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def fetcher(store: CacheStore, fake_catalog: FakeCatalog) -> Fetcher:
    f = Fetcher(store, api_key="test-key", transport=httpx.MockTransport(fake_catalog.handler))
    yield f
    f.close()


@pytest.fixture
def catalog(fetcher: Fetcher) -> CatalogClient:
    return CatalogClient(fetcher)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG directories at subdirectories of tmp_path, forces the
    XDG code path, clears cursetool-related environment variables, and
    changes the working directory to tmp_path.
    """
    monkeypatch.setattr("cursetool.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["CURSEFORGE_API_KEY", "CURSETOOL_BASE_URL", "CURSETOOL_JOBS"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
