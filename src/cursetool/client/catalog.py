"""Logical catalog operations on top of :class:`~cursetool.client.fetcher.Fetcher`.

Each method maps one question the resolver asks ("what is project 238222?",
"which files does it have?", "what are the hashes of this jar?") onto one
or more cached requests, decodes the result into
:mod:`cursetool.models`, and annotates any failure with the operation that
was in progress.
"""

from __future__ import annotations

import hashlib
from contextlib import contextmanager
from typing import Any, Iterator, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from cursetool.cache.store import TTL
from cursetool.client.fetcher import INFINITE_TTL, Fetcher
from cursetool.client.urls import build_download_url, normalize_download_url
from cursetool.exceptions import CursetoolError, DataError
from cursetool.models import AddonInfo, CurseFile, ModFileInfo, Pagination

MINECRAFT_GAME_ID = 432
MODS_CLASS_ID = 6
PAGE_SIZE = 50

_M = TypeVar("_M", bound=BaseModel)


@contextmanager
def _annotated(operation: str) -> Iterator[None]:
    """Prefix any cursetool error raised inside the block with *operation*."""
    try:
        yield
    except CursetoolError as exc:
        raise exc.annotate(operation) from exc


def _parse(model: type[_M], data: Any, what: str) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DataError(f"Parsing {what}: {exc}") from exc


def _data(payload: Any) -> Any:
    """Unwrap the ``{"data": ...}`` envelope of catalog responses."""
    if not isinstance(payload, dict) or "data" not in payload:
        raise DataError("Response has no 'data' field")
    return payload["data"]


class CatalogClient:
    """Typed access to the catalog API.

    Args:
        fetcher: Cache-aware fetcher shared by all workers.
        page_size: Number of files requested per listing page.
        immutable_ttl: Lifetime of cached file hashes.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        page_size: int = PAGE_SIZE,
        immutable_ttl: TTL = INFINITE_TTL,
    ) -> None:
        self._fetcher = fetcher
        self._page_size = page_size
        self._immutable_ttl = immutable_ttl

    def request_addon_info(self, project_id: int) -> AddonInfo:
        """Fetch project metadata by numeric id."""
        with _annotated(f"Fetching addon info for project id {project_id}"):
            payload = self._fetcher.get_json(f"/v1/mods/{project_id}")
            return _parse(AddonInfo, _data(payload), "addon info")

    def request_mod_files(
        self, project_id: int, game_version: Optional[str] = None
    ) -> list[CurseFile]:
        """Fetch every file of a project, optionally for one game version.

        Pages of :attr:`page_size` files are requested at increasing
        offsets until a page reports zero results. Each page is cached
        under its own URL, so a re-run re-validates every page separately.

        Raises:
            DataError: If a page carries no pagination info.
        """
        files: list[CurseFile] = []
        index = 0
        with _annotated(f"Fetching files for project id {project_id}"):
            while True:
                params: dict[str, Any] = {"index": index, "pageSize": self._page_size}
                if game_version is not None:
                    params["gameVersion"] = game_version
                payload = self._fetcher.get_json(f"/v1/mods/{project_id}/files", params=params)
                if not isinstance(payload, dict) or payload.get("pagination") is None:
                    raise DataError(f"Page at index {index} has no pagination info")
                pagination = _parse(Pagination, payload["pagination"], "pagination")
                if pagination.result_count == 0:
                    break
                files.extend(_parse(CurseFile, item, "file entry") for item in _data(payload))
                index += self._page_size
        return files

    def request_mod_file(self, project_id: int, file_id: int) -> CurseFile:
        """Fetch one file's metadata."""
        with _annotated(f"Fetching file {file_id} of project id {project_id}"):
            payload = self._fetcher.get_json(f"/v1/mods/{project_id}/files/{file_id}")
            return _parse(CurseFile, _data(payload), "file info")

    def search_slug(self, slug: str) -> AddonInfo:
        """Find the Minecraft mod whose slug is exactly *slug*.

        Raises:
            DataError: If the search returns no project with that slug.
        """
        params = {"gameId": MINECRAFT_GAME_ID, "classId": MODS_CLASS_ID, "slug": slug}
        with _annotated(f"Searching for slug {slug!r}"):
            payload = self._fetcher.get_json("/v1/mods/search", params=params)
            for item in _data(payload):
                addon = _parse(AddonInfo, item, "search result")
                if addon.slug == slug:
                    return addon
            raise DataError("No project with this slug")

    def download_url_for(self, file: CurseFile) -> str:
        """Return the normalised download URL of *file*."""
        if file.download_url:
            return normalize_download_url(file.download_url)
        return build_download_url(file.id, file.file_name)

    def request_mod_file_info(self, download_url: str) -> ModFileInfo:
        """Download a file once and return its size and hashes.

        The result is cached under the normalised download URL with the
        immutable TTL (one year by default).
        """
        url = normalize_download_url(download_url)

        def derive(content: bytes) -> str:
            info = ModFileInfo(
                md5=hashlib.md5(content).hexdigest(),
                sha256=hashlib.sha256(content).hexdigest(),
                size=len(content),
                download_url=url,
            )
            return info.model_dump_json(by_alias=True)

        with _annotated(f"Hashing {url}"):
            payload = self._fetcher.get_derived(url, derive, ttl=self._immutable_ttl)
            try:
                return ModFileInfo.model_validate_json(payload)
            except ValidationError as exc:
                raise DataError(f"Parsing cached file info: {exc}") from exc
