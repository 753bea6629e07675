"""Per-mod resolution between manifest formats.

Both conversions fan out over a thread pool, one task per mod, all sharing
one :class:`~cursetool.client.catalog.CatalogClient`. The fetch layer
underneath serialises origin requests and serves repeats from the cache,
so the pool mostly overlaps cache lookups and hashing.

Failure policy is chosen by the caller: with ``keep_going=False`` the first
failing mod aborts the conversion; with ``keep_going=True`` failures are
collected as :class:`ResolutionFailure` and the affected mods are left out.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TypeVar
from urllib.parse import unquote, urlsplit

from cursetool.client.catalog import CatalogClient
from cursetool.client.urls import slug_from_webpage_url
from cursetool.exceptions import CursetoolError, DataError, ManifestError
from cursetool.models import (
    CurseFile,
    CurseManifest,
    CurseManifestFile,
    Maturity,
    NixManifest,
    NixMod,
    Side,
    YamlManifest,
    YamlMod,
    YamlModFile,
)

logger = logging.getLogger(__name__)

DEFAULT_JOBS = 8

ProgressCallback = Callable[[str], None]

_T = TypeVar("_T")
_R = TypeVar("_R")


@dataclass
class ResolutionFailure:
    """A mod that could not be resolved while ``keep_going`` was set."""

    name: str
    error: CursetoolError


# ------------------------------------------------------------------ #
# Curse -> YAML
# ------------------------------------------------------------------ #


def generate_yaml_from_curse(
    manifest: CurseManifest,
    catalog: CatalogClient,
    jobs: int = DEFAULT_JOBS,
    keep_going: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[YamlManifest, list[ResolutionFailure]]:
    """Convert a Curse manifest into a YAML manifest.

    Every ``(projectID, fileID)`` pair becomes a mod named after the
    project's slug, pinned to that file id. Mods are sorted by name.

    Returns:
        The YAML manifest and the list of skipped mods (always empty
        unless *keep_going* is set).
    """
    logger.info("Found %d mods in Curse manifest", len(manifest.files))
    mods, failures = _map_parallel(
        manifest.files,
        lambda entry: yaml_mod_for(catalog, entry),
        describe=lambda entry: f"project {entry.project_id}",
        jobs=jobs,
        keep_going=keep_going,
        on_progress=on_progress,
    )
    mods.sort(key=lambda m: m.name)
    return YamlManifest(version=manifest.minecraft.version, imports=[], mods=mods), failures


def yaml_mod_for(catalog: CatalogClient, entry: CurseManifestFile) -> YamlMod:
    """Resolve one Curse manifest entry to a YAML mod."""
    logger.debug("Fetching data for file %s in project %s", entry.file_id, entry.project_id)
    addon = catalog.request_addon_info(entry.project_id)
    try:
        slug = slug_from_webpage_url(addon.website_url)
    except CursetoolError as exc:
        raise exc.annotate(f"Fetching slug for project id {entry.project_id}") from exc
    return YamlMod(
        name=slug,
        required=None if entry.required else False,
        files=[YamlModFile(id=entry.file_id)],
    )


# ------------------------------------------------------------------ #
# YAML -> Nix
# ------------------------------------------------------------------ #


def generate_nix_from_yaml(
    manifest: YamlManifest,
    catalog: CatalogClient,
    jobs: int = DEFAULT_JOBS,
    keep_going: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[NixManifest, list[ResolutionFailure]]:
    """Resolve every mod of a YAML manifest to a downloadable, hashed file.

    Imports must already be merged (see
    :func:`~cursetool.manifest.intermediate.load_yaml_manifest`).
    """
    mods, failures = _map_parallel(
        manifest.mods,
        lambda mod: nix_mod_for(catalog, mod, manifest.version),
        describe=lambda mod: mod.name,
        jobs=jobs,
        keep_going=keep_going,
        on_progress=on_progress,
    )
    mods.sort(key=lambda m: m.name)
    return NixManifest(version=manifest.version, mods=mods), failures


def nix_mod_for(catalog: CatalogClient, mod: YamlMod, version: str) -> NixMod:
    """Resolve a single YAML mod for Minecraft *version*.

    A file entry with ``src`` is hashed directly. Otherwise the project is
    looked up by slug and either the pinned file ``id`` or the newest file
    matching *version* and the entry's maturity is used.

    Raises:
        ManifestError: If the mod lists more than one file entry.
        DataError: If no file matches, or a declared ``md5`` differs from
            the downloaded file.
    """
    try:
        return _nix_mod_for(catalog, mod, version)
    except CursetoolError as exc:
        raise exc.annotate(f"Resolving {mod.name}") from exc


def _nix_mod_for(catalog: CatalogClient, mod: YamlMod, version: str) -> NixMod:
    files = mod.files or [YamlModFile()]
    if len(files) > 1:
        raise ManifestError(f"{len(files)} file entries given; only one is supported")
    spec = files[0]

    if spec.src:
        info = catalog.request_mod_file_info(spec.src)
        title = mod.name
        project_id = file_id = None
        filename = spec.name or unquote(urlsplit(info.download_url).path.rpartition("/")[2])
        page = spec.file_page_url
    else:
        addon = catalog.search_slug(mod.name)
        if spec.id is not None:
            file = catalog.request_mod_file(addon.id, spec.id)
        else:
            candidates = catalog.request_mod_files(addon.id, game_version=version)
            file = select_file(candidates, version, spec.maturity or Maturity.RELEASE)
        info = catalog.request_mod_file_info(catalog.download_url_for(file))
        title = addon.name
        project_id, file_id = addon.id, file.id
        filename = file.file_name
        page = spec.file_page_url or f"{addon.website_url}/files/{file.id}"

    if spec.md5 and spec.md5.lower() != info.md5:
        raise DataError(f"md5 mismatch: manifest says {spec.md5}, downloaded file has {info.md5}")

    return NixMod(
        name=mod.name,
        title=title,
        side=mod.side or Side.BOTH,
        required=True if mod.required is None else mod.required,
        default=True if mod.default is None else mod.default,
        project_id=project_id,
        file_id=file_id,
        filename=filename,
        src=info.download_url,
        page=page,
        md5=info.md5,
        sha256=info.sha256,
        size=info.size,
    )


def select_file(files: Iterable[CurseFile], version: str, maturity: Maturity) -> CurseFile:
    """Pick the newest file for *version* that *maturity* allows.

    Ties on date are broken by the higher file id.

    Raises:
        DataError: If no file qualifies.
    """
    candidates = [
        f for f in files if version in f.game_versions and maturity.allows(f.release_type)
    ]
    if not candidates:
        raise DataError(
            f"No file matches Minecraft {version} at maturity '{maturity.value}'"
        )
    return max(
        candidates,
        key=lambda f: (f.file_date.timestamp() if f.file_date else 0.0, f.id),
    )


# ------------------------------------------------------------------ #
# Worker pool
# ------------------------------------------------------------------ #


def _map_parallel(
    items: Iterable[_T],
    work: Callable[[_T], _R],
    describe: Callable[[_T], str],
    jobs: int,
    keep_going: bool,
    on_progress: Optional[ProgressCallback],
) -> tuple[list[_R], list[ResolutionFailure]]:
    results: list[_R] = []
    failures: list[ResolutionFailure] = []
    with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="resolver") as pool:
        futures = {pool.submit(work, item): item for item in items}
        try:
            for future in as_completed(futures):
                label = describe(futures[future])
                try:
                    results.append(future.result())
                except CursetoolError as exc:
                    if not keep_going:
                        raise
                    logger.warning("Skipping %s: %s", label, exc)
                    failures.append(ResolutionFailure(label, exc))
                finally:
                    if on_progress is not None:
                        on_progress(label)
        except BaseException:
            for future in futures:
                future.cancel()
            raise
    return results, failures
