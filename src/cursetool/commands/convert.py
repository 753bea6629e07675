"""Conversion commands -- ``cursetool curse`` and ``cursetool yaml``.

Both commands open the process-wide response cache and catalog client
through :func:`open_catalog`, run the matching resolver with a Rich
progress bar on stderr, and write their output atomically. When
``--keep-going`` is set, mods that fail to resolve are reported, left out
of the output, and the command exits with a non-zero status.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from cursetool.exit_codes import EXIT_GENERIC_FAILURE
from cursetool.output import OutputFormat, debug, get_output, info, success, warning


@contextmanager
def open_catalog(obj: dict[str, Any]) -> Iterator[Any]:
    """Open the cache, fetcher, and catalog client for one command run.

    Args:
        obj: The Typer context object populated by the root callback.

    Yields:
        A ready :class:`~cursetool.client.catalog.CatalogClient`.

    Raises:
        ConfigError: If the configuration or API key cannot be resolved.
        CacheError: If the cache database cannot be opened.
    """
    from cursetool.cache import DB_NAME, CacheStore
    from cursetool.client import CatalogClient, Fetcher
    from cursetool.config import get_cache_dir, resolve_api_key, resolve_config

    config = resolve_config(cli_base_url=obj.get("base_url"), cli_jobs=obj.get("jobs"))
    obj["resolved_jobs"] = config.jobs
    api_key = resolve_api_key(config, obj.get("api_key_file"))

    db_path = get_cache_dir() / DB_NAME
    debug(f"Catalog {config.base_url}, {config.jobs} worker(s), cache {db_path}")

    with CacheStore.open(db_path) as store:
        with Fetcher(
            store,
            api_key=api_key,
            base_url=config.base_url,
            timeout=config.request.timeout,
            default_ttl=config.cache.default_ttl_seconds,
        ) as fetcher:
            yield CatalogClient(
                fetcher,
                page_size=config.request.page_size,
                immutable_ttl=config.cache.immutable_ttl_seconds,
            )


@contextmanager
def progress_bar(total: int, description: str) -> Iterator[Callable[[str], None]]:
    """Show a progress bar on stderr; yields a per-item ``advance`` callback.

    The bar is only drawn for Rich output and is hidden by ``--quiet``.
    """
    output = get_output()
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=output.stderr_console,
        disable=output.is_quiet or output.format != OutputFormat.RICH,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=total)

        def advance(label: str) -> None:
            progress.update(task, advance=1, description=f"{description} ({label})")

        yield advance


def _report_failures(failures: list) -> None:
    if not failures:
        return
    for failure in failures:
        warning(f"Skipped {failure.name}: {failure.error}")
    warning(f"{len(failures)} mod(s) could not be resolved and were left out")
    raise typer.Exit(code=EXIT_GENERIC_FAILURE)


def curse_command(
    ctx: typer.Context,
    input_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="Curse manifest.json to read."
    ),
    output_file: Path = typer.Argument(..., dir_okay=False, help="YAML manifest to write."),
) -> None:
    """Convert a Curse manifest to a YAML manifest.

    Each mod is looked up by project id and named after its slug; the file
    id from the Curse manifest is kept as a pin.

    Example::

        cursetool curse manifest.json mods.yaml
    """
    from cursetool.manifest import load_curse_manifest, write_yaml_manifest
    from cursetool.resolver import generate_yaml_from_curse

    obj = ctx.ensure_object(dict)
    info("Reading manifest...")
    manifest = load_curse_manifest(input_file)
    info(f"Found {len(manifest.files)} mods in Curse manifest")

    with open_catalog(obj) as catalog:
        with progress_bar(len(manifest.files), "Resolving mods") as advance:
            result, failures = generate_yaml_from_curse(
                manifest,
                catalog,
                jobs=obj["resolved_jobs"],
                keep_going=obj.get("keep_going", False),
                on_progress=advance,
            )

    write_yaml_manifest(result, output_file)
    success(f"Wrote {len(result.mods)} mods to {output_file}")
    _report_failures(failures)


def yaml_command(
    ctx: typer.Context,
    input_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="YAML manifest to read."
    ),
    output_file: Path = typer.Argument(..., dir_okay=False, help="Nix manifest to write."),
) -> None:
    """Convert a YAML manifest to a Nix manifest.

    Imports are merged first. Every mod is then resolved to a concrete
    file, downloaded once, and hashed; hashes are cached for a year since
    published files never change.

    Example::

        cursetool yaml mods.yaml mods.nix
    """
    from cursetool.manifest import load_yaml_manifest, write_nix_manifest
    from cursetool.resolver import generate_nix_from_yaml

    obj = ctx.ensure_object(dict)
    info("Reading manifest...")
    manifest = load_yaml_manifest(input_file)
    info(f"Found {len(manifest.mods)} mods for Minecraft {manifest.version}")

    with open_catalog(obj) as catalog:
        with progress_bar(len(manifest.mods), "Resolving mods") as advance:
            result, failures = generate_nix_from_yaml(
                manifest,
                catalog,
                jobs=obj["resolved_jobs"],
                keep_going=obj.get("keep_going", False),
                on_progress=advance,
            )

    write_nix_manifest(result, output_file)
    success(f"Wrote {len(result.mods)} mods to {output_file}")
    _report_failures(failures)
