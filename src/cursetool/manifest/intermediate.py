"""Reader and writer for the editable YAML manifest.

A YAML manifest may list other YAML manifests under ``imports``. Imports
are resolved relative to the importing file and merged depth-first: mods
from earlier imports are overridden by later imports, and the importing
file's own mods override everything, matching on ``name``.

Example::

    version: 1.12.2
    imports:
      - base.yaml
    mods:
      - name: jei
      - name: journeymap
        side: client
        files:
          - maturity: beta
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from cursetool.config import write_text_atomic
from cursetool.exceptions import ManifestError
from cursetool.models import YamlManifest, YamlMod

logger = logging.getLogger(__name__)


def parse_yaml_manifest(text: str, source: str = "<string>") -> YamlManifest:
    """Parse YAML text into a :class:`~cursetool.models.YamlManifest`.

    Imports are *not* resolved here; see :func:`load_yaml_manifest`.

    Raises:
        ManifestError: If the text is not YAML or fails validation.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ManifestError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"Invalid YAML manifest {source}: expected a mapping at top level")
    # Unquoted versions such as 1.20 are read by YAML as floats.
    if isinstance(data.get("version"), (int, float)):
        data["version"] = str(data["version"])
    try:
        return YamlManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid YAML manifest {source}: {exc}") from exc


def load_yaml_manifest(path: str | Path) -> YamlManifest:
    """Read the manifest at *path* and merge all of its imports.

    The returned manifest has an empty ``imports`` list.

    Raises:
        ManifestError: On unreadable files, invalid content, import cycles,
            or imports targeting a different Minecraft version.
    """
    return _load(Path(path).resolve(), ())


def _load(path: Path, stack: tuple[Path, ...]) -> YamlManifest:
    if path in stack:
        chain = " -> ".join(str(p) for p in (*stack, path))
        raise ManifestError(f"Import cycle: {chain}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Cannot read YAML manifest {path}: {exc}") from exc
    manifest = parse_yaml_manifest(text, source=str(path))
    if not manifest.imports:
        return manifest

    merged: dict[str, YamlMod] = {}
    for entry in manifest.imports:
        imported = _load((path.parent / entry).resolve(), (*stack, path))
        if imported.version != manifest.version:
            raise ManifestError(
                f"{path} targets Minecraft {manifest.version} but imports "
                f"{entry}, which targets {imported.version}"
            )
        logger.debug("Merging %d mods from %s", len(imported.mods), entry)
        for mod in imported.mods:
            merged[mod.name] = mod
    for mod in manifest.mods:
        merged[mod.name] = mod
    return YamlManifest(version=manifest.version, imports=[], mods=list(merged.values()))


def dump_yaml_manifest(manifest: YamlManifest) -> str:
    """Serialise *manifest* to YAML, omitting unset fields."""
    data = manifest.model_dump(mode="json", by_alias=True, exclude_none=True)
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def write_yaml_manifest(manifest: YamlManifest, path: str | Path) -> None:
    """Atomically write *manifest* as YAML to *path*."""
    write_text_atomic(path, dump_yaml_manifest(manifest))
