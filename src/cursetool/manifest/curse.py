"""Reader for the Curse launcher ``manifest.json``."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from cursetool.exceptions import ManifestError
from cursetool.models import CurseManifest


def parse_curse_manifest(text: str, source: str = "<string>") -> CurseManifest:
    """Parse the JSON text of a Curse manifest.

    Only ``minecraft.version`` and ``files`` are consumed; every other key
    (author, mod loaders, overrides) is ignored.

    Raises:
        ManifestError: If the text is not JSON or lacks required fields.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in Curse manifest {source}: {exc}") from exc
    try:
        return CurseManifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid Curse manifest {source}: {exc}") from exc


def load_curse_manifest(path: str | Path) -> CurseManifest:
    """Read and parse the Curse manifest at *path*."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Cannot read Curse manifest {path}: {exc}") from exc
    return parse_curse_manifest(text, source=str(path))
