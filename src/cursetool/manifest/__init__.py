"""Readers and writers for the three manifest formats.

* :mod:`~cursetool.manifest.curse` -- Curse launcher ``manifest.json`` (input).
* :mod:`~cursetool.manifest.intermediate` -- editable YAML manifest.
* :mod:`~cursetool.manifest.nix` -- deployable Nix manifest (output).
"""

from cursetool.manifest.curse import load_curse_manifest, parse_curse_manifest
from cursetool.manifest.intermediate import (
    dump_yaml_manifest,
    load_yaml_manifest,
    parse_yaml_manifest,
    write_yaml_manifest,
)
from cursetool.manifest.nix import render_nix, write_nix_manifest

__all__ = [
    "dump_yaml_manifest",
    "load_curse_manifest",
    "load_yaml_manifest",
    "parse_curse_manifest",
    "parse_yaml_manifest",
    "render_nix",
    "write_nix_manifest",
    "write_yaml_manifest",
]
