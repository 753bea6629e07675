"""Nix manifest rendering.

The deployable manifest is a Nix attribute set keyed by mod name::

    {
      version = "1.12.2";
      mods = {
        "jei" = {
          title = "Just Enough Items (JEI)";
          ...
          sha256 = "...";
        };
      };
    }

It is rendered from ``templates/manifest.nix.j2`` with Jinja2. Strings go
through the :func:`nix_string` filter, which quotes them and escapes the
characters that are special inside Nix double-quoted strings.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from cursetool import __version__
from cursetool.config import write_text_atomic
from cursetool.models import NixManifest

TEMPLATE_DIR = Path(__file__).parent / "templates"

_NIX_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("${", "\\${"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)


def nix_string(value: object) -> str:
    """Render *value* as a double-quoted Nix string literal."""
    text = str(value)
    for raw, escaped in _NIX_ESCAPES:
        text = text.replace(raw, escaped)
    return f'"{text}"'


def nix_bool(value: bool) -> str:
    return "true" if value else "false"


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["nix_string"] = nix_string
    env.filters["nix_bool"] = nix_bool
    return env


def render_nix(manifest: NixManifest) -> str:
    """Render *manifest* as Nix source, mods sorted by name."""
    template = _environment().get_template("manifest.nix.j2")
    mods = sorted(manifest.mods, key=lambda m: m.name)
    return template.render(version=manifest.version, mods=mods, tool_version=__version__)


def write_nix_manifest(manifest: NixManifest, path: str | Path) -> None:
    """Atomically write the rendered manifest to *path*."""
    write_text_atomic(path, render_nix(manifest))
