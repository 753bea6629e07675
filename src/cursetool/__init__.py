"""cursetool -- convert Minecraft modpack manifests between formats.

Three representations are supported:

* **Curse manifest** -- the ``manifest.json`` exported by CurseForge
  launchers, addressing mods by numeric project and file ids.
* **YAML manifest** -- an editable intermediate list of mods addressed by
  slug, with optional per-file pins and maturity constraints.
* **Nix manifest** -- a deployable attribute set where every mod carries
  its download URL, size, and content hashes.

Typical workflow::

    cursetool curse manifest.json mods.yaml   # Curse -> YAML
    cursetool yaml mods.yaml mods.nix         # YAML -> Nix

Catalog responses are kept in a persistent SQLite cache so that repeated
conversions only hit the network for stale or missing entries.

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and API-key resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    cache: Persistent TTL response cache.
    client: Rate-limited, cache-aware catalog client.
    manifest: Readers and writers for the three manifest formats.
    resolver: Parallel per-mod resolution between formats.
"""

__version__ = "0.3.0"
