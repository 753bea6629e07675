"""Canonical Pydantic models shared across all cursetool modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CacheConfig`, and :class:`GlobalConfig`.

**Catalog models** -- decoded from the CurseForge core API:
    :class:`AddonLinks`, :class:`AddonInfo`, :class:`CurseFile`,
    :class:`Pagination`, and the derived :class:`ModFileInfo` that the cache
    stores for each downloaded binary.

**Manifest models** -- the three manifest representations:
    :class:`CurseManifest` (input), :class:`YamlManifest` (editable
    intermediate), and :class:`NixManifest` (deployable output).

Catalog and Curse manifest models ignore unknown keys, because the remote
schemas carry far more than we consume. Field names follow Python
conventions with the wire names declared as aliases.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings applied to every catalog request."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    page_size: int = Field(
        default=50, description="Page size for paginated file listings"
    )


class CacheConfig(BaseModel):
    """Response cache lifetimes stored in :class:`GlobalConfig`."""

    default_ttl_seconds: int = Field(
        default=86400,
        description="TTL for metadata and listing endpoints (24 hours)",
    )
    immutable_ttl_seconds: int = Field(
        default=86400 * 365,
        description="TTL for hashes of published files, which never change",
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/cursetool/config.json``.

    Loaded and saved by :func:`~cursetool.config.load_global_config` and
    :func:`~cursetool.config.save_global_config`. Values here have the
    lowest precedence; see :func:`~cursetool.config.resolve_config`.
    """

    base_url: str = Field(
        default="https://api.curseforge.com",
        description="Catalog API base URL",
    )
    api_key_source: str = Field(
        default="env:CURSEFORGE_API_KEY",
        description="Credential source: env:VAR or file:/path",
    )
    jobs: int = Field(default=8, description="Worker threads for mod resolution")
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


# --- Catalog ---


class _CatalogModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AddonLinks(_CatalogModel):
    website_url: str = Field(alias="websiteUrl")


class AddonInfo(_CatalogModel):
    """A catalog project (mod), as returned by ``/v1/mods/{id}`` and search."""

    id: int
    name: str
    slug: Optional[str] = None
    summary: Optional[str] = None
    links: AddonLinks

    @property
    def website_url(self) -> str:
        return self.links.website_url


class ReleaseType(enum.IntEnum):
    """Catalog release channel of a file. Lower values are more mature."""

    RELEASE = 1
    BETA = 2
    ALPHA = 3


class CurseFile(_CatalogModel):
    """A single published file of a project."""

    id: int
    mod_id: int = Field(alias="modId")
    display_name: str = Field(alias="displayName")
    file_name: str = Field(alias="fileName")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")
    release_type: ReleaseType = Field(default=ReleaseType.RELEASE, alias="releaseType")
    file_length: Optional[int] = Field(default=None, alias="fileLength")
    file_date: Optional[datetime] = Field(default=None, alias="fileDate")
    game_versions: list[str] = Field(default_factory=list, alias="gameVersions")


class Pagination(_CatalogModel):
    index: int = 0
    page_size: int = Field(default=0, alias="pageSize")
    result_count: int = Field(alias="resultCount")
    total_count: Optional[int] = Field(default=None, alias="totalCount")


class ModFileInfo(BaseModel):
    """Size and content hashes of a downloaded file.

    Serialised to JSON and stored in the response cache under the file's
    download URL, so the binary is only downloaded once per cache lifetime.
    """

    model_config = ConfigDict(populate_by_name=True)

    md5: str
    sha256: str
    size: int
    download_url: str = Field(alias="downloadUrl")


# --- Curse manifest ---


class MinecraftVersion(_CatalogModel):
    version: str


class CurseManifestFile(_CatalogModel):
    project_id: int = Field(alias="projectID")
    file_id: int = Field(alias="fileID")
    required: bool = True


class CurseManifest(_CatalogModel):
    """The ``manifest.json`` exported by CurseForge launchers."""

    minecraft: MinecraftVersion
    files: list[CurseManifestFile] = Field(default_factory=list)


# --- YAML manifest ---


class Side(str, enum.Enum):
    CLIENT = "client"
    SERVER = "server"
    BOTH = "both"


class Maturity(str, enum.Enum):
    """Least mature release channel a mod may be resolved to."""

    RELEASE = "release"
    BETA = "beta"
    ALPHA = "alpha"

    def allows(self, release_type: ReleaseType) -> bool:
        return release_type <= _MATURITY_LEVELS[self]


_MATURITY_LEVELS = {
    Maturity.RELEASE: ReleaseType.RELEASE,
    Maturity.BETA: ReleaseType.BETA,
    Maturity.ALPHA: ReleaseType.ALPHA,
}


class YamlModFile(BaseModel):
    """A file pin or constraint for a :class:`YamlMod`.

    Every field is optional. ``id`` pins an exact catalog file, ``src``
    points at a non-catalog download, and ``maturity`` relaxes automatic
    file selection to beta or alpha builds.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    id: Optional[int] = None
    maturity: Optional[Maturity] = None
    file_page_url: Optional[str] = Field(default=None, alias="filePageUrl")
    src: Optional[str] = None
    md5: Optional[str] = None


class YamlMod(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    side: Optional[Side] = None
    required: Optional[bool] = None
    default: Optional[bool] = None
    files: Optional[list[YamlModFile]] = None


class YamlManifest(BaseModel):
    """The editable intermediate manifest."""

    version: str
    imports: list[str] = Field(default_factory=list)
    mods: list[YamlMod] = Field(default_factory=list)


# --- Nix manifest ---


class NixMod(BaseModel):
    """A fully resolved mod, ready to be rendered as a Nix attribute set."""

    name: str
    title: str
    side: Side = Side.BOTH
    required: bool = True
    default: bool = True
    project_id: Optional[int] = None
    file_id: Optional[int] = None
    filename: str
    src: str
    page: Optional[str] = None
    md5: str
    sha256: str
    size: int


class NixManifest(BaseModel):
    version: str
    mods: list[NixMod] = Field(default_factory=list)
