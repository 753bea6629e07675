"""URL normalisation for catalog download links.

Download URLs must be normalised identically on every code path, because
the normalised URL is both the outbound request target and the cache key
for the file's hashes. Two rules apply:

* The ``edge.forgecdn.net`` host is rewritten to ``media.forgecdn.net``.
  Both serve the same files, but the edge host rejects direct requests
  in some deployments.
* The catalog does not reliably URL-encode file names. The last path
  segment is decoded and re-encoded with no safe characters, so that
  ``+`` becomes ``%2B`` (the CDN requires this) and the result is the
  same whether or not the input was already encoded.
"""

from __future__ import annotations

import re
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from cursetool.exceptions import DataError

EDGE_HOST = "edge.forgecdn.net"
MEDIA_HOST = "media.forgecdn.net"

_SLUG_RE = re.compile(r".*/(?P<slug>.*)$")


def normalize_cdn_host(url: str) -> str:
    """Rewrite the edge CDN host to its canonical media counterpart."""
    parts = urlsplit(url)
    if parts.hostname != EDGE_HOST:
        return url
    netloc = parts.netloc.replace(EDGE_HOST, MEDIA_HOST, 1)
    return urlunsplit(parts._replace(netloc=netloc))


def encode_download_url(url: str) -> str:
    """Deterministically re-encode the file name segment of *url*.

    Example::

        >>> encode_download_url("https://media.forgecdn.net/files/1/2/My Mod+1.jar")
        'https://media.forgecdn.net/files/1/2/My%20Mod%2B1.jar'
    """
    parts = urlsplit(url)
    head, sep, name = parts.path.rpartition("/")
    if not name:
        return url
    encoded = quote(unquote(name), safe="")
    return urlunsplit(parts._replace(path=f"{head}{sep}{encoded}"))


def normalize_download_url(url: str) -> str:
    """Apply both download-URL rules. Idempotent."""
    return encode_download_url(normalize_cdn_host(url))


def build_download_url(file_id: int, file_name: str) -> str:
    """Construct the CDN URL of a file whose ``downloadUrl`` is not published.

    Projects that opt out of third-party distribution have a null
    ``downloadUrl`` in the API, but the file still lives at a path derived
    from its id: ``/files/<id // 1000>/<id % 1000>/<file name>``.
    """
    url = f"https://{EDGE_HOST}/files/{file_id // 1000}/{file_id % 1000}/{file_name}"
    return normalize_download_url(url)


def slug_from_webpage_url(url: str) -> str:
    """Extract a project's slug from its canonical web page URL.

    Raises:
        DataError: If the URL has no non-empty last path segment.
    """
    match = _SLUG_RE.match(url)
    slug = match.group("slug") if match else ""
    if not slug:
        raise DataError(f"Extracting slug from {url!r}")
    return slug
