"""Catalog client for cursetool.

:class:`Fetcher` is the rate-limited, cache-aware HTTP layer wrapping
:class:`httpx.Client`; :class:`CatalogClient` exposes the logical catalog
operations (addon info, paginated file listings, slug search, file
hashing) on top of it.

Example::

    from cursetool.cache import CacheStore
    from cursetool.client import CatalogClient, Fetcher

    with Fetcher(CacheStore.open(path), api_key=key) as fetcher:
        catalog = CatalogClient(fetcher)
        addon = catalog.request_addon_info(238222)
"""

from cursetool.client.catalog import CatalogClient
from cursetool.client.fetcher import DEFAULT_TTL, INFINITE_TTL, Fetcher

__all__ = ["CatalogClient", "Fetcher", "DEFAULT_TTL", "INFINITE_TTL"]
