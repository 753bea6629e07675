"""Persistent response caching for cursetool.

This package provides :class:`CacheStore`, a SQLite-backed cache mapping
request URLs to payloads with per-read TTL checks. It is consumed by
:class:`~cursetool.client.fetcher.Fetcher`, which keys every catalog
request and every file-hash computation through it.
"""

from cursetool.cache.store import DB_NAME, CacheStore

__all__ = ["CacheStore", "DB_NAME"]
