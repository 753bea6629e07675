"""Rate-limited, cache-aware HTTP fetching.

:class:`Fetcher` sits between the catalog operations and the network. For
every request it:

1. Builds the request with :mod:`httpx` and uses the resulting URL, with
   its query string serialised exactly as it will be sent, as the cache
   key.
2. Asks the :class:`~cursetool.cache.CacheStore` for a fresh value.
3. On a miss, performs the origin request while holding the single network
   gate. At most one origin request is in flight per process; cache hits
   never touch the gate.
4. Validates the response (content type, status) and hands the payload
   back to the store.

Errors are mapped onto the :class:`~cursetool.exceptions.FetchError`
hierarchy. Nothing is retried.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import timedelta
from typing import Any, Callable, Optional

import httpx

from cursetool.cache.store import TTL, CacheStore
from cursetool.client.urls import normalize_download_url
from cursetool.exceptions import (
    AuthError,
    ConnectionError_,
    DataError,
    NotFoundError,
    ServerError,
    UnexpectedContentTypeError,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://api.curseforge.com"
API_KEY_HEADER = "x-api-key"

DEFAULT_TTL = timedelta(hours=24)
"""Lifetime of metadata, listing, and search responses."""

INFINITE_TTL = timedelta(days=365)
"""Lifetime of data derived from a published file, which never changes."""


class Fetcher:
    """Cache-aware HTTP client for the catalog API and the file CDN.

    Must be closed (or used as a context manager) to release the
    underlying :class:`httpx.Client`.

    Args:
        store: The process-wide response cache.
        api_key: Catalog API key, sent as ``x-api-key`` on API requests
            only. It is never sent to the CDN and is not part of any key.
        base_url: Catalog API root.
        timeout: Per-request timeout in seconds.
        default_ttl: TTL used when a call does not pass one.
        transport: Optional :class:`httpx.BaseTransport`, used by tests to
            stub the network.

    Example::

        with Fetcher(CacheStore.open(path), api_key=key) as fetcher:
            addon = fetcher.get_json("/v1/mods/238222")
    """

    def __init__(
        self,
        store: CacheStore,
        api_key: Optional[str] = None,
        base_url: str = BASE_URL,
        timeout: float = 30,
        default_ttl: TTL = DEFAULT_TTL,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._store = store
        self._api_key = api_key
        self._default_ttl = default_ttl
        self._rate_limiter = threading.Lock()
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def request_key(self, path: str, params: Optional[dict[str, Any]] = None) -> str:
        """Return the cache key for a catalog request: its URL as sent."""
        return str(self._build_api_request(path, params).url)

    def get_text(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        ttl: Optional[TTL] = None,
    ) -> str:
        """Fetch a catalog endpoint as text, through the cache.

        Only a body that decodes as JSON is stored.

        Args:
            path: URL path relative to the base URL, or an absolute URL.
            params: Query parameters. Their serialised form is part of the
                cache key.
            ttl: Override for the default TTL.

        Raises:
            FetchError: On transport failures, unexpected content types,
                or non-success statuses.
            DataError: If the body is not valid JSON.
            CacheError: If the cache cannot be read or written.
        """
        request = self._build_api_request(path, params)
        key = str(request.url)

        def compute() -> str:
            response = self._send(request)
            _check_response(response, expect="JSON")
            _decode_json(response.text)
            return response.text

        return self._store.get_or_put(key, ttl if ttl is not None else self._default_ttl, compute)

    def get_json(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        ttl: Optional[TTL] = None,
    ) -> Any:
        """Like :meth:`get_text`, decoding the payload as JSON."""
        return _decode_json(self.get_text(path, params=params, ttl=ttl))

    def get_derived(
        self,
        url: str,
        derive: Callable[[bytes], str],
        ttl: TTL = INFINITE_TTL,
    ) -> str:
        """Download a binary and cache a value derived from its content.

        The URL is normalised with
        :func:`~cursetool.client.urls.normalize_download_url` before it is
        used as either key or target, so both CDN host variants and both
        encodings of a file name share one entry.

        Args:
            url: Download URL of the file.
            derive: Turns the downloaded bytes into the string to cache
                (e.g. a JSON blob of hashes).
            ttl: Defaults to :data:`INFINITE_TTL`; published files are
                immutable.
        """
        request = self._client.build_request("GET", normalize_download_url(url))
        key = str(request.url)

        def compute() -> str:
            response = self._send(request)
            _check_response(response, expect="binary")
            return derive(response.content)

        return self._store.get_or_put(key, ttl, compute)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_api_request(
        self, path: str, params: Optional[dict[str, Any]]
    ) -> httpx.Request:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers[API_KEY_HEADER] = self._api_key
        return self._client.build_request("GET", path, params=params, headers=headers)

    def _send(self, request: httpx.Request) -> httpx.Response:
        """Perform one origin request under the network gate."""
        with self._rate_limiter:
            logger.debug("Fetching %s", request.url)
            try:
                return self._client.send(request)
            except httpx.HTTPError as exc:
                raise ConnectionError_(f"Request to {request.url} failed: {exc}") from exc


def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataError(f"Parsing response as JSON: {exc}") from exc


def _check_response(response: httpx.Response, expect: str) -> None:
    """Raise a typed exception for unusable responses.

    The XML check runs first: the CDN reports a bad URL with an XML
    document and an error status, and that case needs its own message.
    A success status with the wrong kind of body (an HTML maintenance or
    login page, say) is rejected as well, so it never reaches the cache.
    """
    content_type = response.headers.get("content-type", "").lower()
    if "xml" in content_type:
        raise UnexpectedContentTypeError(
            f"Expected {expect} from {response.url} but got {content_type}; "
            "the URL was probably computed incorrectly"
        )

    status = response.status_code
    if status < 300:
        if expect == "JSON" and "json" not in content_type:
            raise UnexpectedContentTypeError(
                f"Expected JSON from {response.url} but got {content_type or 'no content type'}"
            )
        if expect == "binary" and "html" in content_type:
            raise UnexpectedContentTypeError(
                f"Expected binary from {response.url} but got {content_type}"
            )
        return

    detail = response.text[:200] if response.content else ""
    prefix = f"HTTP {status}"
    message = f"{prefix}: {detail}" if detail else prefix
    if status in (401, 403):
        raise AuthError(message)
    if status == 404:
        raise NotFoundError(message)
    raise ServerError(message)
