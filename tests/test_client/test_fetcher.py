"""Tests for the cache-aware Fetcher."""

from __future__ import annotations

import threading
import time

import httpx
import pytest

from cursetool.cache import CacheStore
from cursetool.client.fetcher import API_KEY_HEADER, DEFAULT_TTL, INFINITE_TTL, Fetcher
from cursetool.exceptions import (
    AuthError,
    ConnectionError_,
    DataError,
    NotFoundError,
    ServerError,
    UnexpectedContentTypeError,
)


def _fetcher(store: CacheStore, handler, api_key: str = "test-key") -> Fetcher:
    return Fetcher(store, api_key=api_key, transport=httpx.MockTransport(handler))


def _json(body: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, headers={"content-type": "application/json"}, content=body.encode()
    )


# ---------------------------------------------------------------------------
# TTL constants
# ---------------------------------------------------------------------------


def test_ttl_constants() -> None:
    assert DEFAULT_TTL.total_seconds() == 24 * 3600
    assert INFINITE_TTL.total_seconds() == 365 * 24 * 3600


# ---------------------------------------------------------------------------
# Cache keys
# ---------------------------------------------------------------------------


class TestCacheKeys:
    def test_key_is_full_url_with_query(self, store) -> None:
        with _fetcher(store, lambda r: _json("{}")) as f:
            key = f.request_key("/v1/mods/1/files", {"index": 0, "pageSize": 50})
        assert key == "https://api.curseforge.com/v1/mods/1/files?index=0&pageSize=50"

    def test_response_is_stored_under_request_url(self, store) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return _json('{"data": 1}')

        with _fetcher(store, handler) as f:
            f.get_text("/v1/mods/1", params={"a": "b c"})
        (url,) = store._conn.execute("SELECT url FROM responses").fetchone()
        assert seen == [url]

    def test_api_key_is_not_part_of_key(self, store) -> None:
        with _fetcher(store, lambda r: _json("{}"), api_key="secret") as f:
            key = f.request_key("/v1/mods/1")
        assert "secret" not in key

    def test_second_call_is_served_from_cache(self, store) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return _json('{"data": {"id": 1}}')

        with _fetcher(store, handler) as f:
            assert f.get_json("/v1/mods/1") == {"data": {"id": 1}}
            assert f.get_json("/v1/mods/1") == {"data": {"id": 1}}
        assert calls == 1

    def test_stale_entry_is_refetched(self, store, clock) -> None:
        bodies = iter(['{"v": 1}', '{"v": 2}'])
        with _fetcher(store, lambda r: _json(next(bodies))) as f:
            assert f.get_json("/x", ttl=60) == {"v": 1}
            clock.advance(61)
            assert f.get_json("/x", ttl=60) == {"v": 2}


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


class TestHeaders:
    def test_api_requests_carry_key(self, store) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json("{}")

        with _fetcher(store, handler) as f:
            f.get_text("/v1/mods/1")
        assert seen[0].headers[API_KEY_HEADER] == "test-key"
        assert seen[0].headers["accept"] == "application/json"

    def test_no_key_header_without_key(self, store) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json("{}")

        with _fetcher(store, handler, api_key=None) as f:
            f.get_text("/v1/mods/1")
        assert API_KEY_HEADER not in seen[0].headers

    def test_cdn_requests_do_not_carry_key(self, store) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"jar")

        with _fetcher(store, handler) as f:
            f.get_derived("https://media.forgecdn.net/files/1/2/a.jar", lambda b: b.decode())
        assert API_KEY_HEADER not in seen[0].headers


# ---------------------------------------------------------------------------
# Derived downloads
# ---------------------------------------------------------------------------


class TestDerived:
    def test_derive_receives_bytes(self, store) -> None:
        with _fetcher(store, lambda r: httpx.Response(200, content=b"\x00\x01")) as f:
            result = f.get_derived("https://media.forgecdn.net/files/1/2/a.jar", lambda b: str(len(b)))
        assert result == "2"

    def test_plus_is_sent_encoded(self, store) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"jar")

        with _fetcher(store, handler) as f:
            f.get_derived("https://edge.forgecdn.net/files/1/2/Mod+1.jar", lambda b: "x")
        assert seen[0].url.host == "media.forgecdn.net"
        assert seen[0].url.raw_path == b"/files/1/2/Mod%2B1.jar"

    def test_url_variants_share_one_entry(self, store) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, content=b"jar")

        with _fetcher(store, handler) as f:
            a = f.get_derived("https://edge.forgecdn.net/files/1/2/My Mod.jar", lambda b: "h")
            b = f.get_derived("https://media.forgecdn.net/files/1/2/My%20Mod.jar", lambda b: "h")
        assert a == b == "h"
        assert calls == 1

    def test_derived_uses_infinite_ttl(self, store, clock) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, content=b"jar")

        with _fetcher(store, handler) as f:
            f.get_derived("https://media.forgecdn.net/files/1/2/a.jar", lambda b: "h")
            clock.advance(300 * 24 * 3600)
            f.get_derived("https://media.forgecdn.net/files/1/2/a.jar", lambda b: "h")
        assert calls == 1


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.parametrize(
        "status,exc_type",
        [
            (401, AuthError),
            (403, AuthError),
            (404, NotFoundError),
            (500, ServerError),
            (503, ServerError),
            (429, ServerError),
        ],
    )
    def test_status_mapping(self, store, status, exc_type) -> None:
        with _fetcher(store, lambda r: _json('{"error": "x"}', status)) as f:
            with pytest.raises(exc_type, match=f"HTTP {status}"):
                f.get_text("/v1/mods/1")

    def test_xml_content_type_checked_before_status(self, store) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404, headers={"content-type": "application/xml"}, content=b"<Error/>"
            )

        with _fetcher(store, handler) as f:
            with pytest.raises(UnexpectedContentTypeError, match="computed incorrectly"):
                f.get_derived("https://media.forgecdn.net/files/1/2/a.jar", lambda b: "h")

    def test_transport_error_maps_to_connection_error(self, store) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        with _fetcher(store, handler) as f:
            with pytest.raises(ConnectionError_, match="refused"):
                f.get_text("/v1/mods/1")

    def test_errors_are_not_cached(self, store) -> None:
        responses = iter([_json("{}", 500), _json('{"ok": true}')])
        with _fetcher(store, lambda r: next(responses)) as f:
            with pytest.raises(ServerError):
                f.get_json("/v1/mods/1")
            assert f.get_json("/v1/mods/1") == {"ok": True}

    def test_invalid_json_raises_data_error(self, store) -> None:
        with _fetcher(store, lambda r: _json("not json")) as f:
            with pytest.raises(DataError):
                f.get_json("/v1/mods/1")
        assert store.stats()["entries"] == 0

    def test_invalid_json_is_refetched(self, store, clock) -> None:
        responses = iter([_json("{truncated"), _json('{"ok": true}')])
        with _fetcher(store, lambda r: next(responses)) as f:
            with pytest.raises(DataError):
                f.get_text("/v1/mods/1")
            assert f.get_json("/v1/mods/1") == {"ok": True}

    def test_html_page_on_api_is_rejected_and_not_cached(self, store, clock) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(
                    200,
                    headers={"content-type": "text/html; charset=utf-8"},
                    content=b"<html>maintenance</html>",
                )
            return _json('{"data": {"id": 1}}')

        with _fetcher(store, handler) as f:
            with pytest.raises(UnexpectedContentTypeError, match="Expected JSON"):
                f.get_json("/v1/mods/1")
            assert store.stats()["entries"] == 0
            clock.advance(3600)
            assert f.get_json("/v1/mods/1") == {"data": {"id": 1}}
        assert calls == 2

    def test_missing_content_type_on_api_is_rejected(self, store) -> None:
        with _fetcher(store, lambda r: httpx.Response(200, content=b"{}")) as f:
            with pytest.raises(UnexpectedContentTypeError, match="no content type"):
                f.get_text("/v1/mods/1")

    def test_html_page_on_cdn_is_not_hashed(self, store) -> None:
        derived: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"content-type": "text/html"}, content=b"<html>login</html>"
            )

        with _fetcher(store, handler) as f:
            with pytest.raises(UnexpectedContentTypeError, match="Expected binary"):
                f.get_derived("https://media.forgecdn.net/files/1/2/a.jar", derived.append)
        assert derived == []
        assert store.stats()["entries"] == 0

    def test_error_status_with_html_body_keeps_status_mapping(self, store) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                503, headers={"content-type": "text/html"}, content=b"<html>down</html>"
            )

        with _fetcher(store, handler) as f:
            with pytest.raises(ServerError, match="HTTP 503"):
                f.get_json("/v1/mods/1")

    def test_no_retry(self, store) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return _json("{}", 503)

        with _fetcher(store, handler) as f:
            with pytest.raises(ServerError):
                f.get_text("/v1/mods/1")
        assert calls == 1


# ---------------------------------------------------------------------------
# Network gate
# ---------------------------------------------------------------------------


class TestRateGate:
    def test_one_origin_request_at_a_time(self, store) -> None:
        in_flight = 0
        peak = 0
        guard = threading.Lock()

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            with guard:
                in_flight += 1
                peak = max(peak, in_flight)
            time.sleep(0.01)
            with guard:
                in_flight -= 1
            return _json("{}")

        with _fetcher(store, handler) as f:
            threads = [
                threading.Thread(target=f.get_text, args=(f"/v1/mods/{i}",))
                for i in range(6)
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
        assert peak == 1
        assert store.stats()["entries"] == 6
