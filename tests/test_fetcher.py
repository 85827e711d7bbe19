"""Tests for the fetcher and the ScraperAPI fallback client."""

import asyncio

import httpx
import pytest

from conftest import FakeFallbackClient, html_response, mock_http_client
from meez.errors import FetchErrorKind
from meez.fetch import BROWSER_HEADERS, Fetcher, ScraperApiClient, validate_url
from meez.fetch.proxy import SCRAPERAPI_ENDPOINT
from meez.models import FetchMethod

PAGE = "<html><body><h1>Soup</h1></body></html>"


def _raise(exc):
    def handler(request):
        raise exc
    return handler


class TestValidateUrl:
    """Tests for URL validation."""

    def test_valid_urls(self):
        assert validate_url("https://example.com/recipe") is None
        assert validate_url("http://www.allrecipes.com/recipe/123") is None

    def test_missing_url(self):
        assert validate_url("") is not None
        assert validate_url("   ") is not None

    def test_missing_protocol(self):
        assert validate_url("example.com/recipe") is not None
        assert validate_url("ftp://example.com") is not None

    def test_missing_host(self):
        assert validate_url("https://") is not None

    def test_port_out_of_range(self):
        assert validate_url("https://example.com:99999/recipe") == "Invalid URL format"


class TestDirectFetch:
    """Direct retrieval without a fallback configured."""

    def test_success(self):
        fetcher = Fetcher(mock_http_client(html_response(200, PAGE)))
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))

        assert result.ok
        assert result.html_content == PAGE
        assert result.method_used is FetchMethod.DIRECT
        assert result.final_url == "https://example.com/soup"

    def test_sends_browser_headers(self):
        seen = {}

        def handler(request):
            seen["user-agent"] = request.headers["user-agent"]
            seen["referer"] = request.headers["referer"]
            return httpx.Response(200, text=PAGE)

        asyncio.run(Fetcher(mock_http_client(handler)).fetch("https://example.com/soup"))
        assert seen["user-agent"] == BROWSER_HEADERS["User-Agent"]
        assert seen["referer"] == BROWSER_HEADERS["Referer"]

    def test_http_status_returned_unchanged_without_fallback(self):
        fetcher = Fetcher(mock_http_client(html_response(403, "Forbidden")))
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))

        assert not result.ok
        assert result.error.kind is FetchErrorKind.HTTP_STATUS
        assert result.error.message == "403"
        assert result.error.status_code == 403
        assert result.method_used is FetchMethod.DIRECT

    def test_timeout(self):
        fetcher = Fetcher(mock_http_client(_raise(httpx.ReadTimeout("slow"))))
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))
        assert result.error.kind is FetchErrorKind.TIMEOUT
        assert result.error.message == "timeout"

    def test_network_error(self):
        fetcher = Fetcher(mock_http_client(_raise(httpx.ConnectError("refused"))))
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))
        assert result.error.kind is FetchErrorKind.NETWORK

    def test_invalid_url_from_transport(self):
        fetcher = Fetcher(mock_http_client(_raise(httpx.InvalidURL("bad host"))))
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))
        assert result.error.kind is FetchErrorKind.INVALID_URL

    def test_empty_body(self):
        fetcher = Fetcher(mock_http_client(html_response(200, "   ")))
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))
        assert result.error.kind is FetchErrorKind.EMPTY_BODY

    def test_invalid_url_never_requested(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text=PAGE)

        fallback = FakeFallbackClient(payload=PAGE)
        fetcher = Fetcher(mock_http_client(handler), fallback_client=fallback, fallback_credential="key")
        result = asyncio.run(fetcher.fetch("not a url"))

        assert result.error.kind is FetchErrorKind.INVALID_URL
        assert calls == []
        assert fallback.calls == []

    def test_credential_without_client_means_no_fallback(self):
        fetcher = Fetcher(mock_http_client(html_response(500)), fallback_credential="key")
        assert not fetcher.fallback_enabled
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))
        assert result.error.kind is FetchErrorKind.HTTP_STATUS


class TestFallbackFetch:
    """Fallback through the rendering proxy."""

    def _fetcher(self, status: int, fallback: FakeFallbackClient) -> Fetcher:
        return Fetcher(
            mock_http_client(html_response(status, "blocked")),
            fallback_client=fallback,
            fallback_credential="proxy-key",
        )

    def test_fallback_string_payload(self):
        fallback = FakeFallbackClient(payload=PAGE)
        result = asyncio.run(self._fetcher(403, fallback).fetch("https://example.com/soup"))

        assert result.ok
        assert result.html_content == PAGE
        assert result.method_used is FetchMethod.FALLBACK_PROXY
        assert fallback.calls == ["https://example.com/soup"]

    def test_fallback_body_mapping(self):
        fallback = FakeFallbackClient(payload={"body": PAGE, "status": 200})
        result = asyncio.run(self._fetcher(403, fallback).fetch("https://example.com/soup"))
        assert result.html_content == PAGE

    def test_fallback_body_attribute(self):
        class Response:
            body = PAGE.encode()

        fallback = FakeFallbackClient(payload=Response())
        result = asyncio.run(self._fetcher(503, fallback).fetch("https://example.com/soup"))
        assert result.html_content == PAGE

    def test_fallback_bad_shape_is_failure(self):
        fallback = FakeFallbackClient(payload={"html": PAGE})
        result = asyncio.run(self._fetcher(403, fallback).fetch("https://example.com/soup"))

        assert not result.ok
        assert result.error.kind is FetchErrorKind.FALLBACK_FAILED
        assert result.error.message == "direct failed: 403; fallback failed: unexpected response"

    def test_both_fail_message_has_both_reasons(self):
        fallback = FakeFallbackClient(error=httpx.ReadTimeout("proxy slow"))
        result = asyncio.run(self._fetcher(403, fallback).fetch("https://example.com/soup"))

        assert result.error.kind is FetchErrorKind.FALLBACK_FAILED
        assert result.error.message == "direct failed: 403; fallback failed: timeout"
        assert result.error.status_code == 403
        assert result.method_used is FetchMethod.FALLBACK_PROXY

    def test_sdk_error_is_sanitized(self):
        fallback = FakeFallbackClient(error=RuntimeError("secret payload from proxy"))
        result = asyncio.run(self._fetcher(403, fallback).fetch("https://example.com/soup"))

        assert "secret payload" not in result.error.message
        assert "secret payload" in result.error.detail

    def test_direct_success_skips_fallback(self):
        fallback = FakeFallbackClient(payload="other")
        result = asyncio.run(self._fetcher(200, fallback).fetch("https://example.com/soup"))
        assert result.method_used is FetchMethod.DIRECT
        assert fallback.calls == []


class TestScraperApiClient:
    def test_passes_key_and_url(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, text=PAGE)

        client = ScraperApiClient(mock_http_client(handler))
        html = asyncio.run(client.fetch("https://example.com/soup", credential="k123", timeout=5))

        assert html == PAGE
        assert str(seen["url"]).startswith(SCRAPERAPI_ENDPOINT)
        assert seen["url"].params["api_key"] == "k123"
        assert seen["url"].params["url"] == "https://example.com/soup"

    def test_error_message_hides_credential(self):
        client = ScraperApiClient(mock_http_client(html_response(500, "oops")))
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            asyncio.run(client.fetch("https://example.com/soup", credential="k123", timeout=5))
        assert "k123" not in str(exc_info.value)

    def test_as_fetcher_fallback(self):
        def handler(request):
            if request.url.host == "api.scraperapi.com":
                return httpx.Response(200, text=PAGE)
            return httpx.Response(403, text="blocked")

        http = mock_http_client(handler)
        fetcher = Fetcher(http, fallback_client=ScraperApiClient(http), fallback_credential="k123")
        result = asyncio.run(fetcher.fetch("https://example.com/soup"))

        assert result.ok
        assert result.method_used is FetchMethod.FALLBACK_PROXY
