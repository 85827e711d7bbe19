"""
Meez - Fetcher.

Retrieves raw HTML for a recipe URL:
1. Direct GET with a realistic browser header set
2. On any failure (non-2xx, timeout, network error, empty body), and only
   when a fallback client and credential are configured, one retry via
   the rendering proxy

No retries beyond the single fallback attempt. Errors are returned as
typed FetchError values, never raised.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx

from meez.errors import FetchError, FetchErrorKind
from meez.models import FetchMethod, FetchResult

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://www.google.com/",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "cross-site",
    "Sec-Fetch-User": "?1",
    "DNT": "1",
}


class FallbackClient(Protocol):
    """Third-party rendering/proxy service.

    Returns either the HTML as a string or an object/mapping carrying it
    in a ``body`` field. Anything else is treated as a bad response.
    """

    async def fetch(self, url: str, *, credential: str, timeout: float) -> Any: ...


def validate_url(url: str) -> str | None:
    """
    Validate URL format.

    Returns error message if invalid, None if valid.
    """
    if not url or not url.strip():
        return "URL is required"

    url = url.strip()

    if not re.match(r"^https?://", url, re.IGNORECASE):
        return "URL must start with http:// or https://"

    try:
        parsed = urlparse(url)
        parsed.port
    except ValueError:
        return "Invalid URL format"

    if not parsed.netloc or not parsed.hostname:
        return "Invalid URL format"

    return None


class Fetcher:
    """Direct fetch with a single optional fallback through a proxy."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        fallback_client: FallbackClient | None = None,
        fallback_credential: str | None = None,
        timeout: float = 15.0,
        fallback_timeout: float = 60.0,
    ):
        self._http = http_client
        self._fallback_client = fallback_client
        self._fallback_credential = fallback_credential
        self._timeout = timeout
        self._fallback_timeout = fallback_timeout

    @property
    def fallback_enabled(self) -> bool:
        return self._fallback_client is not None and bool(self._fallback_credential)

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a page.

        If the fallback is not configured, the direct error is returned
        unchanged. If both strategies fail, the error message carries both
        reasons, e.g. "direct failed: 403; fallback failed: timeout".
        """
        validation_error = validate_url(url)
        if validation_error:
            return FetchResult(
                html_content="",
                method_used=FetchMethod.DIRECT,
                error=FetchError(FetchErrorKind.INVALID_URL, validation_error, detail=url),
            )

        url = url.strip()
        html, final_url, direct_error = await self._fetch_direct(url)
        if direct_error is None:
            return FetchResult(html_content=html, method_used=FetchMethod.DIRECT, final_url=final_url)

        logger.info(
            f"Direct fetch failed for {url}: {direct_error.message} ({direct_error.detail})"
        )

        if not self.fallback_enabled:
            return FetchResult(html_content="", method_used=FetchMethod.DIRECT, error=direct_error)

        html, fallback_error = await self._fetch_fallback(url)
        if fallback_error is None:
            logger.info(f"Fallback proxy fetch succeeded for {url}")
            return FetchResult(
                html_content=html,
                method_used=FetchMethod.FALLBACK_PROXY,
                final_url=url,
            )

        logger.warning(
            f"Fallback proxy fetch failed for {url}: {fallback_error.message} ({fallback_error.detail})"
        )
        return FetchResult(
            html_content="",
            method_used=FetchMethod.FALLBACK_PROXY,
            error=FetchError(
                FetchErrorKind.FALLBACK_FAILED,
                f"direct failed: {direct_error.message}; fallback failed: {fallback_error.message}",
                detail=f"direct: {direct_error.detail}; fallback: {fallback_error.detail}",
                status_code=direct_error.status_code,
            ),
        )

    async def _fetch_direct(self, url: str) -> tuple[str, str | None, FetchError | None]:
        try:
            response = await self._http.get(
                url,
                headers=BROWSER_HEADERS,
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            return "", None, FetchError(FetchErrorKind.TIMEOUT, "timeout", detail=repr(e))
        except httpx.InvalidURL as e:
            return "", None, FetchError(FetchErrorKind.INVALID_URL, "Invalid URL format", detail=repr(e))
        except httpx.HTTPError as e:
            return "", None, FetchError(FetchErrorKind.NETWORK, "network error", detail=repr(e))

        if not response.is_success:
            return "", None, FetchError(
                FetchErrorKind.HTTP_STATUS,
                str(response.status_code),
                detail=f"HTTP {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        html = response.text
        if not html or not html.strip():
            return "", None, FetchError(FetchErrorKind.EMPTY_BODY, "empty body")

        return html, str(response.url), None

    async def _fetch_fallback(self, url: str) -> tuple[str, FetchError | None]:
        try:
            payload = await self._fallback_client.fetch(
                url,
                credential=self._fallback_credential,
                timeout=self._fallback_timeout,
            )
        except (httpx.TimeoutException, TimeoutError) as e:
            return "", FetchError(FetchErrorKind.TIMEOUT, "timeout", detail=repr(e))
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            return "", FetchError(
                FetchErrorKind.HTTP_STATUS, str(status), detail=repr(e), status_code=status
            )
        except httpx.HTTPError as e:
            return "", FetchError(FetchErrorKind.NETWORK, "network error", detail=repr(e))
        except Exception as e:
            # Third-party proxy SDKs raise their own error types.
            logger.debug(f"Fallback client raised {type(e).__name__}", exc_info=True)
            return "", FetchError(FetchErrorKind.NETWORK, "proxy error", detail=repr(e))

        html = _html_from_fallback(payload)
        if html is None:
            return "", FetchError(
                FetchErrorKind.FALLBACK_BAD_RESPONSE,
                "unexpected response",
                detail=f"fallback returned {type(payload).__name__}",
            )
        if not html.strip():
            return "", FetchError(FetchErrorKind.EMPTY_BODY, "empty body")

        return html, None


def _html_from_fallback(payload: Any) -> str | None:
    """Accept a raw string, or a mapping/object with a string ``body``."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    if isinstance(payload, Mapping):
        body = payload.get("body")
    else:
        body = getattr(payload, "body", None)
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body if isinstance(body, str) else None
