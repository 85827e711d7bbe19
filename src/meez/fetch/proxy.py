"""ScraperAPI rendering proxy client."""

import logging

import httpx

logger = logging.getLogger(__name__)

SCRAPERAPI_ENDPOINT = "https://api.scraperapi.com/"


class ScraperApiClient:
    """Fetches a page through ScraperAPI and returns the rendered HTML."""

    def __init__(self, http_client: httpx.AsyncClient, *, render_js: bool = False):
        self._http = http_client
        self._render_js = render_js

    async def fetch(self, url: str, *, credential: str, timeout: float) -> str:
        params = {"api_key": credential, "url": url}
        if self._render_js:
            params["render"] = "true"

        logger.debug(f"Requesting {url} via ScraperAPI")
        response = await self._http.get(SCRAPERAPI_ENDPOINT, params=params, timeout=timeout)
        if not response.is_success:
            # The request URL carries the credential; keep it out of the message.
            raise httpx.HTTPStatusError(
                f"ScraperAPI returned HTTP {response.status_code}",
                request=response.request,
                response=response,
            )
        return response.text
