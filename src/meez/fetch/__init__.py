"""Page retrieval: direct fetch with an optional rendering-proxy fallback."""

from .fetcher import BROWSER_HEADERS, FallbackClient, Fetcher, validate_url
from .proxy import ScraperApiClient

__all__ = [
    "BROWSER_HEADERS",
    "FallbackClient",
    "Fetcher",
    "ScraperApiClient",
    "validate_url",
]
