from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlparse

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pickem.config.settings import AppSettings

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

REQUEST_HEADERS = {
    # ESPN behaves differently for non-browser UAs
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "application/json, text/csv, text/plain, */*",
    "Cache-Control": "no-store",
}


class FeedError(Exception):
    """Raised when a feed cannot be fetched or decoded."""

    pass


def is_remote(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def local_path(location: str) -> Path:
    """Filesystem path for a file:// URL or a plain path."""
    parsed = urlparse(location)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(location)


class FeedClient:
    """Fetches feeds over HTTP (or from disk) for a single ingestion run."""

    def __init__(
        self, settings: AppSettings, client: Optional[httpx.AsyncClient] = None
    ):
        self.settings = settings
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds),
            follow_redirects=True,
            headers=REQUEST_HEADERS,
        )

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _make_request(
        self, url: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """GETs a URL, retrying network errors and retryable statuses up to the configured attempts."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.feed_fetch_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.RequestError, httpx.HTTPStatusError)),
            reraise=True,  # Reraise the exception after max attempts
        )
        logger.debug(f"Fetching {url} params={params}")
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self.client.get(url, params=params)
                    if response.status_code in RETRYABLE_STATUS_CODES:
                        logger.warning(
                            f"Feed {url} answered {response.status_code} "
                            f"(attempt {attempt.retry_state.attempt_number})"
                        )
                        response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedError(f"fetch failed {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error fetching {url}: {e}")
            raise FeedError(f"fetch failed: {e}") from e

        if not response.is_success:
            logger.error(f"Feed {url} answered {response.status_code}")
            raise FeedError(f"fetch failed {response.status_code}")
        logger.debug(f"Request successful: {response.status_code} for {url}")
        return response

    async def fetch_text(self, location: str) -> str:
        """Returns the body of an http(s) URL, or the contents of a local file."""
        if is_remote(location):
            response = await self._make_request(location)
            return response.text

        path = local_path(location)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FeedError(f"cannot read feed file {path}: {e}") from e

    async def fetch_json(
        self, url: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        response = await self._make_request(url, params=params)
        try:
            return response.json()
        except ValueError as e:
            logger.debug(f"Raw response content: {response.text[:300]}")
            raise FeedError(f"invalid JSON from {url}") from e

    async def close(self) -> None:
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.debug("Closed feed HTTP client")
