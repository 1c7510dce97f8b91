"""
Resilient fetcher for FotMob JSON endpoints and HTML pages.

Retry policy: FETCH_MAX_RETRIES retries (3 attempts total by default)
with linear backoff `base + attempt * step`. A non-2xx status or an
empty body on the final attempt is a terminal FetchError carrying the
status and a body snippet. A 2xx body that decodes to an empty object
is returned as-is: "not found" is the caller's call, not a fetch failure.

Anti-scraping: API paths get an x-fm-req header (MD5+Base64 signature).
"""

import asyncio
import base64
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

import httpx

from matchfacts.config import Settings, get_settings
from matchfacts.etl.exceptions import FetchError, ParseError
from matchfacts.telemetry import record_fetch, record_fetch_retry

logger = logging.getLogger(__name__)

# HTTP headers (browser-like)
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                  "AppleWebKit/537.36 (KHTML, like Gecko) "
                  "Chrome/123.0.0.0 Safari/537.36",
    "Accept": "*/*",
    "Accept-Language": "en-GB,en;q=0.9",
    "Referer": "https://www.fotmob.com/",
}

SNIPPET_LENGTH = 200


@dataclass
class FetchedPage:
    """Text body plus the URL reached after redirects."""

    url: str
    final_url: str
    status: int
    text: str


def _endpoint_label(url: str) -> str:
    """Low-cardinality endpoint label for metrics."""
    path = urlparse(url).path
    if path.startswith("/api/"):
        return path[len("/api/"):].split("/")[0] or "api"
    return "page"


def compute_xfm_req(path: str) -> str:
    """
    Compute x-fm-req header value for a given API path.

    1. Take the API path (e.g., "/api/matchDetails?matchId=4336691")
    2. Concatenate with known salt
    3. MD5 hash -> Base64 encode
    """
    # Salt from FotMob's JS bundle (public, rotated infrequently)
    salt = "d41d8cd98f00b204e9800998ecf8427e"
    md5_hash = hashlib.md5((path + salt).encode()).digest()
    return base64.b64encode(md5_hash).decode()


class ResilientFetcher:
    """
    GET with bounded retries. Holds a single httpx.AsyncClient; no other
    state survives between calls.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self.max_retries = self._settings.FETCH_MAX_RETRIES
        self.backoff_base = self._settings.FETCH_BACKOFF_BASE_SECONDS
        self.backoff_step = self._settings.FETCH_BACKOFF_STEP_SECONDS

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs: dict[str, Any] = {
                "timeout": self._settings.FETCH_TIMEOUT_SECONDS,
                "headers": DEFAULT_HEADERS,
                "follow_redirects": True,
            }
            if self._settings.PROXY_URL:
                kwargs["proxy"] = self._settings.PROXY_URL
                logger.info("[FETCH] Client created with proxy")
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt + 1` (attempt is 0-based)."""
        return self.backoff_base + attempt * self.backoff_step

    @staticmethod
    def _request_headers(url: str) -> dict[str, str]:
        parsed = urlparse(url)
        if not parsed.path.startswith("/api/"):
            return {}
        path_with_query = parsed.path
        if parsed.query:
            path_with_query += "?" + parsed.query
        return {"x-fm-req": compute_xfm_req(path_with_query)}

    async def _get(self, url: str, accept: str) -> FetchedPage:
        """Issue the GET with retries and return the raw page."""
        endpoint = _endpoint_label(url)
        client = self._get_client()
        headers = {"Accept": accept, **self._request_headers(url)}
        attempts = self.max_retries + 1
        last_error: Optional[FetchError] = None

        for attempt in range(attempts):
            started = time.monotonic()
            try:
                response = await client.get(url, headers=headers)
            except httpx.TimeoutException:
                record_fetch(endpoint, 0, (time.monotonic() - started) * 1000)
                last_error = FetchError(url, reason="timeout")
                logger.warning("[FETCH] Timeout for %s, attempt %d/%d", url, attempt + 1, attempts)
            except httpx.RequestError as e:
                record_fetch(endpoint, 0, (time.monotonic() - started) * 1000)
                last_error = FetchError(url, reason=f"request error: {str(e)[:100]}")
                logger.warning("[FETCH] Request error for %s: %s, attempt %d/%d",
                               url, e, attempt + 1, attempts)
            else:
                record_fetch(endpoint, response.status_code, (time.monotonic() - started) * 1000)
                body = response.text
                if not response.is_success:
                    last_error = FetchError(url, status=response.status_code,
                                            snippet=(body or "")[:SNIPPET_LENGTH])
                    logger.warning("[FETCH] HTTP %d for %s, attempt %d/%d",
                                   response.status_code, url, attempt + 1, attempts)
                elif not body or not body.strip():
                    last_error = FetchError(url, status=response.status_code, reason="empty body")
                    logger.warning("[FETCH] Empty body for %s, attempt %d/%d", url, attempt + 1, attempts)
                else:
                    return FetchedPage(
                        url=url,
                        final_url=str(response.url),
                        status=response.status_code,
                        text=body,
                    )

            if attempt < attempts - 1:
                record_fetch_retry(endpoint)
                await self._sleep(self.backoff_delay(attempt))

        logger.error("[FETCH] Failed to fetch %s after %d attempts: %s", url, attempts, last_error)
        raise last_error

    async def fetch_text(self, url: str) -> FetchedPage:
        """Fetch an HTML/text page. Raises FetchError."""
        return await self._get(url, accept="text/html,application/xhtml+xml,*/*;q=0.8")

    async def fetch_json(self, url: str) -> Any:
        """
        Fetch and decode a JSON document.

        Raises FetchError on transport/HTTP failure, ParseError when the
        body is not JSON (not retried: the provider answered).
        """
        page = await self._get(url, accept="application/json")
        try:
            return json.loads(page.text)
        except ValueError as e:
            logger.error("[FETCH] JSON parse error for %s: %s", url, e)
            raise ParseError("structured", f"json parse failed: {str(e)[:100]}") from e

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
        logger.debug("[FETCH] Fetcher closed")
