"""
Async Graph API client with pagination, throttling and read-only enforcement.
Requests are issued one at a time; the probe never runs them concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from ..config import (
    GRAPH_BASE_URL,
    GRAPH_API_VERSION,
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    BACKOFF_MULTIPLIER,
    DEFAULT_PAGE_SIZE,
    MAX_PAGES_PER_ENDPOINT,
    GraphSettings,
)
from ..errors import AuthenticationFailure, UpstreamError, UpstreamUnavailable
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_license_probe.graph")

THROTTLE_STATUSES = (429, 503, 504)


class GraphAPIError(UpstreamError):
    """Raised when Graph API returns a non-recoverable error."""
    label = "Graph API error"

    def __init__(self, status_code: int, message: str, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"{status_code} for {url}: {message}")


class GraphClient:
    """
    Async Microsoft Graph API client.
    Features:
      - Safety-validated requests (read-only enforcement)
      - Automatic pagination with @odata.nextLink
      - Bounded backoff on 429/503/504, honouring Retry-After
      - Transport failures surfaced as UpstreamUnavailable
    """

    def __init__(
        self,
        access_token: str,
        guardian: SafetyGuardian,
        settings: Optional[GraphSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.guardian = guardian
        self.settings = settings or GraphSettings()
        self._transport = transport
        self._request_count = 0
        self._throttle_count = 0
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        timeout = self.settings.timeout_seconds
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 15.0)),
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Accept": "application/json",
                "ConsistencyLevel": "eventual",  # Required for $count and /any() filters
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_url(self, endpoint: str) -> str:
        """Build full Graph URL from relative endpoint."""
        if endpoint.startswith("http"):
            return endpoint
        endpoint = endpoint.lstrip("/")
        return f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/{endpoint}"

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Execute a single GET request with throttle handling."""
        url = self._build_url(endpoint)
        self.guardian.validate_request("GET", url)
        return await self._execute_with_retry(url, params=params)

    async def get_all_pages(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        top: Optional[int] = None,
        max_items: Optional[int] = None,
    ) -> list[dict]:
        """
        Fetch all pages of a paginated endpoint into a list.
        ``max_items`` stops early once that many items were read.
        """
        items = []
        stream = self.get_all_pages_stream(endpoint, params, top)
        try:
            async for item in stream:
                items.append(item)
                if max_items is not None and len(items) >= max_items:
                    break
        finally:
            await stream.aclose()
        return items

    async def get_all_pages_stream(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        top: Optional[int] = None,
    ) -> AsyncGenerator[dict, None]:
        """Yield the items of a paginated endpoint one at a time."""
        params = dict(params or {})
        if top is not None and "$top" not in params:
            params["$top"] = str(min(top, DEFAULT_PAGE_SIZE))

        url: Optional[str] = self._build_url(endpoint)
        query: Optional[dict] = params or None
        pages = 0

        while url and pages < MAX_PAGES_PER_ENDPOINT:
            self.guardian.validate_request("GET", url)
            data = await self._execute_with_retry(url, params=query)

            for item in data.get("value", []):
                yield item

            # nextLink carries all query parameters
            url = data.get("@odata.nextLink")
            query = None
            pages += 1

        if url:
            logger.warning(
                f"Pagination safety cap reached ({MAX_PAGES_PER_ENDPOINT} pages) "
                f"for endpoint: {endpoint}"
            )

    async def _execute_with_retry(self, url: str, params: Optional[dict] = None) -> dict:
        """Execute a GET, backing off on throttling responses."""
        backoff = INITIAL_BACKOFF_SECONDS
        max_retries = self.settings.max_retries

        for attempt in range(max_retries + 1):
            try:
                response = await self._execute_raw(url, params=params)
            except httpx.TimeoutException as e:
                raise UpstreamUnavailable(f"Timed out after {self.settings.timeout_seconds}s on {url}") from e
            except httpx.TransportError as e:
                raise UpstreamUnavailable(f"Connection error on {url}: {e}") from e
            except httpx.HTTPError as e:
                raise UpstreamError(f"HTTP error on {url}: {type(e).__name__}: {e}") from e
            self._request_count += 1

            if response.status_code == 200:
                if not response.content or not response.content.strip():
                    return {"value": []}
                try:
                    return response.json()
                except ValueError as e:
                    raise UpstreamError(f"Non-JSON response from {url}") from e

            if response.status_code == 204:
                return {}

            if response.status_code in THROTTLE_STATUSES and attempt < max_retries:
                self._throttle_count += 1
                wait_time = max(_retry_after(response, backoff), 0.0)
                logger.warning(
                    f"Throttled ({response.status_code}) on {url}. "
                    f"Retry {attempt + 1}/{max_retries} in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)
                backoff = min(backoff * BACKOFF_MULTIPLIER, MAX_BACKOFF_SECONDS)
                continue

            error_msg = _error_message(response)
            if response.status_code == 401:
                raise AuthenticationFailure(f"Graph rejected the access token: {error_msg}")
            if response.status_code in THROTTLE_STATUSES:
                raise UpstreamUnavailable(
                    f"Still throttled ({response.status_code}) after {max_retries} retries on {url}"
                )
            if response.status_code == 403:
                logger.warning(f"403 Forbidden: {url} — {error_msg}")
            raise GraphAPIError(response.status_code, error_msg, url)

        raise UpstreamUnavailable(f"No response from {url}")

    async def _execute_raw(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """Execute raw HTTP GET."""
        if not self._client:
            raise RuntimeError("GraphClient not initialized. Use 'async with' context.")
        return await self._client.get(url, params=params)

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {
            "total_requests": self._request_count,
            "throttle_events": self._throttle_count,
        }


def _retry_after(response: httpx.Response, default: float) -> float:
    try:
        return float(response.headers.get("Retry-After", default))
    except ValueError:
        return default


def _error_message(response: httpx.Response) -> str:
    try:
        body: Any = response.json() if response.content else {}
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.text[:200] or response.reason_phrase
