"""
Async HTTP client base.

Shared by the outbound integrations (GitHub contents API for publishing,
IndexNow for search-engine pings). Each subclass names its ``service`` and
may narrow the retry policy: which statuses are transient, how many times
to retry, and how a rate limit is signalled.

Errors map onto:
    AuthenticationError    401/403 (bad token or IndexNow key)
    ResourceNotFoundError  404 (GitHub file not yet created)
    RateLimitError         rate limit still in force after the last retry
    HTTPError              anything else non-2xx, or the network giving out
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

import aiohttp

from torquepress.errors import TorquepressError

logger = logging.getLogger("torquepress.http")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds
MAX_RETRY_DELAY = 60.0  # seconds
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
USER_AGENT = "Torquepress/1.0"

Response = Tuple[int, Any, Dict[str, str]]


class HTTPError(TorquepressError):
    """Non-2xx response, or network failure after the last retry."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class AuthenticationError(HTTPError):
    """The service rejected our credentials (401/403)."""


class ResourceNotFoundError(HTTPError):
    """The service has nothing at the requested URL (404)."""


class RateLimitError(HTTPError):
    """Still rate limited once retries ran out."""


def header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive lookup in a plain header dict."""
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _error_detail(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class AsyncHTTPClient:
    """Lazy aiohttp session plus ``_request`` with per-service retry."""

    service = "HTTP"
    max_retries = MAX_RETRIES
    retry_statuses: FrozenSet[int] = RETRY_STATUS_CODES

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def default_headers(self) -> Dict[str, str]:
        return {"User-Agent": USER_AGENT, "Accept": "application/json"}

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.default_headers(),
                connector=aiohttp.TCPConnector(limit=10, ttl_dns_cache=300),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -- Retry policy -------------------------------------------------------

    def is_rate_limited(self, status: int, headers: Mapping[str, str]) -> bool:
        return status == 429

    def retry_delay(self, attempt: int, headers: Mapping[str, str]) -> float:
        """Exponential backoff, stretched to ``Retry-After`` when the service asks."""
        delay = RETRY_BASE_DELAY * (2 ** attempt)
        retry_after = header_value(headers, "Retry-After")
        if retry_after:
            try:
                delay = max(delay, float(retry_after))
            except ValueError:
                logger.debug("%s sent a non-numeric Retry-After: %r", self.service, retry_after)
        return min(delay, MAX_RETRY_DELAY)

    def _is_transient(self, status: int, headers: Mapping[str, str]) -> bool:
        return status in self.retry_statuses or (
            429 in self.retry_statuses and self.is_rate_limited(status, headers)
        )

    # -- Requests -----------------------------------------------------------

    async def _send(self, method: str, url: str, **kwargs: Any) -> Response:
        session = await self._get_session()
        async with session.request(method, url, **kwargs) as resp:
            try:
                body = await resp.json(content_type=None)
            except (json.JSONDecodeError, ValueError):
                body = await resp.text()
            return resp.status, body, dict(resp.headers)

    def _raise_for_status(self, method: str, url: str, response: Response) -> None:
        status, body, headers = response
        if status < 400:
            return
        detail = _error_detail(body)
        if self.is_rate_limited(status, headers):
            raise RateLimitError(
                f"{self.service} is rate limiting requests ({method} {url}): {detail}",
                status_code=status, response_body=str(body),
            )
        if status in (401, 403):
            raise AuthenticationError(
                f"{self.service} rejected the credentials for {method} {url}: HTTP {status} {detail}",
                status_code=status, response_body=str(body),
            )
        if status == 404:
            raise ResourceNotFoundError(
                f"{self.service} has nothing at {url}", status_code=404, response_body=str(body),
            )
        raise HTTPError(
            f"{self.service} {method} {url} failed with HTTP {status}: {detail}",
            status_code=status, response_body=str(body),
        )

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Response:
        """
        Send one request, retrying transient statuses and network failures.

        Returns
        -------
        tuple of (status_code, response_json_or_text, response_headers)
        """
        method = method.upper()
        kwargs: Dict[str, Any] = {}
        if json_data is not None:
            kwargs["json"] = json_data
        if headers is not None:
            kwargs["headers"] = headers
        if params is not None:
            kwargs["params"] = {k: v for k, v in params.items() if v is not None}

        attempt = 0
        while True:
            logger.debug("%s %s %s (attempt %d/%d)", self.service, method, url, attempt + 1, self.max_retries + 1)
            try:
                response = await self._send(method, url, **kwargs)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt >= self.max_retries:
                    raise HTTPError(
                        f"Network error talking to {self.service} after {self.max_retries} retries "
                        f"({method} {url}): {exc}"
                    ) from exc
                delay = self.retry_delay(attempt, {})
                logger.warning(
                    "%s unreachable (%s), retrying %s in %.1fs: %s",
                    self.service, type(exc).__name__, url, delay, exc,
                )
            else:
                status, _, resp_headers = response
                if not (self._is_transient(status, resp_headers) and attempt < self.max_retries):
                    self._raise_for_status(method, url, response)
                    return response
                delay = self.retry_delay(attempt, resp_headers)
                logger.warning("%s answered HTTP %d for %s, retrying in %.1fs", self.service, status, url, delay)

            await asyncio.sleep(delay)
            attempt += 1
