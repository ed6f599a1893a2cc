"""
Rate-limited HTTP client shared by the provider adapters.

Every request waits for the per-provider minimum interval, carries a fixed
timeout, replays once on HTTP 429 honouring ``Retry-After`` and maps every
other failure to a provider-scoped ``ProviderError``.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout
from dateutil import parser as date_parser

from ..models.progress import ErrorDetail
from ..utils.logging import get_logger
from ..utils.rate_limiter import MinIntervalLimiter

logger = get_logger("provider_client")

MAX_BACKOFF_SECONDS = 60.0
MIN_RETRY_AFTER_SECONDS = 1.0
USER_AGENT = "Price-Sentinel/1.0 (Price Monitor)"


class ProviderError(Exception):
    """Failure talking to an external price provider."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.status = status

    @property
    def is_throttled(self) -> bool:
        return self.status == 429

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(code=self.code, message=self.message, details=self.details or None)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


def compute_retry_delay(
    retry_after: Optional[str], retry_count: int = 0, now: Optional[datetime] = None
) -> float:
    """
    Seconds to wait before replaying a throttled request.

    Args:
        retry_after: Raw ``Retry-After`` header value (seconds or HTTP-date)
        retry_count: Number of replays already made
        now: Current time, for HTTP-date hints

    Returns:
        Delay in seconds
    """
    if retry_after:
        value = retry_after.strip()
        try:
            return max(float(value), 0.0)
        except ValueError:
            pass

        try:
            retry_at = date_parser.parse(value)
        except (ValueError, OverflowError):
            logger.warning(f"Unparseable Retry-After header: {value}")
        else:
            if retry_at.tzinfo is None:
                retry_at = retry_at.replace(tzinfo=timezone.utc)
            current = now or datetime.now(timezone.utc)
            if current.tzinfo is None:
                current = current.replace(tzinfo=timezone.utc)
            return max((retry_at - current).total_seconds(), MIN_RETRY_AFTER_SECONDS)

    return min(float(2**retry_count), MAX_BACKOFF_SECONDS)


class RateLimitedClient:
    """Async JSON client for a single provider."""

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        min_interval: float,
        timeout: int = 15,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize provider client.

        Args:
            provider_name: Prefix for error codes (e.g. "CATALOG")
            base_url: Provider base URL
            min_interval: Minimum seconds between requests
            timeout: Per-request timeout in seconds
            session: Optional pre-built aiohttp session
            sleep: Coroutine used for throttling waits
        """
        self.provider_name = provider_name.upper()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None
        self._sleep = sleep
        self.limiter = MinIntervalLimiter(min_interval, sleep=sleep)
        self.request_count = 0

    async def __aenter__(self):
        """Async context manager entry."""
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None

    def _build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _error(
        self, suffix: str, message: str, details: Optional[Dict[str, Any]] = None, status: Optional[int] = None
    ) -> ProviderError:
        return ProviderError(f"{self.provider_name}_{suffix}", message, details, status)

    async def _send(self, method: str, url: str, params, json_body):
        session = await self._get_session()
        self.request_count += 1

        try:
            async with session.request(method, url, params=params, json=json_body) as response:
                body = await response.text()
                return response.status, response.headers, body

        except asyncio.TimeoutError as e:
            raise self._error("NO_RESPONSE", f"Request timed out: {method} {url}", {"url": url}) from e
        except aiohttp.ClientConnectionError as e:
            raise self._error("NO_RESPONSE", f"Connection failed: {e}", {"url": url}) from e
        except aiohttp.ClientError as e:
            raise self._error("ERROR", f"Request failed: {e}", {"url": url}) from e

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ProviderError: On any transport, HTTP or decoding failure
        """
        url = self._build_url(path)

        await self.limiter.wait()
        status, headers, body = await self._send(method, url, params, json_body)

        if status == 429:
            delay = compute_retry_delay(headers.get("Retry-After"), 0)
            logger.warning(
                f"{self.provider_name} throttled, replaying in {delay:.1f}s",
                extra={"url": url},
            )
            await self._sleep(delay)
            await self.limiter.wait()
            status, headers, body = await self._send(method, url, params, json_body)

        if status >= 400:
            raise self._error(
                f"HTTP_{status}",
                f"{method} {url} returned HTTP {status}",
                {"url": url, "body": body[:500] if body else None},
                status=status,
            )

        try:
            return json.loads(body) if body else None
        except ValueError as e:
            raise self._error("ERROR", f"Invalid JSON from {url}: {e}", {"url": url}) from e

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self, path: str, json_body: Any = None, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        return await self.request("POST", path, params=params, json_body=json_body)
