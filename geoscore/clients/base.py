"""Shared async HTTP layer for the SERP, LLM and OAuth clients."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from geoscore.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class APIError(Exception):
    """An outbound integration answered with an error or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class RateLimitError(APIError):
    """The integration answered 429."""

    pass


class AuthenticationError(APIError):
    """The integration rejected our credentials (401)."""

    pass


class TokenBucket:
    """
    Client-side throttle for one integration.

    Holds up to ``burst_size`` tokens refilled at ``calls_per_minute``; a call
    with no token left sleeps until one is available.
    """

    def __init__(self, calls_per_minute: int, burst_size: int | None = None):
        self.refill_per_second = calls_per_minute / 60.0
        self.burst_size = burst_size or calls_per_minute
        self.tokens = float(self.burst_size)
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            self.tokens = min(self.burst_size, self.tokens + (now - self.last_refill) * self.refill_per_second)
            self.last_refill = now

            if self.tokens >= 1:
                self.tokens -= 1
                return

            delay = (1 - self.tokens) / self.refill_per_second
            logger.debug(f"Throttling outbound call for {delay:.2f}s")
            await asyncio.sleep(delay)
            self.tokens = 0


class BaseAPIClient(ABC):
    """
    Base for every outbound integration.

    Subclasses name their ``service``, supply default headers and may set
    ``CALLS_PER_MINUTE`` to get a token bucket. ``fetch`` sends one request,
    parses the body and routes any failure through ``_request_failed``, which
    logs and re-raises by default; LLM providers override it to wrap errors.
    """

    service: str = "http"
    REQUEST_TIMEOUT = 30.0
    CALLS_PER_MINUTE: int | None = None

    def __init__(self, base_url: str, settings: Settings | None = None):
        self.base_url = base_url.rstrip("/")
        self.settings = settings or get_settings()
        self.throttle = TokenBucket(self.CALLS_PER_MINUTE) if self.CALLS_PER_MINUTE else None
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily created so clients can be built outside an event loop."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.REQUEST_TIMEOUT, connect=10.0),
                headers=self._get_default_headers(),
            )
        return self._client

    @abstractmethod
    def _get_default_headers(self) -> dict[str, str]:
        pass

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch(
        self,
        method: str,
        endpoint: str,
        parse: Callable[[dict[str, Any]], T],
        *,
        context: str,
        **request: Any,
    ) -> T:
        """
        Send a GET or POST and return ``parse(body)``.

        ``context`` describes the call for logs, e.g. ``search for "best crm"``.
        Errors raised by the request or by ``parse`` go to ``_request_failed``.
        """
        send = self.post if method.upper() == "POST" else self.get
        try:
            return parse(await send(endpoint, **request))
        except Exception as e:
            self._request_failed(e, context)
            raise

    def _request_failed(self, error: Exception, context: str) -> None:
        """Called inside the ``except`` block of ``fetch``; raise here to replace the error."""
        logger.error(f"{self.service} {context} failed: {error}")

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict | None = None,
        json_data: dict | list | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        """Throttled request, retried on timeouts and network errors."""
        if self.throttle:
            await self.throttle.acquire()

        logger.debug(f"{self.service}: {method} {endpoint}")

        response = await self.client.request(
            method=method,
            url=endpoint,
            params=params,
            json=json_data,
            headers=headers,
        )
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Decode the body and map error statuses onto the APIError hierarchy."""
        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        status = response.status_code
        if status < 400:
            return data

        if status == 401:
            raise AuthenticationError(f"{self.service} rejected the credentials", status_code=401, response_data=data)
        if status == 429:
            raise RateLimitError(f"{self.service} rate limit exceeded", status_code=429, response_data=data)

        message = f"{self.service} request failed: {status} {self._error_message(data)}"
        raise APIError(message.strip(), status_code=status, response_data=data)

    @staticmethod
    def _error_message(data: Any) -> str:
        """Pull the provider's message out of an error body."""
        if not isinstance(data, dict):
            return ""
        error = data.get("error")
        if isinstance(error, dict):
            return str(error.get("message", ""))
        if isinstance(error, str):
            return error
        return str(data.get("message") or data.get("status_message") or "")

    async def get(
        self,
        endpoint: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        return await self._request("GET", endpoint, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        json_data: dict | list | None = None,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> dict[str, Any]:
        return await self._request("POST", endpoint, json_data=json_data, params=params, headers=headers)


def batch_items(items: list[T], batch_size: int) -> list[list[T]]:
    """Split a list into batches of specified size."""
    return [items[i : i + batch_size] for i in range(0, len(items), batch_size)]
