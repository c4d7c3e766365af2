import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx

from ..errors import ApiError, ParseError, RateLimitedError, TransportError
from .base import Transport
from .models import RetryPolicy, TokenStream

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TIMEOUT = 60.0


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


async def _read_error_body(response: httpx.Response) -> str:
    try:
        await response.aread()
        return response.text
    finally:
        await response.aclose()


async def _iter_lines(response: httpx.Response) -> AsyncIterator[str]:
    """Yield response lines, mapping httpx failures onto TransportError."""
    try:
        async for line in response.aiter_lines():
            yield line
    except (httpx.HTTPError, httpx.StreamError) as exc:
        raise TransportError(f"Stream interrupted: {exc}", cause=exc) from exc


class HttpTransport(Transport):
    """OpenRouter-compatible HTTP transport.

    Hidden design decisions:
    - httpx client setup and authentication headers
    - Retry/backoff on connection errors and HTTP 429
    - Event-stream framing for streamed completions
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        **client_kwargs: Any
    ):
        """Initialize the transport.

        Args:
            api_key: Bearer credential attached to every request
            base_url: API base URL
            timeout: Per-request timeout in seconds
            retry_policy: Retry bounds (default: 3 retries, 1s base delay)
            sleep: Coroutine used to wait between attempts
            **client_kwargs: Additional kwargs for httpx.AsyncClient
        """
        self._retry = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": "https://github.com/orbchat/orbchat",
                "X-Title": "orbchat",
            },
            **client_kwargs
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    async def _send_with_retry(
        self,
        send: Callable[[], Awaitable[httpx.Response]],
        label: str,
    ) -> httpx.Response:
        """Run ``send`` under the retry policy and return a 2xx response."""
        last_error: Exception | None = None
        last_retry_after: float | None = None
        rate_limited = False

        for attempt in range(self._retry.max_attempts):
            retry_after: float | None = None
            try:
                response = await send()
            except httpx.TransportError as exc:
                last_error = exc
                rate_limited = False
                reason = f"request failed ({exc.__class__.__name__})"
            else:
                if response.status_code == 429:
                    retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                    await response.aclose()
                    rate_limited = True
                    last_retry_after = retry_after
                    reason = "rate limited"
                elif not response.is_success:
                    raise ApiError(response.status_code, await _read_error_body(response))
                else:
                    return response

            if attempt < self._retry.max_attempts - 1:
                delay = self._retry.delay_for(attempt, retry_after)
                logger.info(
                    "%s %s, retrying in %.2fs (attempt %d/%d)",
                    label, reason, delay, attempt + 1, self._retry.max_attempts,
                )
                await self._sleep(delay)

        if rate_limited:
            raise RateLimitedError(
                f"{label} still rate limited after {self._retry.max_attempts} attempts",
                retry_after=last_retry_after,
            )
        raise TransportError(
            f"{label} failed after {self._retry.max_attempts} attempts: {last_error}",
            cause=last_error,
        ) from last_error

    async def request(
        self,
        endpoint: str,
        body: dict[str, Any] | None = None,
        method: str = "POST",
    ) -> dict[str, Any]:
        """Issue a request and decode its JSON body."""
        response = await self._send_with_retry(
            lambda: self._client.request(method, endpoint, json=body),
            label=f"{method} {endpoint}",
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {endpoint}", line=response.text[:200]) from exc
        if not isinstance(payload, dict):
            raise ParseError(f"Expected a JSON object from {endpoint}")
        return payload

    async def stream_request(self, endpoint: str, body: dict[str, Any]) -> TokenStream:
        """Open a streamed completion; retries apply only to opening the stream."""
        request_body = {**body, "stream": True}

        async def send() -> httpx.Response:
            request = self._client.build_request("POST", endpoint, json=request_body)
            return await self._client.send(request, stream=True)

        response = await self._send_with_retry(send, label=f"stream {endpoint}")
        return TokenStream(_iter_lines(response), on_close=response.aclose)

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()
