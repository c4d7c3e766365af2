import logging
from abc import ABC, abstractmethod
from typing import Any

from ..errors import ApiError, ParseError
from .models import TokenStream

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000


class Transport(ABC):
    """Abstract base class for backend transports.

    This module hides the design decision of how the backend is reached.
    Implementations must handle:
    - Authentication headers
    - Retry and backoff policy
    - Rate limiting
    - Event-stream decoding

    At most one logical request is in flight per call; callers needing
    concurrency open several calls in parallel.

    Supports async context manager protocol for proper resource cleanup:
        async with transport:
            models = await transport.list_models()
    """

    @abstractmethod
    async def request(
        self,
        endpoint: str,
        body: dict[str, Any] | None = None,
        method: str = "POST",
    ) -> dict[str, Any]:
        """Issue a request and return the decoded JSON body.

        Raises:
            RateLimitedError: HTTP 429 on every attempt
            TransportError: Connection failure on every attempt
            ApiError: Any other non-2xx response
            ParseError: Success response that is not JSON
        """

    @abstractmethod
    async def stream_request(self, endpoint: str, body: dict[str, Any]) -> TokenStream:
        """Open an event stream and return its token sequence.

        Raises the same errors as ``request`` while opening the connection.
        Failures after the first byte surface from iterating the stream.
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def list_models(self) -> list[dict[str, Any]]:
        """Fetch the raw model directory."""
        payload = await self.request("/models", method="GET")
        data = payload.get("data")
        return data if isinstance(data, list) else []

    async def validate_api_key(self) -> bool:
        """Whether the backend accepts this transport's key.

        A 401 or 403 answer, or an empty model directory, counts as rejected.

        Raises:
            TransportError: The backend could not be reached
            ApiError: Any other non-2xx answer
        """
        try:
            models = await self.list_models()
        except ApiError as e:
            if e.status in (401, 403):
                logger.info("API key rejected (%d)", e.status)
                return False
            raise
        return bool(models)

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = DEFAULT_MAX_TOKENS,
    ) -> str:
        """Generate a whole (non-streamed) chat completion.

        Args:
            messages: Conversation history as role/content dicts
            model: Backend model identifier
            temperature: Sampling temperature (0.0 to 2.0)
            max_tokens: Maximum tokens to generate

        Returns:
            The assistant reply text
        """
        body = build_chat_body(messages, model, temperature, max_tokens, stream=False)
        payload = await self.request("/chat/completions", body)
        try:
            return payload["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise ParseError(f"Unexpected completion payload: {str(payload)[:200]}") from exc

    async def chat_completion_stream(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = DEFAULT_MAX_TOKENS,
    ) -> TokenStream:
        """Generate a streamed chat completion."""
        body = build_chat_body(messages, model, temperature, max_tokens, stream=True)
        return await self.stream_request("/chat/completions", body)

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup, a known
        race in httpx/anyio shutdown.
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise


def build_chat_body(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int | None,
    stream: bool,
) -> dict[str, Any]:
    """Build a ``/chat/completions`` request body, omitting unset limits."""
    body: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "stream": stream,
    }
    if max_tokens is not None:
        body["max_tokens"] = max_tokens
    return body
