import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ApiError, ParseError
from .sse import SSEEventKind, parse_sse_line

logger = logging.getLogger(__name__)

_END = object()


class RetryPolicy(BaseModel):
    """Bounded retry with exponential backoff.

    A request is attempted at most ``max_attempts`` times in total. After
    failed attempt ``i`` (0-based), when attempts remain, the client waits
    ``retry_after`` when the server supplied one, else ``base_delay * 2**i``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, first request included")
    base_delay: float = Field(default=1.0, ge=0.0, description="Initial backoff in seconds")

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        """Seconds to wait after the given failed attempt."""
        if retry_after is not None:
            return retry_after
        return self.base_delay * (2 ** attempt)


class TokenStream:
    """Lazy, finite, non-restartable sequence of text tokens.

    Wraps an async iterator of raw event-stream lines. Once iteration starts a
    reader task drains the connection eagerly into a queue, so a slow consumer
    never stalls the socket. Tokens are delivered in arrival order.

    Usage:
        stream = await transport.stream_request("/chat/completions", body)
        async for token in stream:
            print(token, end="")
        print(stream.usage)
    """

    def __init__(
        self,
        lines: AsyncIterator[str],
        on_close: Callable[[], Awaitable[None]] | None = None,
    ):
        """Initialize with an async iterator of raw lines.

        Args:
            lines: Async iterator yielding event-stream lines
            on_close: Coroutine function releasing the underlying connection
        """
        self._lines = lines
        self._on_close = on_close
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._reader: asyncio.Task[None] | None = None
        self._finished = False
        self._closed = False
        self._usage: dict[str, Any] | None = None
        self.token_count = 0
        self.malformed_count = 0

    @property
    def usage(self) -> dict[str, Any] | None:
        """Token usage reported by the backend (available after iteration)."""
        return self._usage

    def __aiter__(self) -> "TokenStream":
        return self

    async def __anext__(self) -> str:
        if self._finished:
            raise StopAsyncIteration
        if self._reader is None:
            self._reader = asyncio.create_task(self._pump())

        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._finished = True
            raise item
        return item

    async def _pump(self) -> None:
        """Read lines until the sentinel, end of body, or an error."""
        try:
            async for line in self._lines:
                event = parse_sse_line(line)
                if event is None:
                    continue
                if event.kind is SSEEventKind.DONE:
                    break
                if event.kind is SSEEventKind.MALFORMED:
                    self.malformed_count += 1
                    logger.warning("Skipping malformed stream fragment: %.200s", event.raw)
                    continue
                if event.kind is SSEEventKind.ERROR:
                    error = event.error or {}
                    code = error.get("code")
                    raise ApiError(
                        code if isinstance(code, int) else 500,
                        str(error.get("message", error)),
                    )
                if event.usage is not None:
                    self._usage = event.usage
                if event.token:
                    self.token_count += 1
                    self._queue.put_nowait(event.token)

            if self.token_count == 0 and self.malformed_count:
                raise ParseError(
                    f"Stream produced no tokens ({self.malformed_count} malformed fragments)"
                )
            self._queue.put_nowait(_END)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._queue.put_nowait(exc)
        finally:
            await self._release()

    async def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await self._on_close()

    async def aclose(self) -> None:
        """Stop reading and release the connection. Safe to call repeatedly."""
        self._finished = True
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
        await self._release()
