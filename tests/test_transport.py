"""Unit tests for the HTTP transport and token streams."""
import json

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from orbchat.errors import ApiError, ParseError, RateLimitedError, TransportError
from orbchat.transport import HttpTransport, RetryPolicy, TokenStream, Transport


def sse_body(*lines: str) -> bytes:
    return "".join(f"{line}\n\n" for line in lines).encode()


def delta(token: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": token}}]})


class Recorder:
    """Records backoff delays instead of sleeping."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_transport(handler, sleep=None, **kwargs) -> HttpTransport:
    return HttpTransport(
        api_key="sk-test",
        base_url="https://example.test/api/v1",
        sleep=sleep or Recorder(),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def collect(stream: TokenStream) -> list[str]:
    try:
        return [token async for token in stream]
    finally:
        await stream.aclose()


class TestTransport:
    """Tests for the Transport interface."""

    def test_transport_is_abstract(self):
        """Test that Transport cannot be instantiated directly."""
        with pytest.raises(TypeError):
            Transport()  # type: ignore


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert [policy.delay_for(i) for i in range(2)] == [1.0, 2.0]

    def test_at_least_one_attempt(self):
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)

    def test_retry_after_overrides_backoff(self):
        assert RetryPolicy().delay_for(2, retry_after=7.5) == 7.5

    @given(st.integers(min_value=0, max_value=10), st.floats(min_value=0.01, max_value=10))
    def test_delays_double(self, attempt: int, base: float):
        """Property test: each delay is twice the previous one."""
        policy = RetryPolicy(base_delay=base)
        assert policy.delay_for(attempt + 1) == pytest.approx(2 * policy.delay_for(attempt))


class TestValidateApiKey:
    """Tests for checking a key against the model directory."""

    @pytest.mark.asyncio
    async def test_accepted_key(self):
        def handler(request):
            return httpx.Response(200, json={"data": [{"id": "openai/gpt-4o"}]})

        async with make_transport(handler) as transport:
            assert await transport.validate_api_key()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_rejected_key(self, status):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(status, json={"error": {"message": "No auth credentials found"}})

        async with make_transport(handler) as transport:
            assert not await transport.validate_api_key()

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_empty_directory_is_rejected(self):
        async with make_transport(lambda request: httpx.Response(200, json={"data": []})) as transport:
            assert not await transport.validate_api_key()

    @pytest.mark.asyncio
    async def test_server_error_propagates(self):
        async with make_transport(lambda request: httpx.Response(500, text="boom")) as transport:
            with pytest.raises(ApiError):
                await transport.validate_api_key()


class TestHttpTransportRequest:
    """Tests for plain requests, retries and error mapping."""

    @pytest.mark.asyncio
    async def test_sends_bearer_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(200, json={"data": [{"id": "openai/gpt-4o"}]})

        async with make_transport(handler) as transport:
            models = await transport.list_models()

        assert models == [{"id": "openai/gpt-4o"}]
        assert seen == {"auth": "Bearer sk-test", "path": "/api/v1/models"}

    @pytest.mark.asyncio
    async def test_rate_limited_twice_then_success(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) <= 2:
                return httpx.Response(429)
            return httpx.Response(200, json={"data": []})

        sleep = Recorder()
        async with make_transport(handler, sleep=sleep) as transport:
            assert await transport.list_models() == []

        assert len(calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limited_on_every_attempt(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        sleep = Recorder()
        async with make_transport(handler, sleep=sleep) as transport:
            with pytest.raises(RateLimitedError):
                await transport.list_models()

        assert len(calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_after_header_is_honored(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, headers={"Retry-After": "7"})
            return httpx.Response(200, json={})

        sleep = Recorder()
        async with make_transport(handler, sleep=sleep) as transport:
            await transport.request("/models", method="GET")

        assert sleep.delays == [7.0]

    @pytest.mark.asyncio
    async def test_api_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, text="bad model id")

        sleep = Recorder()
        async with make_transport(handler, sleep=sleep) as transport:
            with pytest.raises(ApiError) as exc_info:
                await transport.request("/chat/completions", {"model": "nope"})

        assert exc_info.value.status == 400
        assert "bad model id" in exc_info.value.body
        assert len(calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_connection_failure_exhausts_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with make_transport(handler, retry_policy=RetryPolicy(max_attempts=2)) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.list_models()

        assert len(calls) == 2
        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert exc_info.value.is_retryable()

    @pytest.mark.asyncio
    async def test_non_json_body_is_parse_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        async with make_transport(handler) as transport:
            with pytest.raises(ParseError):
                await transport.list_models()

    @pytest.mark.asyncio
    async def test_chat_completion(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "Paris"}}]})

        async with make_transport(handler) as transport:
            text = await transport.chat_completion(
                [{"role": "user", "content": "Capital of France?"}],
                "openai/gpt-4o",
                temperature=0.2,
                max_tokens=50,
            )

        assert text == "Paris"
        assert bodies[0]["model"] == "openai/gpt-4o"
        assert bodies[0]["temperature"] == 0.2
        assert bodies[0]["max_tokens"] == 50
        assert bodies[0]["stream"] is False


class TestHttpTransportStream:
    """Tests for streamed completions."""

    @pytest.mark.asyncio
    async def test_tokens_arrive_in_order(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200,
                content=sse_body(
                    ": OPENROUTER PROCESSING",
                    delta("Hel"),
                    delta("lo"),
                    'data: {"choices":[],"usage":{"total_tokens":9}}',
                    "data: [DONE]",
                ),
            )

        async with make_transport(handler) as transport:
            stream = await transport.chat_completion_stream(
                [{"role": "user", "content": "hi"}], "openai/gpt-4o"
            )
            tokens = await collect(stream)

        assert tokens == ["Hel", "lo"]
        assert stream.usage == {"total_tokens": 9}
        assert bodies[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_malformed_fragments_are_skipped(self):
        def handler(request):
            return httpx.Response(
                200,
                content=sse_body(delta("a"), 'data: {"choices": [', delta("b"), "data: [DONE]"),
            )

        async with make_transport(handler) as transport:
            stream = await transport.stream_request("/chat/completions", {"model": "m"})
            tokens = await collect(stream)

        assert tokens == ["a", "b"]
        assert stream.malformed_count == 1

    @pytest.mark.asyncio
    async def test_only_malformed_fragments_is_parse_error(self):
        def handler(request):
            return httpx.Response(200, content=sse_body("data: {not json", "data: [DONE]"))

        async with make_transport(handler) as transport:
            stream = await transport.stream_request("/chat/completions", {"model": "m"})
            with pytest.raises(ParseError):
                await collect(stream)

    @pytest.mark.asyncio
    async def test_mid_stream_error_event(self):
        def handler(request):
            return httpx.Response(
                200,
                content=sse_body(delta("partial"), 'data: {"error":{"code":502,"message":"upstream"}}'),
            )

        async with make_transport(handler) as transport:
            stream = await transport.stream_request("/chat/completions", {"model": "m"})
            received = []
            with pytest.raises(ApiError) as exc_info:
                async for token in stream:
                    received.append(token)
            await stream.aclose()

        assert received == ["partial"]
        assert exc_info.value.status == 502

    @pytest.mark.asyncio
    async def test_stream_ends_without_sentinel(self):
        def handler(request):
            return httpx.Response(200, content=sse_body(delta("x")))

        async with make_transport(handler) as transport:
            stream = await transport.stream_request("/chat/completions", {"model": "m"})
            assert await collect(stream) == ["x"]

    @pytest.mark.asyncio
    async def test_open_is_retried_on_429(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429)
            return httpx.Response(200, content=sse_body(delta("ok"), "data: [DONE]"))

        sleep = Recorder()
        async with make_transport(handler, sleep=sleep) as transport:
            stream = await transport.stream_request("/chat/completions", {"model": "m"})
            assert await collect(stream) == ["ok"]

        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_aclose_is_idempotent(self):
        def handler(request):
            return httpx.Response(200, content=sse_body(delta("x"), "data: [DONE]"))

        async with make_transport(handler) as transport:
            stream = await transport.stream_request("/chat/completions", {"model": "m"})
            await stream.aclose()
            await stream.aclose()
            assert [t async for t in stream] == []
