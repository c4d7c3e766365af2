from .base import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, Transport, build_chat_body
from .http import DEFAULT_BASE_URL, HttpTransport
from .models import RetryPolicy, TokenStream
from .sse import SSEEvent, SSEEventKind, parse_sse_line

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "HttpTransport",
    "RetryPolicy",
    "SSEEvent",
    "SSEEventKind",
    "TokenStream",
    "Transport",
    "build_chat_body",
    "parse_sse_line",
]
