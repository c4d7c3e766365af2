"""Server-sent-event line decoding for chat-completion streams.

Each line is decoded independently so that a single corrupted fragment can be
skipped without ending an otherwise healthy stream.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"


class SSEEventKind(str, Enum):
    """Kind of a decoded stream line."""

    DELTA = "delta"          # Incremental token (content may be empty)
    DONE = "done"            # Terminal sentinel
    ERROR = "error"          # Backend reported an error mid-stream
    MALFORMED = "malformed"  # Undecodable fragment, skipped by the caller


@dataclass(frozen=True)
class SSEEvent:
    """A single decoded data line."""

    kind: SSEEventKind
    token: str | None = None
    usage: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    raw: str | None = None


def parse_sse_line(line: str) -> SSEEvent | None:
    """Decode one line of a chat-completion event stream.

    Returns None for lines that carry no data (blank lines, comments and
    non-data fields such as ``event:`` or ``id:``).
    """
    line = line.rstrip("\r\n")
    if not line.strip() or line.startswith(COMMENT_PREFIX):
        return None
    if not line.startswith(DATA_PREFIX):
        return None

    data = line[len(DATA_PREFIX):].strip()
    if data == DONE_SENTINEL:
        return SSEEvent(kind=SSEEventKind.DONE)

    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return SSEEvent(kind=SSEEventKind.MALFORMED, raw=data)

    if not isinstance(payload, dict):
        return SSEEvent(kind=SSEEventKind.MALFORMED, raw=data)

    if isinstance(payload.get("error"), dict):
        return SSEEvent(kind=SSEEventKind.ERROR, error=payload["error"], raw=data)

    usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else None
    choices = payload.get("choices")

    if isinstance(choices, list) and choices:
        first = choices[0]
        delta = first.get("delta") if isinstance(first, dict) else None
        if isinstance(delta, dict):
            content = delta.get("content")
            token = content if isinstance(content, str) and content else None
            return SSEEvent(kind=SSEEventKind.DELTA, token=token, usage=usage)
        return SSEEvent(kind=SSEEventKind.MALFORMED, raw=data)

    # Trailing usage-only chunk (empty choices)
    if usage is not None:
        return SSEEvent(kind=SSEEventKind.DELTA, usage=usage)

    return SSEEvent(kind=SSEEventKind.MALFORMED, raw=data)
