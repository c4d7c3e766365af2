"""Append-only conversation log with per-model views."""

import json
from collections.abc import Iterable, Iterator

from pydantic import TypeAdapter

from .models import Message, Role

_MESSAGES = TypeAdapter(list[Message])


class Conversation:
    """Ordered message log, the single source of truth for a chat session.

    Messages are appended, never edited. A turn adds the user message first and
    then one reply per successful model, in the order the models were listed.
    """

    def __init__(self, messages: Iterable[Message] | None = None):
        self._messages: list[Message] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the log."""
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        """Insert a message at the end of the log."""
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)

    def view_for(self, model_id: str) -> list[Message]:
        """History as seen by one model.

        Includes every user and system message plus only the assistant
        replies produced by ``model_id``, in original order.
        """
        return [
            msg for msg in self._messages
            if msg.role is not Role.ASSISTANT or msg.model == model_id
        ]

    def models(self) -> list[str]:
        """Distinct assistant model ids in first-seen order."""
        seen: dict[str, None] = {}
        for msg in self._messages:
            if msg.model is not None:
                seen.setdefault(msg.model, None)
        return list(seen)

    def mark(self) -> int:
        """Position to roll back to."""
        return len(self._messages)

    def rollback(self, mark: int) -> None:
        """Drop every message appended after ``mark``."""
        del self._messages[mark:]

    def clear(self) -> None:
        """Truncate to empty (explicit "clear history" action)."""
        self._messages.clear()

    def to_json(self) -> str:
        """Serialize as a newline-free JSON array of messages."""
        return json.dumps(
            [msg.model_dump(mode="json", exclude_none=True) for msg in self._messages],
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> "Conversation":
        return cls(_MESSAGES.validate_json(data))
