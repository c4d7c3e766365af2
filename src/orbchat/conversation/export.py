"""Conversation export and import.

Export formats: json, markdown, html. Import formats: generic, chatgpt,
claude. Only user and assistant turns are taken from foreign exports.
"""

import html
import json
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from markdown_it import MarkdownIt

from ..errors import ImportFormatError
from .models import Message, Role

IMPORTED_MODEL = "imported"

_CODE_BLOCK = re.compile(r"```(\w+)?\n(.*?)```", re.DOTALL)

_HTML_STYLE = """
  body { font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6;
         max-width: 800px; margin: 0 auto; padding: 20px; background: #f5f5f5; }
  .conversation { background: #fff; border-radius: 8px; padding: 20px; }
  .message { margin-bottom: 20px; padding: 15px; border-radius: 8px; }
  .user { background: #e3f2fd; border-left: 4px solid #2196f3; }
  .assistant { background: #f3e5f5; border-left: 4px solid #9c27b0; }
  .system { background: #fff8e1; border-left: 4px solid #ffb300; }
  .role { font-weight: bold; margin-bottom: 8px; }
  .metadata { font-size: 0.85em; color: #666; margin-bottom: 8px; }
  pre { background: #282c34; color: #abb2bf; padding: 16px; border-radius: 4px; overflow-x: auto; }
"""


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    HTML = "html"


class ImportFormat(str, Enum):
    GENERIC = "generic"
    CHATGPT = "chatgpt"
    CLAUDE = "claude"


def _role_label(message: Message) -> str:
    return message.role.value.capitalize()


def _normalize_code_blocks(content: str) -> str:
    """Trim surrounding whitespace inside fenced code blocks."""
    return _CODE_BLOCK.sub(
        lambda m: f"```{m.group(1) or ''}\n{m.group(2).strip()}\n```", content
    )


def to_json(messages: list[Message], include_metadata: bool = True) -> str:
    if include_metadata:
        data = [m.model_dump(mode="json", exclude_none=True) for m in messages]
    else:
        data = [m.to_api() for m in messages]
    return json.dumps(data, indent=2, ensure_ascii=False)


def to_markdown(
    messages: list[Message],
    include_metadata: bool = False,
    exported_at: datetime | None = None,
) -> str:
    exported_at = exported_at or datetime.now()
    parts = ["# Conversation Export\n", f"*Exported at: {exported_at.isoformat()}*\n"]
    for message in messages:
        parts.append(f"## {_role_label(message)}\n")
        if include_metadata and message.model:
            parts.append(f"*Model: {message.model}*\n")
        parts.append(f"{_normalize_code_blocks(message.content)}\n")
        parts.append("---\n")
    return "\n".join(parts)


def to_html(
    messages: list[Message],
    include_metadata: bool = True,
    exported_at: datetime | None = None,
) -> str:
    """Render a standalone HTML page. Raw HTML in message content is escaped."""
    exported_at = exported_at or datetime.now()
    md = MarkdownIt("commonmark", {"html": False})

    blocks = []
    for message in messages:
        meta = ""
        if include_metadata and message.model:
            meta = f'<div class="metadata">Model: {html.escape(message.model)}</div>\n'
        blocks.append(
            f'<div class="message {message.role.value}">\n'
            f'<div class="role">{_role_label(message)}</div>\n'
            f"{meta}"
            f'<div class="content">{md.render(message.content)}</div>\n'
            "</div>"
        )

    body = "\n".join(blocks)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        "<title>Conversation Export</title>\n"
        f"<style>{_HTML_STYLE}</style>\n</head>\n<body>\n"
        '<div class="conversation">\n<h1>Conversation Export</h1>\n'
        f'<p class="metadata">Exported at: {exported_at.isoformat()}</p>\n'
        f"{body}\n</div>\n</body>\n</html>\n"
    )


def export_conversation(
    messages: list[Message],
    path: Path,
    fmt: ExportFormat = ExportFormat.MARKDOWN,
    include_metadata: bool = True,
) -> Path:
    """Write messages to ``path`` in the requested format."""
    if fmt is ExportFormat.JSON:
        content = to_json(messages, include_metadata)
    elif fmt is ExportFormat.MARKDOWN:
        content = to_markdown(messages, include_metadata)
    else:
        content = to_html(messages, include_metadata)
    path.write_text(content, encoding="utf-8")
    return path


def _to_message(entry: dict[str, Any]) -> Message | None:
    role = entry.get("role")
    content = entry.get("content")
    if role not in (Role.USER.value, Role.ASSISTANT.value) or not isinstance(content, str):
        return None
    if role == Role.ASSISTANT.value:
        return Message.assistant(content, entry.get("model") or IMPORTED_MODEL)
    return Message.user(content)


def parse_generic(data: Any) -> list[Message]:
    """Array of ``{role, content[, model]}`` objects."""
    if not isinstance(data, list):
        raise ImportFormatError("Unrecognized conversation format")
    messages = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get("content"):
            continue
        if entry.get("role") == Role.SYSTEM.value:
            messages.append(Message.system(entry["content"]))
            continue
        message = _to_message(entry)
        if message is not None:
            messages.append(message)
    return messages


def parse_claude(data: Any) -> list[Message]:
    """Claude exports: a bare array or ``{"messages": [...]}``."""
    if isinstance(data, dict) and isinstance(data.get("messages"), list):
        data = data["messages"]
    if not isinstance(data, list):
        raise ImportFormatError("Unrecognized Claude export format")
    return [
        message for entry in data
        if isinstance(entry, dict) and (message := _to_message(entry)) is not None
    ]


def _walk_mapping(mapping: dict[str, Any]) -> list[Message]:
    """Depth-first traversal of a ChatGPT node tree, roots first."""
    nodes = {
        node_id: node for node_id, node in mapping.items()
        if isinstance(node, dict)
    }
    children_ids = {
        child for node in nodes.values() for child in node.get("children") or []
    }
    roots = [node_id for node_id in nodes if node_id not in children_ids]

    messages: list[Message] = []
    visited: set[str] = set()
    stack = list(reversed(roots or list(nodes)))
    while stack:
        node_id = stack.pop()
        if node_id in visited or node_id not in nodes:
            continue
        visited.add(node_id)
        node = nodes[node_id]

        raw = node.get("message") or {}
        role = (raw.get("author") or {}).get("role")
        parts = (raw.get("content") or {}).get("parts") or []
        text = "\n".join(p for p in parts if isinstance(p, str))
        if text:
            message = _to_message({
                "role": role,
                "content": text,
                "model": (raw.get("metadata") or {}).get("model_slug"),
            })
            if message is not None:
                messages.append(message)

        stack.extend(reversed(node.get("children") or []))
    return messages


def parse_chatgpt(data: Any) -> list[Message]:
    """ChatGPT exports: ``{"conversations": [{"mapping": {...}}, ...]}``."""
    if isinstance(data, dict) and "mapping" in data:
        conversations = [data]
    elif isinstance(data, dict):
        conversations = data.get("conversations") or []
    elif isinstance(data, list):
        conversations = data
    else:
        raise ImportFormatError("Unrecognized ChatGPT export format")

    messages: list[Message] = []
    for conversation in conversations:
        if isinstance(conversation, dict) and isinstance(conversation.get("mapping"), dict):
            messages.extend(_walk_mapping(conversation["mapping"]))
    return messages


_PARSERS = {
    ImportFormat.GENERIC: parse_generic,
    ImportFormat.CHATGPT: parse_chatgpt,
    ImportFormat.CLAUDE: parse_claude,
}


def import_conversation(path: Path, fmt: ImportFormat = ImportFormat.GENERIC) -> list[Message]:
    """Load messages from a foreign export file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ImportFormatError(f"{path} is not valid JSON: {exc}") from exc
    return _PARSERS[fmt](data)
