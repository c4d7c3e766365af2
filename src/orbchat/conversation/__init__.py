"""Conversation module.

This module provides the append-only message log shared by every model in a
chat session, plus export and import of transcripts.

Public API:
    - Role: Message author enum
    - Message: Immutable transcript entry
    - Conversation: Message log with per-model views
    - ExportFormat, ImportFormat: Supported file formats
    - export_conversation, import_conversation: File conversion helpers
"""

from .export import (
    IMPORTED_MODEL,
    ExportFormat,
    ImportFormat,
    export_conversation,
    import_conversation,
    to_html,
    to_json,
    to_markdown,
)
from .models import Message, Role
from .state import Conversation

__all__ = [
    "Conversation",
    "ExportFormat",
    "IMPORTED_MODEL",
    "ImportFormat",
    "Message",
    "Role",
    "export_conversation",
    "import_conversation",
    "to_html",
    "to_json",
    "to_markdown",
]
