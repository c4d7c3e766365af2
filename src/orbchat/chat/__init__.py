"""Interactive chat: session state, slash commands and the terminal loop."""

from .console import read_message, run_chat_loop
from .session import HELP_TEXT, ChatSession, CommandResult, is_command

__all__ = [
    "ChatSession",
    "CommandResult",
    "HELP_TEXT",
    "is_command",
    "read_message",
    "run_chat_loop",
]
