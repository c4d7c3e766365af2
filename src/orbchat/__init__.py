"""
orbchat: A terminal client that chats with several language models at once.

This package follows Parnas's information hiding principles,
where each module hides a specific design decision.
"""

__version__ = "0.1.0"

from .conversation import Conversation, Message, Role
from .engine import ParallelChatEngine, RenderAdapter, TurnResult
from .transport import HttpTransport, Transport

__all__ = [
    "Conversation",
    "HttpTransport",
    "Message",
    "ParallelChatEngine",
    "RenderAdapter",
    "Role",
    "Transport",
    "TurnResult",
]
