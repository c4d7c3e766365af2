"""Terminal UI module for orbchat.

Provides a Textual-based TUI that streams several models side by side.

Module structure (each module hides a design decision):
- widgets.py: Custom widgets (input history, model panels, metrics, log)
- styles.py: CSS styling (layout decisions)
- themes.py: Color palettes and theme configuration
- callbacks.py: Engine and logging integration (how TUI receives updates)
- app.py: Application orchestration (user interaction flow)
"""

from .app import ParallelChatApp, run_textual_tui
from .callbacks import PanelLogHandler, TUIRenderAdapter
from .config import LogLevel
from .widgets import ChatHistoryWidget, ChatInputBar, DebugPanel, MetricsPanel, ModelGrid, ModelPanel

__all__ = [
    "ChatHistoryWidget",
    "ChatInputBar",
    "DebugPanel",
    "LogLevel",
    "MetricsPanel",
    "ModelGrid",
    "ModelPanel",
    "PanelLogHandler",
    "ParallelChatApp",
    "TUIRenderAdapter",
    "run_textual_tui",
]
