"""Engine and logging integration for the TUI.

Hides the details of how the TUI receives updates from the chat engine and
from the orbchat loggers.
"""

import logging
import threading
from typing import TYPE_CHECKING, Any

from ..engine import ModelOutcome, OutcomeStatus, RenderAdapter
from .config import STREAM_BUFFER_THRESHOLD

if TYPE_CHECKING:
    from textual.app import App

    from .widgets import DebugPanel, ModelGrid


class TUIRenderAdapter(RenderAdapter):
    """Routes engine events into the per-model panels.

    Tokens are buffered per model and flushed every few characters so a
    fast stream does not repaint the panel on every token.
    """

    def __init__(self, grid: "ModelGrid", threshold: int = STREAM_BUFFER_THRESHOLD) -> None:
        self.grid = grid
        self._threshold = threshold
        self._buffers: dict[str, list[str]] = {}
        self._buffered_chars: dict[str, int] = {}

    def _flush(self, model: str) -> None:
        buffered = self._buffers.get(model)
        if not buffered:
            return
        panel = self.grid.panel(model)
        if panel is not None:
            panel.append("".join(buffered))
        self._buffers[model] = []
        self._buffered_chars[model] = 0

    def on_turn_start(self, models: list[str]) -> None:
        self._buffers = {m: [] for m in models}
        self._buffered_chars = {m: 0 for m in models}
        self.grid.reset(models)

    def on_token(self, model: str, token: str) -> None:
        self._buffers[model].append(token)
        self._buffered_chars[model] += len(token)
        if self._buffered_chars[model] >= self._threshold:
            self._flush(model)

    def on_model_done(self, model: str, content: str) -> None:
        self._buffers[model] = []
        panel = self.grid.panel(model)
        if panel is not None:
            panel.mark_done(content)

    def on_model_error(self, model: str, error: str) -> None:
        self._buffers[model] = []
        panel = self.grid.panel(model)
        if panel is not None:
            panel.mark_error(error)

    def on_turn_complete(self, outcomes: list[ModelOutcome]) -> None:
        for outcome in outcomes:
            if outcome.status is OutcomeStatus.INTERRUPTED:
                self._flush(outcome.model)
                panel = self.grid.panel(outcome.model)
                if panel is not None:
                    panel.mark_interrupted()


class PanelLogHandler(logging.Handler):
    """Forwards log records into the TUI log panel.

    Records emitted off the UI thread are marshalled with call_from_thread.
    """

    def __init__(self, panel: "DebugPanel", app: "App") -> None:
        super().__init__(level=logging.DEBUG)
        self.panel = panel
        self.app = app

    def _call_thread_safe(self, func: Any, *args: Any) -> None:
        if self.app._thread_id != threading.get_ident():
            self.app.call_from_thread(func, *args)
        else:
            func(*args)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            component = record.name.split(".")[1] if record.name.count(".") else record.name
            self._call_thread_safe(self.panel.log, component, record.getMessage(), record.levelno)
        except Exception:
            self.handleError(record)
