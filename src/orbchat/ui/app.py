"""Main Textual TUI application.

Orchestrates the UI components and drives a ChatSession.
"""

import logging
import time

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Header

from ..chat import ChatSession, is_command
from ..errors import OrbChatError
from .callbacks import PanelLogHandler, TUIRenderAdapter
from .config import LogLevel
from .styles import APP_CSS
from .themes import ORB_NIGHT
from .widgets import (
    ChatHistoryWidget,
    ChatInputBar,
    DebugPanel,
    MetricsPanel,
    ModelGrid,
    copy_text,
)

logger = logging.getLogger(__name__)


class ParallelChatApp(App):
    """Textual TUI that streams several models side by side."""

    CSS = APP_CSS
    TITLE = "orbchat"

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        Binding("escape", "interrupt_turn", "Interrupt"),
        Binding("ctrl+k", "clear_chat", "Clear Chat"),
        Binding("ctrl+r", "copy_last_response", "Copy Response"),
        Binding("ctrl+y", "copy_metrics", "Copy Metrics"),
        Binding("ctrl+b", "toggle_maximize_chat", "Max Chat"),
        Binding("ctrl+d", "toggle_debug", "Log"),
    ]

    def __init__(self, session: ChatSession, log_level: str | None = None) -> None:
        super().__init__()
        self._session = session
        self._log_level = log_level
        self._log_handler: PanelLogHandler | None = None
        self._turns = 0

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield ChatHistoryWidget(id="chat-history")
        with Vertical(id="right-panel"):
            yield ModelGrid(id="model-grid")
            yield DebugPanel(id="debug-panel")
        with Vertical(id="bottom-bar"):
            yield MetricsPanel(id="metrics")
            yield ChatInputBar(id="chat-input-bar")
        yield Footer()

    def on_mount(self) -> None:
        self.register_theme(ORB_NIGHT)
        self.theme = "orb-night"

        log_panel = self.query_one("#debug-panel", DebugPanel)
        self._log_handler = PanelLogHandler(log_panel, self)
        logging.getLogger("orbchat").addHandler(self._log_handler)
        if self._log_level is not None:
            log_panel.log_level = LogLevel.from_string(self._log_level)
            log_panel.show()
            log_panel.info("TUI", f"Log panel enabled with level: {self._log_level.upper()}")

        grid = self.query_one("#model-grid", ModelGrid)
        self._session.engine.renderer = TUIRenderAdapter(grid)

        self.sub_title = f"{self._session.profile_name} | {', '.join(self._session.models)}"
        self._update_metrics()

        chat = self.query_one("#chat-history", ChatHistoryWidget)
        for message in self._session.conversation:
            chat.add_message(message)
        chat.add_note(
            "Each message is sent to every active model at once. "
            "Type /help for commands, Escape interrupts a running turn, "
            "click a message to copy it."
        )
        self.query_one("#chat-input-bar", ChatInputBar).focus_input()

    def on_unmount(self) -> None:
        if self._log_handler is not None:
            logging.getLogger("orbchat").removeHandler(self._log_handler)
            self._log_handler = None

    def _update_metrics(self, elapsed: float | None = None, succeeded: int | None = None,
                        failed: int | None = None) -> None:
        self.query_one("#metrics", MetricsPanel).update_metrics(
            profile=self._session.profile_name,
            models=len(self._session.models),
            turns=self._turns,
            time=elapsed,
            succeeded=succeeded,
            failed=failed,
        )

    def on_chat_input_bar_submitted(self, event: ChatInputBar.Submitted) -> None:
        user_input = event.value
        if not user_input:
            return
        if is_command(user_input):
            self._run_command(user_input)
            return
        if self._session.engine.is_running:
            self.notify("A turn is still running (Escape to interrupt)", severity="warning")
            return
        self._run_turn(user_input)

    def _run_command(self, line: str) -> None:
        chat = self.query_one("#chat-history", ChatHistoryWidget)
        try:
            result = self._session.handle_command(line)
        except OrbChatError as e:
            chat.add_note(f"Error: {e}")
            return
        if result.exit:
            self.exit()
            return
        if line.strip().lower().startswith("/clear"):
            chat.clear_history()
        chat.add_note(result.text)
        self.sub_title = f"{self._session.profile_name} | {', '.join(self._session.models)}"
        self._update_metrics()

    @work(exclusive=True)
    async def _run_turn(self, user_input: str) -> None:
        """Run one engine turn as a background async worker."""
        chat = self.query_one("#chat-history", ChatHistoryWidget)
        log_panel = self.query_one("#debug-panel", DebugPanel)
        before = len(self._session.conversation)
        started = time.monotonic()

        try:
            result = await self._session.send(user_input)
        except OrbChatError as e:
            log_panel.error("TUI", str(e))
            chat.add_note(f"Error: {e}")
            self.notify(str(e), severity="error", timeout=5)
            return

        elapsed = time.monotonic() - started
        if result.interrupted:
            chat.add_note("Turn interrupted. Nothing was added to the conversation.")
            self.notify("Interrupted", severity="warning", timeout=2)
            return

        self._turns += 1
        for message in self._session.conversation.messages[before:]:
            chat.add_message(message)
        self._update_metrics(elapsed, len(result.succeeded), len(result.failed))
        if result.failed:
            self.notify(f"{len(result.failed)} model(s) failed", severity="warning", timeout=3)

    def action_interrupt_turn(self) -> None:
        if self._session.engine.is_running:
            self._session.interrupt()

    def action_clear_chat(self) -> None:
        try:
            self._session.handle_command("/clear")
        except OrbChatError as e:
            self.notify(str(e), severity="warning", timeout=3)
            return
        self.query_one("#chat-history", ChatHistoryWidget).clear_history()
        self.notify("Chat cleared", timeout=2)

    def action_toggle_debug(self) -> None:
        log_panel = self.query_one("#debug-panel", DebugPanel)
        is_visible = log_panel.toggle()
        self.notify(f"Log panel {'shown' if is_visible else 'hidden'}", timeout=2)

    def action_toggle_maximize_chat(self) -> None:
        chat = self.query_one("#chat-history", ChatHistoryWidget)
        right = self.query_one("#right-panel", Vertical)
        if chat.has_class("-maximized"):
            chat.remove_class("-maximized")
            right.display = True
        else:
            chat.add_class("-maximized")
            right.display = False

    def action_copy_metrics(self) -> None:
        metrics = self.query_one("#metrics", MetricsPanel)
        copy_text(metrics, metrics.get_plain_text(), "Metrics")

    def action_copy_last_response(self) -> None:
        chat = self.query_one("#chat-history", ChatHistoryWidget)
        response = chat.get_last_response()
        if response:
            copy_text(chat, response, "Response")
        else:
            self.notify("No response to copy", severity="warning")


async def run_textual_tui(session: ChatSession, log_level: str | None = None) -> None:
    """Run the Textual TUI.

    Args:
        session: Chat session whose engine and conversation the TUI drives
        log_level: Log level for panel (debug/info/warning/error), None to hide
    """
    app = ParallelChatApp(session, log_level=log_level)
    await app.run_async()
