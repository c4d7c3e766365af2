"""Custom Textual widgets for the TUI.

Hides widget implementation details:
- Input history management
- Per-model streaming panels
- Metrics display formatting
- Log rendering and scrolling
- Chat message rendering
"""

from datetime import datetime

import pyperclip
from rich.text import Text
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.events import Click
from textual.message import Message as TextualMessage
from textual.widget import Widget
from textual.widgets import Button, Markdown, RichLog, Static, TextArea

from ..conversation import Message, Role
from .config import INPUT_HISTORY_MAX_SIZE, LOG_MAX_MESSAGE_LENGTH, LOG_TIMESTAMP_FORMAT, LogLevel


def copy_text(widget: Widget, text: str, label: str) -> None:
    """Copy to the system clipboard, falling back to the terminal (OSC 52)."""
    try:
        pyperclip.copy(text)
        widget.app.notify(f"{label} copied", timeout=2)
    except pyperclip.PyperclipException:
        widget.app.copy_to_clipboard(text)
        widget.app.notify(f"{label} copied (terminal)", timeout=2)


def plain_lines(log: RichLog) -> str:
    """Plain text content of a RichLog."""
    return "\n".join(line.text for line in log.lines)


class ClickableMessage(Vertical):
    """A chat message container that copies its content when clicked."""

    def __init__(self, content: str, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._content = content

    def on_click(self, event: Click) -> None:
        event.stop()
        copy_text(self, self._content, "Message")


class ChatInputBar(Horizontal):
    """Chat input bar with TextArea and Send button."""

    class Submitted(TextualMessage):
        """Message sent when user submits input."""

        def __init__(self, value: str) -> None:
            super().__init__()
            self.value = value

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._history: list[str] = []
        self._history_index: int = -1

    def compose(self):
        text_area = TextArea(id="chat-input", show_line_numbers=False)
        text_area.cursor_blink = False
        yield text_area
        yield Button("Send", id="send-btn", variant="success").with_tooltip(
            "Send to all models (Ctrl+J)"
        )

    def on_mount(self) -> None:
        text_area = self.query_one("#chat-input", TextArea)
        text_area.focus()
        text_area.highlight_cursor_line = False

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send-btn":
            self._submit()

    def on_key(self, event) -> None:
        """Handle keyboard shortcuts.

        Note: ctrl+enter cannot work in terminals (terminal doesn't pass
        ctrl/shift modifiers with Enter). Use ctrl+j as the submit shortcut.
        """
        if event.key == "ctrl+j":
            self._submit()
            event.prevent_default()
            event.stop()
        elif event.key == "up" and self._is_cursor_at_start():
            self._navigate_history(-1)
            event.prevent_default()
            event.stop()
        elif event.key == "down" and self._is_cursor_at_end():
            self._navigate_history(1)
            event.prevent_default()
            event.stop()

    def _is_cursor_at_start(self) -> bool:
        text_area = self.query_one("#chat-input", TextArea)
        return text_area.cursor_location == (0, 0)

    def _is_cursor_at_end(self) -> bool:
        text_area = self.query_one("#chat-input", TextArea)
        lines = text_area.text.split("\n")
        return text_area.cursor_location == (len(lines) - 1, len(lines[-1]))

    def _navigate_history(self, direction: int) -> None:
        if not self._history:
            return
        text_area = self.query_one("#chat-input", TextArea)
        if direction < 0:
            if self._history_index == -1:
                self._history_index = len(self._history) - 1
            elif self._history_index > 0:
                self._history_index -= 1
        else:
            if self._history_index < len(self._history) - 1:
                self._history_index += 1
            else:
                self._history_index = -1
                text_area.text = ""
                return
        text_area.text = self._history[self._history_index]

    def _submit(self) -> None:
        text_area = self.query_one("#chat-input", TextArea)
        value = text_area.text.strip()
        if value:
            if not self._history or self._history[-1] != value:
                self._history.append(value)
                del self._history[:-INPUT_HISTORY_MAX_SIZE]
            self._history_index = -1
            text_area.text = ""
            self.post_message(self.Submitted(value))

    def focus_input(self) -> None:
        self.query_one("#chat-input", TextArea).focus()


class ModelPanel(VerticalScroll):
    """Live view of one model's reply during a turn.

    The panel's position is its slot, fixed when the turn starts.
    """

    ALLOW_MAXIMIZE = True

    def __init__(self, model: str, *args, **kwargs) -> None:
        super().__init__(*args, classes="model-panel -streaming", **kwargs)
        self.model = model
        self._content = ""
        self._body = Static(Text("waiting for first token...", style="dim"), classes="model-body")
        self.border_title = model
        self.border_subtitle = "waiting..."

    def compose(self):
        yield self._body

    def append(self, text: str) -> None:
        self._content += text
        self.border_subtitle = "streaming..."
        self._body.update(Text(self._content))
        self.scroll_end(animate=False)

    def mark_done(self, content: str) -> None:
        self._content = content
        self.remove_class("-streaming")
        self.add_class("-done")
        self.border_subtitle = f"done ({len(content):,} chars)"
        self._body.update(Text(content))

    def mark_error(self, error: str) -> None:
        self.remove_class("-streaming")
        self.add_class("-error")
        self.border_subtitle = "error"
        self._body.update(Text(f"Error: {error}", style="bold red"))

    def mark_interrupted(self) -> None:
        self.remove_class("-streaming")
        self.add_class("-interrupted")
        self.border_subtitle = "interrupted"

    def on_click(self, event: Click) -> None:
        event.stop()
        if self._content:
            copy_text(self, self._content, self.model)


class ModelGrid(Horizontal):
    """Row of ModelPanels, rebuilt at the start of every turn."""

    BORDER_TITLE = "Models"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._panels: dict[str, ModelPanel] = {}

    def reset(self, models: list[str]) -> None:
        self.remove_children()
        self._panels = {model: ModelPanel(model) for model in models}
        self.mount_all(self._panels.values())
        self.border_subtitle = f"{len(models)} models"

    def panel(self, model: str) -> ModelPanel | None:
        return self._panels.get(model)

    def panels(self) -> list[ModelPanel]:
        return list(self._panels.values())


class MetricsPanel(Static):
    """One-line summary of the session: profile, models, last turn."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._profile = ""
        self._models = 0
        self._turns = 0
        self._time = 0.0
        self._succeeded = 0
        self._failed = 0

    def on_mount(self) -> None:
        self._update_display()

    def update_metrics(
        self,
        profile: str | None = None,
        models: int | None = None,
        turns: int | None = None,
        time: float | None = None,
        succeeded: int | None = None,
        failed: int | None = None,
    ) -> None:
        """Update the metrics display; omitted values are kept."""
        if profile is not None:
            self._profile = profile
        if models is not None:
            self._models = models
        if turns is not None:
            self._turns = turns
        if time is not None:
            self._time = time
        if succeeded is not None:
            self._succeeded = succeeded
        if failed is not None:
            self._failed = failed
        self._update_display()

    def _update_display(self) -> None:
        parts = [
            f"[bold cyan]Profile:[/] {self._profile}",
            f"[bold magenta]Models:[/] {self._models}",
            f"[bold green]Turns:[/] {self._turns}",
            f"[bold yellow]Last:[/] {self._time:.2f}s",
            f"[green]{self._succeeded} ok[/]",
        ]
        if self._failed:
            parts.append(f"[red]{self._failed} failed[/]")
        self.update("  ".join(parts))

    def get_plain_text(self) -> str:
        return (
            f"Profile: {self._profile}  Models: {self._models}  Turns: {self._turns}  "
            f"Last turn: {self._time:.2f}s ({self._succeeded} ok, {self._failed} failed)"
        )


class DebugPanel(RichLog):
    """Log panel with level filtering.

    Fed by the orbchat loggers. Levels: DEBUG < INFO < WARNING < ERROR.
    Hidden by default, shown with --log-level flag or toggled with Ctrl+D.
    """

    BORDER_TITLE = "Log"
    BORDER_SUBTITLE = "Trace log"

    def __init__(self, *args, log_level: int = LogLevel.DEBUG, **kwargs) -> None:
        super().__init__(
            *args,
            markup=True,
            highlight=False,
            auto_scroll=True,
            wrap=False,
            **kwargs
        )
        self._log_level = log_level

    @property
    def log_level(self) -> int:
        return self._log_level

    @log_level.setter
    def log_level(self, level: int) -> None:
        self._log_level = level
        self._update_subtitle()

    def _update_subtitle(self) -> None:
        if self.display:
            self.border_subtitle = f"Level: {LogLevel.name(self._log_level)}"
        else:
            self.border_subtitle = "Hidden"

    def on_mount(self) -> None:
        """Hide by default."""
        self.display = False

    def log(self, component: str, message: str, level: int = LogLevel.DEBUG) -> None:
        """Add a log entry if it meets the current level threshold.

        Args:
            component: Short component name (transport, engine, TUI, ...)
            message: Log message
            level: Log level (LogLevel.DEBUG, INFO, WARNING, ERROR)
        """
        if level < self._log_level:
            return

        timestamp = datetime.now().strftime(LOG_TIMESTAMP_FORMAT)
        level_colors = {
            LogLevel.DEBUG: "dim white",
            LogLevel.INFO: "cyan",
            LogLevel.WARNING: "yellow",
            LogLevel.ERROR: "red",
        }
        component_colors = {
            "TUI": "cyan",
            "engine": "green",
            "transport": "magenta",
            "directory": "blue",
            "config": "bright_yellow",
        }
        level_color = level_colors.get(LogLevel.clamp(level), "white")
        comp_color = component_colors.get(component, "white")
        if len(message) > LOG_MAX_MESSAGE_LENGTH:
            message = message[:LOG_MAX_MESSAGE_LENGTH] + "..."

        line = Text.from_markup(
            f"[dim]{timestamp}[/] [{level_color}]{LogLevel.name(LogLevel.clamp(level)):<7}[/] "
        )
        line.append(f"[{component}] ", style=comp_color)
        line.append(message)
        self.write(line)

    def info(self, component: str, message: str) -> None:
        self.log(component, message, LogLevel.INFO)

    def error(self, component: str, message: str) -> None:
        self.log(component, message, LogLevel.ERROR)

    def show(self) -> None:
        self.display = True
        self._update_subtitle()

    def hide(self) -> None:
        self.display = False
        self.border_subtitle = "Hidden"

    def toggle(self) -> bool:
        """Toggle visibility. Returns new state."""
        if self.display:
            self.hide()
            return False
        self.show()
        return True

    def on_click(self, event: Click) -> None:
        """Copy log content to clipboard when clicked."""
        event.stop()
        text = plain_lines(self)
        if not text.strip():
            self.app.notify("Log is empty", timeout=2)
            return
        copy_text(self, text, "Log")


class ChatHistoryWidget(VerticalScroll):
    """Scrollable transcript of committed messages."""

    BORDER_TITLE = "Chat"
    BORDER_SUBTITLE = "Conversation history"
    ALLOW_MAXIMIZE = True
    ALLOW_SELECT = True

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._messages: list[Message] = []

    def add_message(self, message: Message) -> None:
        self._messages.append(message)
        self._render_message(message)
        self.border_subtitle = f"{len(self._messages)} messages"
        self.scroll_end(animate=False)

    def add_note(self, text: str) -> None:
        """Show a local notice (command output, errors) that is not part of the log."""
        self.mount(Static(Text(text), classes="chat-note"))
        self.scroll_end(animate=False)

    def get_last_response(self) -> str | None:
        for msg in reversed(self._messages):
            if msg.role is Role.ASSISTANT:
                return msg.content
        return None

    def clear_history(self) -> None:
        self._messages.clear()
        self.remove_children()
        self.border_subtitle = "Conversation history"

    def _render_message(self, msg: Message) -> None:
        if msg.role is Role.USER:
            header, css = "> You", "user-message"
        elif msg.role is Role.SYSTEM:
            header, css = "# System", "system-message"
        else:
            header, css = f"< {msg.model}", "assistant-message"

        header_text = f"{header} [{msg.created_at:%H:%M:%S}]"
        container = ClickableMessage(content=msg.content, classes=f"chat-message {css}")
        container.compose_add_child(Static(Text(header_text), classes="message-header"))
        if msg.role is Role.ASSISTANT:
            container.compose_add_child(Markdown(msg.content, classes="message-content"))
        else:
            container.compose_add_child(Static(Text(msg.content), classes="message-content"))
        self.mount(container)
