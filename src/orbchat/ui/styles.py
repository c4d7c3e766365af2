"""Textual CSS for the parallel chat screen.

The model grid takes the wide column: one panel per model, side by side,
scrolling sideways when the profile has more models than fit. The
committed conversation sits in the narrow column on the left.
"""

APP_CSS = """
Screen {
    layout: grid;
    grid-size: 2 2;
    grid-columns: 1fr 2fr;
    grid-rows: 1fr auto;
}

/* left column: committed history */

#chat-history {
    background: $surface;
    border: tall $primary 50%;
    border-title-color: $primary;
    border-subtitle-color: $text-muted;
    border-subtitle-align: right;
    padding: 0 1;
}

#chat-history:focus-within {
    border: tall $primary;
}

#chat-history.-maximized {
    column-span: 2;
}

.chat-message {
    height: auto;
    margin-bottom: 1;
    padding: 0 1;
}

.chat-message > .message-header {
    text-style: bold;
}

.chat-message > .message-content {
    height: auto;
}

.user-message > .message-header {
    color: $success;
}

.assistant-message > .message-header {
    color: $secondary;
}

.system-message > .message-header {
    color: $warning;
}

.chat-note {
    color: $text-muted;
    text-style: italic;
}

/* right column: live model streams over the log */

#right-panel {
    layout: vertical;
}

#model-grid {
    height: 1fr;
    overflow-x: auto;
    border: tall $secondary 40%;
    border-title-color: $secondary;
    border-subtitle-color: $text-muted;
    border-subtitle-align: right;
}

ModelPanel {
    width: 1fr;
    min-width: 30;
    margin-right: 1;
    padding: 0 1;
    background: $surface;
    border-left: thick $border;
    border-title-align: center;
    border-subtitle-color: $text-muted;
}

ModelPanel.-streaming {
    border-left: thick $accent;
    border-title-color: $accent;
}

ModelPanel.-done {
    border-left: thick $success;
    border-title-color: $success;
}

ModelPanel.-error {
    border-left: thick $error;
    border-title-color: $error;
    color: $error;
}

ModelPanel.-interrupted {
    border-left: thick $text-muted;
    border-title-color: $text-muted;
    color: $text-muted;
}

.model-body {
    height: auto;
}

#debug-panel {
    height: 10;
    border: tall $warning 40%;
    border-title-color: $warning;
    padding: 0 1;
}

/* bottom row: metrics line and prompt */

#bottom-bar {
    column-span: 2;
    height: auto;
    border-top: hkey $border;
}

#metrics {
    height: 1;
    padding: 0 1;
    color: $text-muted;
}

#chat-input-bar {
    height: 4;
}

#chat-input {
    width: 1fr;
    border: tall $primary 50%;
}

#chat-input:focus {
    border: tall $primary;
}

#send-btn {
    width: 10;
    height: 100%;
    margin-left: 1;
}

MarkdownFence {
    margin: 1 0;
}
"""
