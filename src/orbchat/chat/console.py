"""Line-oriented chat loop for the terminal."""

import asyncio
import logging

from rich.console import Console
from rich.markup import escape

from ..errors import OrbChatError
from .session import ChatSession, is_command

logger = logging.getLogger(__name__)

PROMPT = "[bold blue]You:[/bold blue] "
CONTINUATION = "[dim]...[/dim] "


def read_message(console: Console) -> str:
    """Read one message.

    An empty first line starts multi-line mode, which ends at the next
    empty line.
    """
    first = console.input(PROMPT)
    if first.strip():
        return first.strip()

    console.print("[dim]Multi-line mode: finish with an empty line.[/dim]")
    lines = []
    while True:
        line = console.input(CONTINUATION)
        if not line.strip():
            break
        lines.append(line)
    return "\n".join(lines).strip()


def run_chat_loop(session: ChatSession, console: Console, runner: asyncio.Runner) -> None:
    """Read messages until /exit, EOF, or Ctrl+C at the prompt.

    Each turn runs inside ``runner``. Ctrl+C while models are streaming
    cancels the turn only: nothing from it is kept in the conversation.
    """
    console.print(f"[cyan]Active models:[/cyan] {', '.join(session.models)}")
    console.print("[dim]Type /help for commands. Ctrl+C interrupts a running turn.[/dim]\n")

    while True:
        try:
            message = read_message(console)
        except (EOFError, KeyboardInterrupt):
            console.print("\n[yellow]Goodbye![/yellow]")
            return

        if not message:
            continue

        if is_command(message):
            try:
                result = session.handle_command(message)
            except OrbChatError as e:
                console.print(f"[red]Error: {escape(str(e))}[/red]")
                console.print("[dim]Type /help for available commands[/dim]")
                continue
            if result.text:
                console.print(result.text, markup=False, highlight=False)
            if result.exit:
                return
            continue

        try:
            runner.run(session.send(message))
        except KeyboardInterrupt:
            console.print("[yellow]Turn interrupted. Nothing was added to the conversation.[/yellow]")
        except OrbChatError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
        console.print()
