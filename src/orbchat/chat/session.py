"""Interactive chat session: active models, profile switching, slash commands."""

import logging
import shlex
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from ..config import ProfileStore
from ..conversation import Conversation
from ..engine import ParallelChatEngine, TurnResult
from ..errors import NoModelSelectedError, SaveError, TurnInProgressError, UnknownCommandError

logger = logging.getLogger(__name__)

HELP_TEXT = """Available commands:
  /help            Show this help message
  /models          Show active models
  /switch <ids...> Chat with different model(s)
  /profile <name>  Switch to a different profile
  /clear           Clear conversation history
  /save <file>     Save conversation to a JSON file
  /history         Show the conversation so far
  /exit, /quit     Leave the chat"""


class CommandResult(BaseModel):
    """Outcome of a slash command."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    exit: bool = False


def is_command(line: str) -> bool:
    return line.lstrip().startswith("/")


class ChatSession:
    """A running chat: one engine, one conversation, a set of active models.

    Switching profile or models affects later turns only; recorded history
    is never rewritten.
    """

    def __init__(
        self,
        engine: ParallelChatEngine,
        profiles: ProfileStore,
        profile_name: str | None = None,
        models: list[str] | None = None,
    ):
        self._engine = engine
        self._profiles = profiles
        self.profile_name = profile_name or profiles.default_name
        self.models: list[str] = list(models) if models else list(engine.profile.models)
        self._commands: dict[str, Callable[[list[str]], CommandResult]] = {
            "/help": self._cmd_help,
            "/models": self._cmd_models,
            "/switch": self._cmd_switch,
            "/profile": self._cmd_profile,
            "/clear": self._cmd_clear,
            "/save": self._cmd_save,
            "/history": self._cmd_history,
            "/exit": self._cmd_exit,
            "/quit": self._cmd_exit,
        }

    @property
    def engine(self) -> ParallelChatEngine:
        return self._engine

    @property
    def conversation(self) -> Conversation:
        return self._engine.conversation

    async def send(self, content: str) -> TurnResult:
        """Run one turn against the active models."""
        if not self.models:
            raise NoModelSelectedError()
        return await self._engine.run_turn(content, self.models)

    def interrupt(self) -> None:
        self._engine.interrupt()

    def handle_command(self, line: str) -> CommandResult:
        """Dispatch a slash command.

        Raises:
            UnknownCommandError: The command is not recognized
            ProfileNotFoundError: ``/profile`` names a missing profile
            TurnInProgressError: ``/clear`` while a turn is streaming
            SaveError: ``/save`` could not write the file
        """
        try:
            parts = shlex.split(line.strip())
        except ValueError:
            parts = line.split()
        if not parts:
            raise UnknownCommandError(line)
        name, args = parts[0].lower(), parts[1:]
        handler = self._commands.get(name)
        if handler is None:
            raise UnknownCommandError(name)
        logger.debug("Running command %s %s", name, args)
        return handler(args)

    def _cmd_help(self, args: list[str]) -> CommandResult:
        return CommandResult(text=HELP_TEXT)

    def _cmd_models(self, args: list[str]) -> CommandResult:
        return CommandResult(text=f"Active models: {', '.join(self.models) or '(none)'}")

    def _cmd_switch(self, args: list[str]) -> CommandResult:
        models = [m for arg in args for m in arg.split(",") if m.strip()]
        if not models:
            return CommandResult(text="Usage: /switch <model-id> [<model-id> ...]")
        self.models = list(dict.fromkeys(m.strip() for m in models))
        return CommandResult(text=f"Switched to: {', '.join(self.models)}")

    def _cmd_profile(self, args: list[str]) -> CommandResult:
        if not args:
            return CommandResult(text=f"Current profile: {self.profile_name}")
        name = args[0]
        profile = self._profiles.resolve(name)
        self._engine.switch_profile(profile)
        self.profile_name = name
        self.models = list(profile.models)
        return CommandResult(
            text=f"Switched to profile '{name}': {', '.join(self.models) or '(no models)'}"
        )

    def _cmd_clear(self, args: list[str]) -> CommandResult:
        if self._engine.is_running:
            raise TurnInProgressError("clear the conversation")
        self.conversation.clear()
        return CommandResult(text="Conversation cleared")

    def _cmd_save(self, args: list[str]) -> CommandResult:
        if not args:
            return CommandResult(text="Usage: /save <file>")
        path = Path(args[0]).expanduser()
        try:
            path.write_text(self.conversation.to_json(), encoding="utf-8")
        except OSError as exc:
            raise SaveError(str(path), exc.strerror or str(exc)) from exc
        return CommandResult(text=f"Conversation saved to {path}")

    def _cmd_history(self, args: list[str]) -> CommandResult:
        if not len(self.conversation):
            return CommandResult(text="No messages yet")
        lines = []
        for msg in self.conversation:
            who = msg.model or msg.role.value
            lines.append(f"[{who}] {msg.content}")
        return CommandResult(text="\n\n".join(lines))

    def _cmd_exit(self, args: list[str]) -> CommandResult:
        return CommandResult(text="Goodbye!", exit=True)
