"""Per-turn state and the renderer callback contract."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..conversation import Message


class OutcomeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


@dataclass
class StreamAccumulator:
    """Mutable buffer for one model's in-flight reply during a turn.

    Never shared across models. Discarded once the turn settles; a
    successful stream is folded into ``reply``.
    """

    model: str
    slot: int
    content: str = ""
    is_streaming: bool = True
    error: str | None = None
    reply: Message | None = None

    def append(self, token: str) -> None:
        self.content += token

    def finish(self) -> Message:
        self.is_streaming = False
        self.reply = Message.assistant(self.content, self.model)
        return self.reply

    def fail(self, error: str) -> None:
        self.is_streaming = False
        self.error = error

    def outcome(self) -> "ModelOutcome":
        if self.error is not None:
            status = OutcomeStatus.FAILED
        elif self.reply is not None:
            status = OutcomeStatus.COMPLETED
        else:
            status = OutcomeStatus.INTERRUPTED
        return ModelOutcome(
            model=self.model,
            slot=self.slot,
            content=self.content,
            error=self.error,
            status=status,
        )


class ModelOutcome(BaseModel):
    """Final state of one model after a turn settles."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(description="Model id")
    slot: int = Field(description="Display slot fixed at turn start")
    content: str = Field(default="", description="Text received before the stream ended")
    error: str | None = Field(default=None)
    status: OutcomeStatus

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED


class TurnResult(BaseModel):
    """Outcomes of every model in a turn, in slot order."""

    model_config = ConfigDict(frozen=True)

    outcomes: list[ModelOutcome] = Field(default_factory=list)
    interrupted: bool = False

    @property
    def succeeded(self) -> list[ModelOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[ModelOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    def get(self, model: str) -> ModelOutcome | None:
        for outcome in self.outcomes:
            if outcome.model == model:
                return outcome
        return None


class RenderAdapter:
    """Receives engine progress events.

    This is the whole observable surface of the engine; every front end is
    built on these five callbacks. The defaults do nothing so subclasses
    only override what they display.
    """

    def on_turn_start(self, models: list[str]) -> None:
        """Called once per turn, before any stream is opened. Index = slot."""

    def on_token(self, model: str, token: str) -> None:
        """Called for every token as soon as it arrives."""

    def on_model_done(self, model: str, content: str) -> None:
        """Called when a model's stream ends cleanly."""

    def on_model_error(self, model: str, error: str) -> None:
        """Called when a model's request fails. Sibling streams continue."""

    def on_turn_complete(self, outcomes: list[ModelOutcome]) -> None:
        """Called after every model has completed, failed, or been interrupted."""
