"""Rich-based renderers for the chat engine."""

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.status import Status
from rich.text import Text

from ..engine import ModelOutcome, OutcomeStatus, RenderAdapter

_BORDER = {
    "streaming": "yellow",
    OutcomeStatus.COMPLETED: "green",
    OutcomeStatus.FAILED: "red",
    OutcomeStatus.INTERRUPTED: "dim",
}


def outcome_panel(outcome: ModelOutcome) -> Panel:
    """Final panel for one model."""
    if outcome.status is OutcomeStatus.FAILED:
        body = Text(f"Error: {outcome.error}", style="red")
    elif outcome.content:
        body = Markdown(outcome.content)
    else:
        body = Text("(no response)", style="dim")
    return Panel(
        body,
        title=f"[bold]{outcome.model}[/bold]",
        subtitle=outcome.status.value,
        border_style=_BORDER[outcome.status],
        title_align="left",
    )


class LiveConsoleRenderer(RenderAdapter):
    """Streams every model into its own panel using ``rich.live.Live``.

    Panels keep the slot order fixed at turn start, so a fast model
    finishing first never moves the layout.
    """

    def __init__(self, console: Console | None = None, refresh_per_second: int = 12):
        self._console = console or Console()
        self._refresh = refresh_per_second
        self._live: Live | None = None
        self._models: list[str] = []
        self._content: dict[str, str] = {}
        self._state: dict[str, OutcomeStatus | str] = {}
        self._errors: dict[str, str] = {}

    def _panel(self, model: str) -> Panel:
        state = self._state[model]
        if model in self._errors:
            body = Text(f"Error: {self._errors[model]}", style="red")
        elif self._content[model]:
            body = Text(self._content[model])
        else:
            body = Text("waiting for first token...", style="dim")
        subtitle = "streaming..." if state == "streaming" else state.value
        return Panel(
            body,
            title=f"[bold]{model}[/bold]",
            subtitle=subtitle,
            border_style=_BORDER[state],
            title_align="left",
        )

    def _render(self) -> Group:
        return Group(*(self._panel(model) for model in self._models))

    def _refresh_live(self) -> None:
        if self._live is not None:
            self._live.update(self._render())

    def on_turn_start(self, models: list[str]) -> None:
        self._models = list(models)
        self._content = {m: "" for m in models}
        self._state = {m: "streaming" for m in models}
        self._errors = {}
        self._live = Live(
            self._render(),
            console=self._console,
            refresh_per_second=self._refresh,
            transient=False,
        )
        self._live.start()

    def on_token(self, model: str, token: str) -> None:
        self._content[model] += token
        self._refresh_live()

    def on_model_done(self, model: str, content: str) -> None:
        self._content[model] = content
        self._state[model] = OutcomeStatus.COMPLETED
        self._refresh_live()

    def on_model_error(self, model: str, error: str) -> None:
        self._errors[model] = error
        self._state[model] = OutcomeStatus.FAILED
        self._refresh_live()

    def on_turn_complete(self, outcomes: list[ModelOutcome]) -> None:
        if self._live is None:
            return
        self._live.update(Group(*(outcome_panel(o) for o in outcomes)))
        self._live.stop()
        self._live = None


class SummaryRenderer(RenderAdapter):
    """Shows a spinner while models run, then prints every outcome in slot order."""

    def __init__(self, console: Console | None = None):
        self._console = console or Console()
        self._status: Status | None = None
        self._total = 0
        self._settled = 0

    def _update_status(self) -> None:
        if self._status is not None:
            self._status.update(
                f"[dim]Waiting for models ({self._settled}/{self._total} done)...[/dim]"
            )

    def on_turn_start(self, models: list[str]) -> None:
        self._total = len(models)
        self._settled = 0
        self._status = self._console.status("")
        self._update_status()
        self._status.start()

    def on_model_done(self, model: str, content: str) -> None:
        self._settled += 1
        self._update_status()

    def on_model_error(self, model: str, error: str) -> None:
        self._settled += 1
        self._update_status()

    def on_turn_complete(self, outcomes: list[ModelOutcome]) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
        for outcome in outcomes:
            self._console.print(outcome_panel(outcome))
