"""Main CLI application using Typer."""
import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..batch import BatchProcessor, OutputFormat, read_prompts, save_results
from ..chat import ChatSession, run_chat_loop
from ..config import DEFAULT_PROFILE_NAME, Profile, Template
from ..context import format_files_prompt, format_git_diff_prompt, git_diff, read_file_context
from ..conversation import (
    Conversation,
    ExportFormat,
    ImportFormat,
    export_conversation,
    import_conversation,
)
from ..directory import ModelDirectory, SelectionMode, select_models
from ..engine import ParallelChatEngine, RenderAdapter, TurnResult
from ..errors import InvalidApiKeyError, NoModelSelectedError, OrbChatError
from ..logging_config import setup_logging
from ..render import (
    LiveConsoleRenderer,
    SummaryRenderer,
    format_model_info,
    format_model_list,
    profile_table,
)
from ..transport import Transport
from .providers import (
    build_transport,
    get_config_store,
    get_profile_store,
    get_settings,
    get_template_store,
    get_transport,
    resolve_profile,
)

app = typer.Typer(
    name="orb",
    help="Chat with several language models at once from the terminal",
    no_args_is_help=True,
    add_completion=True,
)
config_app = typer.Typer(help="Manage the API key and stored configuration", no_args_is_help=True)
models_app = typer.Typer(help="Browse available models", no_args_is_help=True)
profile_app = typer.Typer(help="Manage model profiles", no_args_is_help=True)
template_app = typer.Typer(help="Manage prompt templates", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(models_app, name="models")
app.add_typer(profile_app, name="profile")
app.add_typer(template_app, name="template")

# Console for rich output
console = Console()

DEFAULT_REVIEW_PROMPT = (
    "Please review these changes and provide feedback on code quality, "
    "potential issues, and improvements."
)

ModelOption = typer.Option(
    None,
    "--model",
    "-m",
    help="Model id (repeat for several models); overrides the profile's models",
)
ProfileOption = typer.Option(None, "--profile", "-p", help="Profile to use (default: the default profile)")


@contextmanager
def _errors() -> Iterator[None]:
    """Report orbchat errors as a red line and exit with status 1."""
    try:
        yield
    except OrbChatError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _run_turn(
    prompt: str,
    profile: Profile,
    renderer: RenderAdapter,
) -> TurnResult:
    """One engine turn over a fresh conversation, for non-interactive commands."""
    async def _turn() -> TurnResult:
        async with get_transport() as transport:
            engine = ParallelChatEngine(transport, Conversation(), profile, renderer)
            return await engine.run_turn(prompt)

    return asyncio.run(_turn())


def _renderer(live: bool) -> RenderAdapter:
    return LiveConsoleRenderer(console) if live else SummaryRenderer(console)


def _exit_on_failure(result: TurnResult) -> None:
    if result.outcomes and not result.succeeded:
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level on stderr: debug, info, warning, error (default: ORBCHAT_LOG_LEVEL or warning)"
    ),
):
    """Chat with several language models at once from the terminal."""
    with _errors():
        setup_logging(log_level or get_settings().log_level)


# ---------------------------------------------------------------- config


async def _key_is_valid(api_key: str) -> bool:
    async with build_transport(api_key) as transport:
        return await transport.validate_api_key()


@config_app.command("set-key")
def config_set_key(
    api_key: str = typer.Argument(..., help="OpenRouter API key"),
    verify: bool = typer.Option(True, "--verify/--no-verify", help="Check the key against the API first"),
):
    """Validate and store the API key (file readable only by you)."""
    with _errors():
        api_key = api_key.strip()
        if verify and api_key:
            with console.status("[dim]Validating API key...[/dim]"):
                valid = asyncio.run(_key_is_valid(api_key))
            if not valid:
                raise InvalidApiKeyError()
        store = get_config_store()
        store.set_api_key(api_key)
    console.print(f"[green]API key saved to {store.path}[/green]")


@config_app.command("show")
def config_show():
    """Show the current configuration."""
    with _errors():
        settings = get_settings()
        store = get_config_store(settings)
        config = store.config

    if settings.api_key:
        key_state = "[green]set (OPENROUTER_API_KEY)[/green]"
    elif config.api_key:
        key_state = f"[green]set[/green] [dim](...{config.api_key[-4:]})[/dim]"
    else:
        key_state = "[yellow]not set[/yellow]"

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Config file", str(store.path))
    table.add_row("API key", key_state)
    table.add_row("Base URL", settings.base_url)
    table.add_row("Default profile", config.default_profile)
    table.add_row("Profiles", ", ".join(config.profiles))
    table.add_row("Timeout", f"{settings.timeout:g}s")
    console.print(table)


@config_app.command("remove-key")
def config_remove_key():
    """Remove the stored API key."""
    with _errors():
        get_config_store().remove_api_key()
    console.print("[green]API key removed[/green]")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Reset configuration to defaults (drops the API key and all profiles)."""
    if not yes and not typer.confirm("Reset all configuration?"):
        console.print("[dim]Aborted.[/dim]")
        raise typer.Exit()
    with _errors():
        get_config_store().reset()
    console.print("[green]Configuration reset to defaults[/green]")


# ---------------------------------------------------------------- models


def _with_directory(action):
    """Run ``action(directory)`` against a live model directory."""
    async def _run():
        async with get_transport() as transport:
            return await action(ModelDirectory(transport))

    with _errors():
        with console.status("[dim]Fetching available models...[/dim]"):
            return asyncio.run(_run())


@models_app.command("list")
def models_list(
    filter: str | None = typer.Option(None, "--filter", "-f", help="Substring of id or name"),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Ignore the cache"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show descriptions"),
):
    """List available models (free models first)."""
    models = _with_directory(lambda d: d.list(force_refresh=refresh, filter=filter))
    console.print(format_model_list(models, verbose=verbose))
    console.print(f"\n[dim]{len(models)} models[/dim]")


@models_app.command("search")
def models_search(
    query: str = typer.Argument(..., help="Text to look for in id, name, or description"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show descriptions"),
):
    """Search models by id, name, or description."""
    models = _with_directory(lambda d: d.search(query))
    console.print(format_model_list(models, verbose=verbose))


@models_app.command("info")
def models_info(model_id: str = typer.Argument(..., help="Model id, e.g. openai/gpt-4o")):
    """Show details for one model."""
    model = _with_directory(lambda d: d.get(model_id))
    if model is None:
        console.print(f"[red]Model not found: {model_id}[/red]")
        raise typer.Exit(code=1)
    console.print(Panel(format_model_info(model), border_style="cyan"))


@models_app.command("browse")
def models_browse(
    provider: str | None = typer.Argument(None, help="Provider to show (omit for a summary)"),
):
    """Browse models grouped by provider."""
    grouped = _with_directory(lambda d: d.group_by_provider())
    if provider is None:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Provider")
        table.add_column("Models", justify="right")
        table.add_column("Free", justify="right")
        for name, models in grouped.items():
            table.add_row(name, str(len(models)), str(sum(m.is_free for m in models)))
        console.print(table)
        console.print("[dim]Run: orb models browse <provider>[/dim]")
        return
    if provider not in grouped:
        console.print(f"[red]Unknown provider: {provider}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[bold cyan]{provider}[/bold cyan]")
    console.print(format_model_list(grouped[provider]))


# ---------------------------------------------------------------- profiles


def _selected_models(mode: SelectionMode | None, query: str | None) -> list[str]:
    if mode is None:
        return []
    candidates = _with_directory(lambda d: d.list())
    try:
        return select_models(candidates, mode, query)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@profile_app.command("create")
def profile_create(
    name: str = typer.Argument(..., help="Profile name"),
    models: list[str] | None = ModelOption,
    select: SelectionMode | None = typer.Option(
        None, "--select", "-s", help="Add models from the directory: all, free, provider, search"
    ),
    query: str | None = typer.Option(None, "--query", "-q", help="Provider or search text for --select"),
    temperature: float = typer.Option(0.7, "--temperature", "-t", min=0.0, max=2.0),
    max_tokens: int = typer.Option(4000, "--max-tokens", min=1),
):
    """Create a profile."""
    chosen = list(models or []) + _selected_models(select, query)
    with _errors():
        profile = get_profile_store().create(
            name, Profile(models=chosen, temperature=temperature, max_tokens=max_tokens)
        )
    console.print(f"[green]Profile '{name}' created with {len(profile.models)} model(s)[/green]")
    if not profile.models:
        console.print("[yellow]The profile has no models; add some with: orb profile edit[/yellow]")


@profile_app.command("list")
def profile_list():
    """List profiles."""
    with _errors():
        profiles = get_profile_store()
        console.print(profile_table(profiles.items(), profiles.default_name))


@profile_app.command("use")
def profile_use(name: str = typer.Argument(..., help="Profile name")):
    """Make a profile the default."""
    with _errors():
        get_profile_store().use(name)
    console.print(f"[green]Default profile set to '{name}'[/green]")


@profile_app.command("edit")
def profile_edit(
    name: str = typer.Argument(..., help="Profile name"),
    models: list[str] | None = ModelOption,
    add: list[str] | None = typer.Option(None, "--add", "-a", help="Model id to append"),
    remove: list[str] | None = typer.Option(None, "--remove", "-r", help="Model id to drop"),
    temperature: float | None = typer.Option(None, "--temperature", "-t", min=0.0, max=2.0),
    max_tokens: int | None = typer.Option(None, "--max-tokens", min=1),
):
    """Change a profile's models or sampling settings."""
    with _errors():
        profiles = get_profile_store()
        current = profiles.resolve(name)
        new_models = list(models) if models else list(current.models)
        new_models += list(add or [])
        new_models = [m for m in new_models if m not in set(remove or [])]
        profile = profiles.update(
            name,
            models=new_models,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    console.print(f"[green]Profile '{name}' updated[/green]")
    console.print(f"  Models: {', '.join(profile.models) or '(none)'}")
    console.print(f"  Temperature: {profile.temperature:g}  Max tokens: {profile.max_tokens}")


@profile_app.command("delete")
def profile_delete(
    name: str = typer.Argument(..., help="Profile name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a profile."""
    if name != DEFAULT_PROFILE_NAME and not yes and not typer.confirm(f"Delete profile '{name}'?"):
        console.print("[dim]Aborted.[/dim]")
        raise typer.Exit()
    with _errors():
        get_profile_store().delete(name)
    console.print(f"[green]Profile '{name}' deleted[/green]")


# ---------------------------------------------------------------- templates


@template_app.command("create")
def template_create(
    name: str = typer.Argument(..., help="Template name"),
    system: str | None = typer.Option(None, "--system", help="Text placed before the prompt"),
    prompt: str | None = typer.Option(None, "--prompt", help="Prompt body; {prompt} is replaced by the question"),
    models: list[str] | None = ModelOption,
    temperature: float | None = typer.Option(None, "--temperature", "-t", min=0.0, max=2.0),
    max_tokens: int | None = typer.Option(None, "--max-tokens", min=1),
):
    """Create a prompt template."""
    with _errors():
        get_template_store().create(Template(
            name=name,
            system=system,
            prompt=prompt,
            models=list(models) if models else None,
            temperature=temperature,
            max_tokens=max_tokens,
        ))
    console.print(f"[green]Template '{name}' created[/green]")


@template_app.command("list")
def template_list():
    """List prompt templates."""
    with _errors():
        templates = get_template_store().list()
    if not templates:
        console.print("[yellow]No templates yet. Create one with: orb template create[/yellow]")
        return
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Prompt")
    table.add_column("Models")
    for t in templates:
        table.add_row(t.name, (t.prompt or "")[:60], ", ".join(t.models or []) or "[dim]profile[/dim]")
    console.print(table)


@template_app.command("show")
def template_show(name: str = typer.Argument(..., help="Template name")):
    """Show one template."""
    with _errors():
        t = get_template_store().get(name)
    lines = [f"[bold cyan]{t.name}[/bold cyan]"]
    if t.system:
        lines.append(f"System: {t.system}")
    if t.prompt:
        lines.append(f"Prompt: {t.prompt}")
    if t.models:
        lines.append(f"Models: {', '.join(t.models)}")
    if t.temperature is not None:
        lines.append(f"Temperature: {t.temperature:g}")
    if t.max_tokens is not None:
        lines.append(f"Max tokens: {t.max_tokens}")
    lines.append(f"[dim]Updated: {t.updated_at:%Y-%m-%d %H:%M}[/dim]")
    console.print(Panel("\n".join(lines), border_style="cyan"))


@template_app.command("delete")
def template_delete(name: str = typer.Argument(..., help="Template name")):
    """Delete a template."""
    with _errors():
        get_template_store().delete(name)
    console.print(f"[green]Template '{name}' deleted[/green]")


# ---------------------------------------------------------------- chat


def _build_session(transport: Transport, profile_name: str | None, models: list[str] | None) -> ChatSession:
    name, profile = resolve_profile(profile_name, models)
    engine = ParallelChatEngine(transport, Conversation(), profile)
    return ChatSession(engine, get_profile_store(), profile_name=name)


@app.command()
def chat(
    profile: str | None = ProfileOption,
    models: list[str] | None = ModelOption,
):
    """Interactive chat; every message goes to all active models in parallel."""
    with _errors():
        transport = get_transport()
        session = _build_session(transport, profile, models)
        if not session.models:
            raise NoModelSelectedError()

    session.engine.renderer = LiveConsoleRenderer(console)
    console.print("[bold green]orbchat parallel chat[/bold green]")
    with asyncio.Runner() as runner:
        try:
            run_chat_loop(session, console, runner)
        finally:
            runner.run(transport.close())


@app.command(name="tui")
def tui_command(
    profile: str | None = ProfileOption,
    models: list[str] | None = ModelOption,
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Show log panel with level: debug (all), info, warning, or error"
    ),
):
    """Launch the side-by-side TUI chat interface."""
    from ..ui import run_textual_tui

    async def _tui():
        async with get_transport() as transport:
            session = _build_session(transport, profile, models)
            if not session.models:
                raise NoModelSelectedError()
            await run_textual_tui(session, log_level=log_level)

    setup_logging("DEBUG" if log_level else get_settings().log_level, to_stderr=False)
    with _errors():
        try:
            asyncio.run(_tui())
        except KeyboardInterrupt:
            pass
    console.print("\n[dim]Goodbye![/dim]")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to send to every model"),
    profile: str | None = ProfileOption,
    models: list[str] | None = ModelOption,
    template: str | None = typer.Option(None, "--template", "-T", help="Apply a prompt template"),
    files: list[Path] | None = typer.Option(
        None, "--file", "-f", exists=True, dir_okay=False, help="Include a file as context (repeatable)"
    ),
    live: bool = typer.Option(True, "--live/--no-live", help="Stream replies live or print them at the end"),
):
    """Ask one question to several models at once."""
    with _errors():
        _, resolved = resolve_profile(profile, models)
        prompt = question
        if template:
            applied = get_template_store().apply(template, question)
            prompt = applied.prompt
            resolved = Profile(
                models=resolved.models if models else (applied.models or resolved.models),
                temperature=applied.temperature if applied.temperature is not None else resolved.temperature,
                max_tokens=applied.max_tokens or resolved.max_tokens,
            )
        if files:
            prompt = format_files_prompt([read_file_context(p) for p in files], prompt)
        result = _run_turn(prompt, resolved, _renderer(live))
    _exit_on_failure(result)


@app.command(name="git-diff")
def git_diff_command(
    target: str = typer.Argument("HEAD", help="Revision to diff against"),
    prompt: str = typer.Option(DEFAULT_REVIEW_PROMPT, "--prompt", help="Instruction sent with the diff"),
    profile: str | None = ProfileOption,
    models: list[str] | None = ModelOption,
    live: bool = typer.Option(True, "--live/--no-live", help="Stream replies live or print them at the end"),
):
    """Ask models to review the working tree's diff."""
    with _errors():
        diff = git_diff(target)
        if not diff.files:
            console.print("[yellow]No changes found[/yellow]")
            return
        console.print(f"[dim]{len(diff.files)} file(s) changed[/dim]")
        _, resolved = resolve_profile(profile, models)
        result = _run_turn(format_git_diff_prompt(diff, prompt), resolved, _renderer(live))
    _exit_on_failure(result)


# ---------------------------------------------------------------- batch


def _report_batch(results, output: Path | None, fmt: OutputFormat) -> None:
    for result in results:
        console.print(f"\n[bold]Prompt:[/bold] {result.prompt}")
        for response in result.responses:
            if response.error is not None:
                console.print(f"[red]{response.model}: {response.error}[/red]")
            else:
                console.print(Panel(Text(response.response), title=response.model, border_style="green"))
    if output is not None:
        save_results(results, output, fmt)
        console.print(f"\n[green]Results saved to {output}[/green]")


@app.command()
def batch(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="One prompt per line; # starts a comment"),
    profile: str | None = ProfileOption,
    models: list[str] | None = ModelOption,
    output: Path | None = typer.Option(None, "--output", "-o", help="Write results to this file"),
    fmt: OutputFormat = typer.Option(OutputFormat.JSON, "--format", help="Output format"),
):
    """Send every prompt in a file to several models."""
    with _errors():
        _, resolved = resolve_profile(profile, models)
        if not resolved.models:
            raise NoModelSelectedError()
        prompts = read_prompts(file)
        if not prompts:
            console.print("[yellow]No prompts found[/yellow]")
            return

        async def _batch():
            async with get_transport() as transport:
                processor = BatchProcessor(transport, resolved.temperature, resolved.max_tokens)
                with console.status(f"Processing {len(prompts)} prompts...") as status:
                    return await processor.run(
                        prompts,
                        resolved.models,
                        on_progress=lambda done, total: status.update(f"Processed {done}/{total} prompts..."),
                    )

        results = asyncio.run(_batch())
    _report_batch(results, output, fmt)


@app.command()
def chain(
    initial: str = typer.Argument(..., help="Input for the first step"),
    steps: list[str] = typer.Option(..., "--step", "-s", help="Step prompt; {input} is the previous reply"),
    profile: str | None = ProfileOption,
    models: list[str] | None = ModelOption,
    output: Path | None = typer.Option(None, "--output", "-o", help="Write results to this file"),
    fmt: OutputFormat = typer.Option(OutputFormat.JSON, "--format", help="Output format"),
):
    """Run prompts in sequence, feeding each reply into the next step."""
    with _errors():
        _, resolved = resolve_profile(profile, models)
        if not resolved.models:
            raise NoModelSelectedError()

        async def _chain():
            async with get_transport() as transport:
                processor = BatchProcessor(transport, resolved.temperature, resolved.max_tokens)
                with console.status("Processing chain...") as status:
                    return await processor.chain(
                        initial,
                        steps,
                        resolved.models,
                        on_progress=lambda done, total: status.update(f"Step {done}/{total}..."),
                    )

        results = asyncio.run(_chain())
    _report_batch(results, output, fmt)
    if len(results) < len(steps) or results[-1].first_success() is None:
        console.print("[yellow]Chain stopped early: a step had no successful responses[/yellow]")
        raise typer.Exit(code=1)


# ---------------------------------------------------------------- export/import


@app.command(name="export")
def export_command(
    fmt: ExportFormat = typer.Argument(..., help="json, markdown, or html"),
    output: Path = typer.Argument(..., help="Destination file"),
    conversation: Path = typer.Option(
        ..., "--conversation", "-c", exists=True, dir_okay=False, help="Saved conversation (from /save)"
    ),
    metadata: bool = typer.Option(True, "--metadata/--no-metadata", help="Include model attribution"),
):
    """Export a saved conversation."""
    with _errors():
        try:
            conv = Conversation.from_json(conversation.read_text(encoding="utf-8"))
        except ValueError as e:
            console.print(f"[red]Error: {conversation} is not a saved conversation: {e}[/red]")
            raise typer.Exit(code=1) from e
        export_conversation(list(conv), output, fmt, include_metadata=metadata)
    console.print(f"[green]Conversation exported to {output}[/green]")


@app.command(name="import")
def import_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported conversation"),
    source: ImportFormat = typer.Option(ImportFormat.GENERIC, "--type", "-t", help="generic, chatgpt, or claude"),
    output: Path = typer.Option(..., "--output", "-o", help="Where to save the converted conversation"),
):
    """Import a conversation exported by another tool."""
    with _errors():
        messages = import_conversation(file, source)
        output.write_text(Conversation(messages).to_json(), encoding="utf-8")
    console.print(f"[green]Imported {len(messages)} messages to {output}[/green]")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
