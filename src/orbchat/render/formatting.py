"""Text formatting for model listings and profile summaries.

Produces Rich markup strings; callers decide where they are printed.
"""

from datetime import datetime

from rich.table import Table

from ..config import Profile
from ..directory import ModelInfo, Pricing


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


def format_price(value: float) -> str:
    """Per-token price as dollars per 1K tokens."""
    return f"${value * 1000:.4g}/1K"


def format_pricing(pricing: Pricing | None) -> str | None:
    if pricing is None or (not pricing.prompt and not pricing.completion):
        return None
    if pricing.prompt and pricing.completion:
        return (
            f"Pricing: {format_price(pricing.prompt)} prompt, "
            f"{format_price(pricing.completion)} completion"
        )
    if pricing.prompt:
        return f"Pricing: {format_price(pricing.prompt)} prompt"
    return f"Pricing: {format_price(pricing.completion)} completion"


def format_model_line(model: ModelInfo, verbose: bool = False) -> str:
    """One listing entry: id, free marker, name, context and pricing."""
    line = f"[cyan]{model.id}[/cyan]"
    if model.is_free:
        line += "[green] (free)[/green]"
    if model.name and model.name != model.id:
        line += f"[dim] ({model.name})[/dim]"

    details = []
    if model.context_length:
        details.append(f"Context: {model.context_length:,}")
    pricing = None if model.is_free else format_pricing(model.pricing)
    if pricing:
        details.append(pricing)

    if verbose:
        if model.description:
            details.append(f"[dim]{truncate(model.description, 60)}[/dim]")
        if details:
            line += "\n  " + " | ".join(details)
    elif details:
        line += "[dim] - " + " | ".join(details) + "[/dim]"
    return line


def format_model_list(models: list[ModelInfo], verbose: bool = False) -> str:
    if not models:
        return "[yellow]No models found[/yellow]"
    ordered = sorted(models, key=lambda m: (not m.is_free, m.id))
    return "\n".join(format_model_line(m, verbose) for m in ordered)


def format_model_info(model: ModelInfo) -> str:
    lines = [f"[bold cyan]Model: {model.id}[/bold cyan]" + (" [green](free)[/green]" if model.is_free else "")]
    if model.name and model.name != model.id:
        lines.append(f"Name: {model.name}")
    if model.description:
        lines.append(f"Description: {model.description}")
    if model.context_length:
        lines.append(f"Context Length: {model.context_length:,} tokens")
    pricing = format_pricing(model.pricing)
    if pricing:
        lines.append(pricing)
    elif model.is_free:
        lines.append("[green]Pricing: Free[/green]")
    if model.top_provider:
        lines.append(f"Provider: {model.top_provider}")
    if model.created:
        lines.append(f"Created: {datetime.fromtimestamp(model.created):%Y-%m-%d}")
    return "\n".join(lines)


def profile_table(profiles: list[tuple[str, Profile]], default_name: str) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Profile")
    table.add_column("Models")
    table.add_column("Temperature", justify="right")
    table.add_column("Max Tokens", justify="right")
    for name, profile in profiles:
        label = f"{name} [green](default)[/green]" if name == default_name else name
        table.add_row(
            label,
            "\n".join(profile.models) or "[dim](none)[/dim]",
            f"{profile.temperature:g}",
            str(profile.max_tokens),
        )
    return table
