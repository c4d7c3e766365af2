"""Terminal rendering for the chat engine and model listings."""

from .console import LiveConsoleRenderer, SummaryRenderer, outcome_panel
from .formatting import (
    format_model_info,
    format_model_line,
    format_model_list,
    format_pricing,
    profile_table,
    truncate,
)

__all__ = [
    "LiveConsoleRenderer",
    "SummaryRenderer",
    "format_model_info",
    "format_model_line",
    "format_model_list",
    "format_pricing",
    "outcome_panel",
    "profile_table",
    "truncate",
]
