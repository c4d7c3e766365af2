from enum import Enum

from .models import ModelInfo, sort_key


class SelectionMode(str, Enum):
    """How a set of model ids is picked from the directory."""

    ALL = "all"
    FREE = "free"
    PROVIDER = "provider"
    SEARCH = "search"


def select_models(
    candidates: list[ModelInfo],
    mode: SelectionMode,
    query: str | None = None,
) -> list[str]:
    """Pick model ids from ``candidates``.

    ``query`` names the provider for ``PROVIDER`` mode and the search text
    for ``SEARCH`` mode. Results are ordered free-first, then by id.
    """
    if mode in (SelectionMode.PROVIDER, SelectionMode.SEARCH) and not query:
        raise ValueError(f"Selection mode '{mode.value}' requires a query")

    if mode is SelectionMode.ALL:
        picked = candidates
    elif mode is SelectionMode.FREE:
        picked = [m for m in candidates if m.is_free]
    elif mode is SelectionMode.PROVIDER:
        picked = [m for m in candidates if m.provider == query]
    else:
        needle = query.lower()
        picked = [
            m for m in candidates
            if needle in m.id.lower()
            or (m.name and needle in m.name.lower())
            or (m.description and needle in m.description.lower())
        ]
    return [m.id for m in sorted(picked, key=sort_key)]
