from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from ..transport import Transport
from .models import ModelInfo, sort_key

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300.0


class ModelDirectory:
    """Cached view of the backend's model list.

    A fetched list is reused until ``cache_ttl`` seconds have passed or a
    refresh is forced. Fetch failures propagate to the caller; a stale list
    is never served in place of a failed fetch.
    """

    def __init__(
        self,
        transport: Transport,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._models: list[ModelInfo] = []
        self._fetched_at: float | None = None

    def _is_fresh(self) -> bool:
        return (
            self._fetched_at is not None
            and self._clock() - self._fetched_at < self._cache_ttl
        )

    async def _fetch(self, force_refresh: bool = False) -> list[ModelInfo]:
        if not force_refresh and self._is_fresh():
            return self._models

        raw = await self._transport.list_models()
        models = []
        for entry in raw:
            if not isinstance(entry, dict) or "id" not in entry:
                logger.debug("Ignoring directory entry without id: %r", entry)
                continue
            try:
                models.append(ModelInfo.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping malformed directory entry %r (%d invalid fields)", entry["id"], exc.error_count())

        self._models = models
        self._fetched_at = self._clock()
        logger.info("Fetched %d models", len(models))
        return self._models

    async def list(
        self,
        force_refresh: bool = False,
        filter: str | None = None,
    ) -> list[ModelInfo]:
        """All models, optionally filtered by a case-insensitive id/name substring."""
        models = await self._fetch(force_refresh)
        if not filter:
            return list(models)
        needle = filter.lower()
        return [
            m for m in models
            if needle in m.id.lower() or (m.name and needle in m.name.lower())
        ]

    async def search(self, query: str) -> list[ModelInfo]:
        """Models whose id, name, or description contains ``query``."""
        needle = query.lower()
        return [
            m for m in await self._fetch()
            if needle in m.id.lower()
            or (m.name and needle in m.name.lower())
            or (m.description and needle in m.description.lower())
        ]

    async def get(self, model_id: str) -> ModelInfo | None:
        for model in await self._fetch():
            if model.id == model_id:
                return model
        return None

    async def group_by_provider(self) -> dict[str, list[ModelInfo]]:
        """Models grouped by provider; providers sorted, free models first."""
        grouped: dict[str, list[ModelInfo]] = {}
        for model in await self._fetch():
            grouped.setdefault(model.provider, []).append(model)
        return {
            provider: sorted(grouped[provider], key=sort_key)
            for provider in sorted(grouped)
        }

    async def providers(self) -> list[str]:
        return list(await self.group_by_provider())
