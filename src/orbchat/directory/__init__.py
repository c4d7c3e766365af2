"""Model directory module.

This module hides how the backend's model catalogue is fetched and cached.

Public API:
    - ModelInfo, Pricing: Directory entry models
    - ModelDirectory: TTL-cached catalogue with search and grouping
    - SelectionMode, select_models: Pick model ids for a chat turn
"""

from .catalog import DEFAULT_CACHE_TTL, ModelDirectory
from .models import OTHER_PROVIDER, ModelInfo, Pricing, provider_of
from .selection import SelectionMode, select_models

__all__ = [
    "DEFAULT_CACHE_TTL",
    "ModelDirectory",
    "ModelInfo",
    "OTHER_PROVIDER",
    "Pricing",
    "SelectionMode",
    "provider_of",
    "select_models",
]
