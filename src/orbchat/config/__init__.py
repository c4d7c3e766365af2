"""Configuration module.

This module hides where and how profiles, templates and the API key are
persisted.

Public API:
    - AppSettings, load_settings: Environment-derived settings
    - ConfigStore: config.json (API key, profiles, default profile)
    - ProfileStore, Profile: Named model sets
    - TemplateStore, Template, AppliedTemplate: Prompt templates
"""

from .models import (
    DEFAULT_MODEL,
    DEFAULT_PROFILE_NAME,
    AppConfig,
    AppliedTemplate,
    AppSettings,
    Profile,
    Template,
)
from .profiles import ProfileStore
from .settings import load_settings
from .store import ConfigStore
from .templates import TemplateStore

__all__ = [
    "AppConfig",
    "AppSettings",
    "AppliedTemplate",
    "ConfigStore",
    "DEFAULT_MODEL",
    "DEFAULT_PROFILE_NAME",
    "Profile",
    "ProfileStore",
    "Template",
    "TemplateStore",
    "load_settings",
]
