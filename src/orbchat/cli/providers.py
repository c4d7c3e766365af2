"""Factory functions for CLI collaborators.

Centralizes creation of settings, stores and the transport from the
environment. Hides configuration details from command implementations.
"""

from functools import lru_cache

from ..config import AppSettings, ConfigStore, Profile, ProfileStore, TemplateStore, load_settings
from ..errors import MissingApiKeyError
from ..transport import HttpTransport


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Settings from the environment (and .env), read once per process."""
    return load_settings()


def get_config_store(settings: AppSettings | None = None) -> ConfigStore:
    return ConfigStore((settings or get_settings()).home)


def get_profile_store(settings: AppSettings | None = None) -> ProfileStore:
    return ProfileStore(get_config_store(settings))


def get_template_store(settings: AppSettings | None = None) -> TemplateStore:
    return TemplateStore((settings or get_settings()).home)


def require_api_key(settings: AppSettings | None = None) -> str:
    """API key from OPENROUTER_API_KEY, else the stored one.

    Raises:
        MissingApiKeyError: Neither source has a key
    """
    settings = settings or get_settings()
    api_key = settings.api_key or get_config_store(settings).get_api_key()
    if not api_key:
        raise MissingApiKeyError()
    return api_key


def get_transport(settings: AppSettings | None = None) -> HttpTransport:
    """HTTP transport configured from the environment.

    Environment variables:
        OPENROUTER_API_KEY: API key (overrides `orb config set-key`)
        OPENROUTER_BASE_URL: API base URL
        ORBCHAT_TIMEOUT: Request timeout in seconds
    """
    settings = settings or get_settings()
    return build_transport(require_api_key(settings), settings)


def build_transport(api_key: str, settings: AppSettings | None = None) -> HttpTransport:
    """HTTP transport for an explicit key, e.g. one being validated."""
    settings = settings or get_settings()
    return HttpTransport(
        api_key=api_key,
        base_url=settings.base_url,
        timeout=settings.timeout,
    )


def resolve_profile(
    profile_name: str | None = None,
    models: list[str] | None = None,
    settings: AppSettings | None = None,
) -> tuple[str, Profile]:
    """Resolve a profile, optionally replacing its model list.

    Raises:
        ProfileNotFoundError: ``profile_name`` does not exist
    """
    profiles = get_profile_store(settings)
    name = profile_name or profiles.default_name
    profile = profiles.resolve(name)
    if models:
        profile = Profile(
            models=models,
            temperature=profile.temperature,
            max_tokens=profile.max_tokens,
        )
    return name, profile
