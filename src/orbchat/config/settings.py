import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv

from ..errors import ConfigError
from ..transport import DEFAULT_BASE_URL
from .models import AppSettings

DEFAULT_HOME = Path.home() / ".orbchat"


def load_settings(env: Mapping[str, str] | None = None) -> AppSettings:
    """Build settings from the environment.

    Args:
        env: Mapping to read instead of ``os.environ`` (no .env loading then)

    Environment variables:
        ORBCHAT_HOME: Config directory (default: ~/.orbchat)
        OPENROUTER_API_KEY: API key, overrides the stored one
        OPENROUTER_BASE_URL: API base URL (default: https://openrouter.ai/api/v1)
        ORBCHAT_LOG_LEVEL: Log level (default: WARNING)
        ORBCHAT_TIMEOUT: Request timeout in seconds (default: 60)
    """
    if env is None:
        load_dotenv()
        env = os.environ

    timeout_raw = env.get("ORBCHAT_TIMEOUT", "60")
    try:
        timeout = float(timeout_raw)
    except ValueError as exc:
        raise ConfigError(f"ORBCHAT_TIMEOUT must be a number, got {timeout_raw!r}") from exc

    home = env.get("ORBCHAT_HOME")
    return AppSettings(
        home=Path(home).expanduser() if home else DEFAULT_HOME,
        api_key=env.get("OPENROUTER_API_KEY") or None,
        base_url=env.get("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL,
        log_level=env.get("ORBCHAT_LOG_LEVEL", "WARNING").upper(),
        timeout=timeout,
    )
