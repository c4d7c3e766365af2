import json
import logging
import os
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..errors import ConfigError
from .models import AppConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


def write_private(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` readable only by the current user."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, 0o600)


class ConfigStore:
    """JSON-backed store for the API key and profiles.

    A missing file is created with defaults on first load. A corrupt file
    raises ConfigError instead of being silently replaced.
    """

    def __init__(self, home: Path):
        self.path = home / CONFIG_FILENAME
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self.load()
        return self._config

    def load(self) -> AppConfig:
        if not self.path.exists():
            config = AppConfig()
            self._config = config
            self.save()
            return config

        try:
            return AppConfig.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError) as exc:
            raise ConfigError(f"Failed to load config from {self.path}: {exc}") from exc

    def save(self) -> None:
        config = self.config
        config.last_used = datetime.now()
        write_private(self.path, json.dumps(config.model_dump(mode="json"), indent=2))
        logger.debug("Wrote config to %s", self.path)

    def set_api_key(self, api_key: str) -> None:
        api_key = api_key.strip()
        if not api_key:
            raise ConfigError("API key cannot be empty")
        self.config.api_key = api_key
        self.save()

    def get_api_key(self) -> str | None:
        return self.config.api_key

    def remove_api_key(self) -> None:
        self.config.api_key = None
        self.save()

    def reset(self) -> None:
        """Restore defaults, dropping the stored key and all profiles."""
        self._config = AppConfig()
        self.save()
