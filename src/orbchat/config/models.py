"""Data models for persisted configuration."""

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PROFILE_NAME = "default"
DEFAULT_MODEL = "anthropic/claude-3-sonnet-20240229"


class Profile(BaseModel):
    """Named model set plus sampling parameters.

    The engine only ever sees a resolved, read-only copy.
    """

    model_config = ConfigDict(frozen=True)

    models: list[str] = Field(default_factory=list, description="Model ids, in slot order")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=4000, gt=0, description="Maximum tokens per reply")

    @field_validator("models")
    @classmethod
    def _dedupe_models(cls, models: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for model in models:
            model = model.strip()
            if model:
                seen.setdefault(model, None)
        return list(seen)


def default_profiles() -> dict[str, Profile]:
    return {DEFAULT_PROFILE_NAME: Profile(models=[DEFAULT_MODEL])}


class AppConfig(BaseModel):
    """Contents of ``config.json``."""

    api_key: str | None = Field(default=None)
    default_profile: str = Field(default=DEFAULT_PROFILE_NAME)
    profiles: dict[str, Profile] = Field(default_factory=default_profiles)
    last_used: datetime | None = Field(default=None)


class Template(BaseModel):
    """Reusable prompt with optional model and sampling overrides."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Unique template name")
    system: str | None = Field(default=None, description="Text prefixed to every prompt")
    prompt: str | None = Field(default=None, description="Prompt body; may contain {prompt}")
    models: list[str] | None = Field(default=None)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class AppliedTemplate(BaseModel):
    """A template expanded with the user's prompt."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    models: list[str] | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class AppSettings(BaseModel):
    """Process-level settings read from the environment."""

    model_config = ConfigDict(frozen=True)

    home: Path = Field(description="Directory holding config.json and templates.json")
    api_key: str | None = Field(default=None, description="Overrides the stored API key")
    base_url: str = Field(description="Backend API base URL")
    log_level: str = Field(default="WARNING")
    timeout: float = Field(default=60.0, gt=0)
