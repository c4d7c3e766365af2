from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

OTHER_PROVIDER = "other"


def provider_of(model_id: str) -> str:
    """Organization prefix of a model id (``other`` when there is none)."""
    prefix, sep, _ = model_id.partition("/")
    return prefix if sep and prefix else OTHER_PROVIDER


class Pricing(BaseModel):
    """Per-token prices as reported by the backend."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt: float = Field(default=0.0, description="Price per prompt token")
    completion: float = Field(default=0.0, description="Price per completion token")

    @field_validator("prompt", "completion", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> float:
        if value in (None, ""):
            return 0.0
        return float(value)


class ModelInfo(BaseModel):
    """One entry of the backend's model directory."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(description="Backend model identifier, e.g. 'openai/gpt-4o'")
    name: str | None = Field(default=None, description="Human-readable name")
    description: str | None = Field(default=None)
    context_length: int | None = Field(default=None, description="Context window in tokens")
    pricing: Pricing | None = Field(default=None)
    top_provider: dict[str, Any] | str | None = Field(default=None)
    created: int | None = Field(default=None, description="Unix timestamp")

    @property
    def provider(self) -> str:
        return provider_of(self.id)

    @property
    def is_free(self) -> bool:
        """A model without pricing, or with zero prompt and completion price."""
        if self.pricing is None:
            return True
        return self.pricing.prompt == 0 and self.pricing.completion == 0

    @property
    def display_name(self) -> str:
        return self.name or self.id


def sort_key(model: ModelInfo) -> tuple[bool, str]:
    """Free models first, then by id."""
    return (not model.is_free, model.id)
