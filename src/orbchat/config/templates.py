import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ..errors import ConfigError, TemplateExistsError, TemplateNotFoundError
from .models import AppliedTemplate, Template

logger = logging.getLogger(__name__)

TEMPLATES_FILENAME = "templates.json"
PROMPT_PLACEHOLDER = "{prompt}"

_TEMPLATES = TypeAdapter(list[Template])


class TemplateStore:
    """Prompt templates persisted as a JSON array."""

    def __init__(self, home: Path):
        self.path = home / TEMPLATES_FILENAME

    def _load(self) -> list[Template]:
        if not self.path.exists():
            return []
        try:
            return _TEMPLATES.validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise ConfigError(f"Failed to load templates from {self.path}: {exc}") from exc

    def _save(self, templates: list[Template]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = [t.model_dump(mode="json") for t in templates]
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.debug("Wrote %d templates to %s", len(templates), self.path)

    def list(self) -> list[Template]:
        return self._load()

    def get(self, name: str) -> Template:
        for template in self._load():
            if template.name == name:
                return template
        raise TemplateNotFoundError(name)

    def create(self, template: Template) -> Template:
        templates = self._load()
        if any(t.name == template.name for t in templates):
            raise TemplateExistsError(template.name)
        templates.append(template)
        self._save(templates)
        return template

    def update(self, name: str, **changes: Any) -> Template:
        """Apply field changes; name and created_at are preserved."""
        templates = self._load()
        for index, existing in enumerate(templates):
            if existing.name == name:
                changes.pop("name", None)
                changes.pop("created_at", None)
                updated = Template.model_validate({
                    **existing.model_dump(),
                    **changes,
                    "updated_at": datetime.now(),
                })
                templates[index] = updated
                self._save(templates)
                return updated
        raise TemplateNotFoundError(name)

    def delete(self, name: str) -> None:
        templates = self._load()
        remaining = [t for t in templates if t.name != name]
        if len(remaining) == len(templates):
            raise TemplateNotFoundError(name)
        self._save(remaining)

    def apply(self, name: str, user_prompt: str | None = None) -> AppliedTemplate:
        """Expand a template with the user's prompt.

        The system text, if any, comes first followed by a blank line. Every
        ``{prompt}`` in the template body is replaced by ``user_prompt``; a
        template without a body uses ``user_prompt`` as is.
        """
        template = self.get(name)

        prompt = f"{template.system}\n\n" if template.system else ""
        if template.prompt:
            body = template.prompt
            if user_prompt:
                body = body.replace(PROMPT_PLACEHOLDER, user_prompt)
            prompt += body
        elif user_prompt:
            prompt += user_prompt

        return AppliedTemplate(
            prompt=prompt,
            models=template.models,
            temperature=template.temperature,
            max_tokens=template.max_tokens,
        )
