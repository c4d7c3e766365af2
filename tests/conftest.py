"""Pytest configuration and shared fixtures."""
import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from orbchat.config import ConfigStore, Profile, ProfileStore, TemplateStore
from orbchat.conversation import Conversation
from orbchat.engine import ModelOutcome, RenderAdapter
from orbchat.transport import TokenStream, Transport


def delta_line(token: str) -> str:
    """One event-stream line carrying a content delta."""
    return "data: " + json.dumps({"choices": [{"delta": {"content": token}}]})


@dataclass
class ModelScript:
    """Scripted behavior for one model of a FakeTransport."""

    tokens: list[str] = field(default_factory=list)
    delay: float = 0.0
    fail_open: Exception | None = None
    fail_after: Exception | None = None
    hang: bool = False


class FakeTransport(Transport):
    """In-memory transport that replays scripted streams per model."""

    def __init__(
        self,
        scripts: dict[str, ModelScript] | None = None,
        models: list[dict[str, Any]] | None = None,
    ):
        self.scripts = scripts or {}
        self.models = models or []
        self.requests: list[tuple[str, dict[str, Any] | None]] = []
        self.list_calls = 0
        self.closed = False

    def script_for(self, model: str) -> ModelScript:
        return self.scripts.get(model, ModelScript(tokens=[f"reply from {model}"]))

    async def request(self, endpoint, body=None, method="POST"):
        self.requests.append((endpoint, body))
        if endpoint == "/models":
            self.list_calls += 1
            return {"data": self.models}
        script = self.script_for(body["model"])
        if script.fail_open is not None:
            raise script.fail_open
        if script.delay:
            await asyncio.sleep(script.delay)
        return {"choices": [{"message": {"content": "".join(script.tokens)}}]}

    async def stream_request(self, endpoint, body):
        self.requests.append((endpoint, body))
        script = self.script_for(body["model"])
        if script.fail_open is not None:
            raise script.fail_open

        async def lines():
            for token in script.tokens:
                if script.delay:
                    await asyncio.sleep(script.delay)
                yield delta_line(token)
            if script.fail_after is not None:
                raise script.fail_after
            if script.hang:
                await asyncio.Event().wait()
            yield "data: [DONE]"

        return TokenStream(lines())

    async def close(self):
        self.closed = True

    def bodies_for(self, model: str) -> list[dict[str, Any]]:
        return [
            body for endpoint, body in self.requests
            if endpoint == "/chat/completions" and body and body["model"] == model
        ]


class RecordingRenderer(RenderAdapter):
    """Records every engine callback in call order."""

    def __init__(self):
        self.events: list[tuple] = []
        self.tokens: dict[str, list[str]] = {}
        self.outcomes: list[ModelOutcome] | None = None
        self.first_token = asyncio.Event()

    def on_turn_start(self, models):
        self.events.append(("start", tuple(models)))

    def on_token(self, model, token):
        self.tokens.setdefault(model, []).append(token)
        self.first_token.set()

    def on_model_done(self, model, content):
        self.events.append(("done", model, content))

    def on_model_error(self, model, error):
        self.events.append(("error", model, error))

    def on_turn_complete(self, outcomes):
        self.events.append(("complete",))
        self.outcomes = outcomes


@pytest.fixture
def conversation():
    """Return an empty conversation."""
    return Conversation()


@pytest.fixture
def profile():
    """Return a two-model profile."""
    return Profile(models=["openai/gpt-4o", "anthropic/claude-3-haiku"], temperature=0.3, max_tokens=256)


@pytest.fixture
def home(tmp_path) -> Path:
    """Return an isolated config directory."""
    return tmp_path / "orbchat-home"


@pytest.fixture
def config_store(home):
    return ConfigStore(home)


@pytest.fixture
def profile_store(config_store):
    return ProfileStore(config_store)


@pytest.fixture
def template_store(home):
    return TemplateStore(home)


@pytest.fixture
def sample_models():
    """Return raw model directory entries as the backend reports them."""
    return [
        {
            "id": "openai/gpt-4o",
            "name": "GPT-4o",
            "description": "Flagship multimodal model",
            "context_length": 128000,
            "pricing": {"prompt": "0.000005", "completion": "0.000015"},
        },
        {
            "id": "meta-llama/llama-3-8b-instruct:free",
            "name": "Llama 3 8B (free)",
            "context_length": 8192,
            "pricing": {"prompt": "0", "completion": "0"},
        },
        {
            "id": "anthropic/claude-3-haiku",
            "name": "Claude 3 Haiku",
            "description": "Fast and compact",
            "pricing": {"prompt": "0.00000025", "completion": "0.00000125"},
        },
        {
            "id": "openai/gpt-3.5-turbo",
            "name": "GPT-3.5 Turbo",
            "pricing": {"prompt": "0.0000005", "completion": "0.0000015"},
        },
        {"id": "local-model"},
    ]
