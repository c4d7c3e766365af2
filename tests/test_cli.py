"""Tests for the command-line interface."""
import json

import httpx
import pytest
from typer.testing import CliRunner

from orbchat.cli.app import app
from orbchat.cli.providers import get_settings
from orbchat.transport import HttpTransport

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Isolated home directory and no API key from the environment."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield {"ORBCHAT_HOME": str(tmp_path / "home"), "OPENROUTER_API_KEY": ""}
    get_settings.cache_clear()


def invoke(env, *args):
    return runner.invoke(app, list(args), env=env)


def serve_models(monkeypatch, status: int, seen: list[str] | None = None) -> None:
    """Route key validation to an in-memory API answering with ``status``."""
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request.headers["Authorization"])
        if status == 200:
            return httpx.Response(200, json={"data": [{"id": "openai/gpt-4o"}]})
        return httpx.Response(status, json={"error": {"message": "User not found."}})

    def build(api_key, settings=None):
        return HttpTransport(api_key, base_url="https://example.test/api/v1", transport=httpx.MockTransport(handler))

    monkeypatch.setattr("orbchat.cli.app.build_transport", build)


class TestConfigCommands:
    def test_set_and_show_key(self, env, tmp_path):
        result = invoke(env, "config", "set-key", "sk-abcd1234", "--no-verify")
        assert result.exit_code == 0

        data = json.loads((tmp_path / "home" / "config.json").read_text())
        assert data["api_key"] == "sk-abcd1234"

        shown = invoke(env, "config", "show")
        assert shown.exit_code == 0
        assert "...1234" in shown.stdout
        assert "sk-abcd1234" not in shown.stdout

    def test_set_key_is_validated(self, env, tmp_path, monkeypatch):
        seen = []
        serve_models(monkeypatch, 200, seen)

        result = invoke(env, "config", "set-key", "sk-good")

        assert result.exit_code == 0
        assert seen == ["Bearer sk-good"]
        data = json.loads((tmp_path / "home" / "config.json").read_text())
        assert data["api_key"] == "sk-good"

    def test_invalid_key_is_not_saved(self, env, tmp_path, monkeypatch):
        serve_models(monkeypatch, 401)

        result = invoke(env, "config", "set-key", "sk-bad")

        assert result.exit_code == 1
        assert "Invalid API key" in result.stdout
        assert not (tmp_path / "home" / "config.json").exists()

    def test_no_verify_skips_the_check(self, env, tmp_path, monkeypatch):
        seen = []
        serve_models(monkeypatch, 401, seen)

        result = invoke(env, "config", "set-key", "sk-offline", "--no-verify")

        assert result.exit_code == 0
        assert seen == []
        data = json.loads((tmp_path / "home" / "config.json").read_text())
        assert data["api_key"] == "sk-offline"

    def test_reset_requires_confirmation(self, env):
        invoke(env, "config", "set-key", "sk-abcd1234", "--no-verify")

        result = runner.invoke(app, ["config", "reset"], env=env, input="n\n")

        assert "Aborted" in result.stdout


class TestProfileCommands:
    def test_create_list_use(self, env):
        created = invoke(env, "profile", "create", "work", "-m", "openai/gpt-4o", "-m", "anthropic/claude-3-haiku")
        assert created.exit_code == 0
        assert "2 model(s)" in created.stdout

        assert invoke(env, "profile", "use", "work").exit_code == 0

        listed = invoke(env, "profile", "list")
        assert "work" in listed.stdout
        assert "(default)" in listed.stdout

    def test_duplicate_profile_fails(self, env):
        invoke(env, "profile", "create", "work", "-m", "a/b")

        result = invoke(env, "profile", "create", "work", "-m", "a/b")

        assert result.exit_code == 1
        assert "already exists" in result.stdout

    def test_edit(self, env, tmp_path):
        invoke(env, "profile", "create", "work", "-m", "a/b", "-m", "c/d")

        result = invoke(env, "profile", "edit", "work", "--add", "e/f", "--remove", "a/b", "-t", "1.1")

        assert result.exit_code == 0
        data = json.loads((tmp_path / "home" / "config.json").read_text())
        assert data["profiles"]["work"]["models"] == ["c/d", "e/f"]
        assert data["profiles"]["work"]["temperature"] == 1.1

    def test_delete_default_fails(self, env):
        result = invoke(env, "profile", "delete", "default")

        assert result.exit_code == 1
        assert "Cannot delete the default profile" in result.stdout

    def test_use_unknown_profile(self, env):
        result = invoke(env, "profile", "use", "ghost")

        assert result.exit_code == 1
        assert "does not exist" in result.stdout


class TestTemplateCommands:
    def test_create_show_delete(self, env):
        created = invoke(env, "template", "create", "review", "--prompt", "Review {prompt}")
        assert created.exit_code == 0

        shown = invoke(env, "template", "show", "review")
        assert "Review {prompt}" in shown.stdout

        assert invoke(env, "template", "delete", "review").exit_code == 0
        assert invoke(env, "template", "show", "review").exit_code == 1


class TestRequestCommands:
    def test_ask_without_key(self, env):
        result = invoke(env, "ask", "hello")

        assert result.exit_code == 1
        assert "No API key found" in result.stdout

    def test_import_then_export(self, env, tmp_path):
        source = tmp_path / "claude.json"
        source.write_text(json.dumps([
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]))
        saved = tmp_path / "saved.json"
        exported = tmp_path / "chat.md"

        imported = invoke(env, "import", str(source), "--type", "claude", "--output", str(saved))
        assert imported.exit_code == 0
        assert "Imported 2 messages" in imported.stdout

        result = invoke(env, "export", "markdown", str(exported), "--conversation", str(saved))
        assert result.exit_code == 0
        assert "## Assistant" in exported.read_text()
