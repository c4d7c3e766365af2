"""Unit tests for the interactive chat session."""
import asyncio

import pytest
from conftest import FakeTransport, ModelScript, RecordingRenderer

from orbchat.chat import ChatSession, is_command
from orbchat.config import Profile
from orbchat.conversation import Conversation, Message
from orbchat.engine import ParallelChatEngine
from orbchat.errors import (
    NoModelSelectedError,
    OrbChatError,
    ProfileNotFoundError,
    SaveError,
    TurnInProgressError,
    UnknownCommandError,
)


@pytest.fixture
def transport():
    return FakeTransport({"a/one": ModelScript(tokens=["one"]), "b/two": ModelScript(tokens=["two"])})


@pytest.fixture
def session(transport, profile_store):
    engine = ParallelChatEngine(transport, Conversation(), Profile(models=["a/one", "b/two"]))
    return ChatSession(engine, profile_store)


class TestIsCommand:
    def test_slash_prefix(self):
        assert is_command("/help")
        assert is_command("  /models")
        assert not is_command("what is /etc?")


class TestSend:
    """Tests for sending messages."""

    @pytest.mark.asyncio
    async def test_send_uses_active_models(self, session):
        result = await session.send("hi")

        assert [o.model for o in result.outcomes] == ["a/one", "b/two"]
        assert [m.content for m in session.conversation] == ["hi", "one", "two"]

    @pytest.mark.asyncio
    async def test_send_after_switch(self, session, transport):
        session.handle_command("/switch b/two")

        await session.send("hi")

        assert transport.bodies_for("a/one") == []

    @pytest.mark.asyncio
    async def test_send_without_models(self, session):
        session.models = []
        with pytest.raises(NoModelSelectedError):
            await session.send("hi")
        assert len(session.conversation) == 0


class TestCommands:
    """Tests for slash commands."""

    def test_help(self, session):
        result = session.handle_command("/help")
        assert "/switch" in result.text
        assert not result.exit

    def test_unknown_command(self, session):
        with pytest.raises(UnknownCommandError) as exc_info:
            session.handle_command("/frobnicate now")
        assert exc_info.value.command == "/frobnicate"

    def test_commands_are_case_insensitive(self, session):
        assert session.handle_command("/MODELS").text == "Active models: a/one, b/two"

    def test_switch_accepts_commas_and_spaces(self, session):
        session.handle_command("/switch x/1,y/2 z/3 x/1")
        assert session.models == ["x/1", "y/2", "z/3"]

    def test_switch_without_args_keeps_models(self, session):
        result = session.handle_command("/switch")
        assert "Usage" in result.text
        assert session.models == ["a/one", "b/two"]

    def test_profile_switch(self, session, profile_store):
        profile_store.create("fast", Profile(models=["c/three"], temperature=1.2))

        session.handle_command("/profile fast")

        assert session.profile_name == "fast"
        assert session.models == ["c/three"]
        assert session.engine.profile.temperature == 1.2

    def test_profile_unknown(self, session):
        with pytest.raises(ProfileNotFoundError):
            session.handle_command("/profile missing")
        assert session.models == ["a/one", "b/two"]

    def test_profile_without_args_reports_current(self, session):
        assert "default" in session.handle_command("/profile").text

    def test_clear(self, session):
        session.conversation.append(Message.user("q"))
        session.handle_command("/clear")
        assert len(session.conversation) == 0

    def test_save(self, session, tmp_path):
        session.conversation.extend([Message.user("q"), Message.assistant("a", "a/one")])
        path = tmp_path / "chat.json"

        session.handle_command(f"/save {path}")

        restored = Conversation.from_json(path.read_text())
        assert [(m.content, m.model) for m in restored] == [("q", None), ("a", "a/one")]

    def test_save_to_missing_directory(self, session, tmp_path):
        session.conversation.append(Message.user("q"))
        path = tmp_path / "missing-dir" / "chat.json"

        with pytest.raises(SaveError) as exc_info:
            session.handle_command(f"/save {path}")

        assert isinstance(exc_info.value, OrbChatError)
        assert "missing-dir" in str(exc_info.value)
        assert not path.exists()
        assert len(session.conversation) == 1

    def test_history(self, session):
        assert session.handle_command("/history").text == "No messages yet"
        session.conversation.extend([Message.user("q"), Message.assistant("a", "a/one")])

        text = session.handle_command("/history").text

        assert "[user] q" in text
        assert "[a/one] a" in text

    def test_exit_and_quit(self, session):
        assert session.handle_command("/exit").exit
        assert session.handle_command("/quit").exit


class TestClearDuringTurn:
    """History cannot be cleared while replies are streaming."""

    @pytest.mark.asyncio
    async def test_clear_is_refused_mid_turn(self, profile_store):
        renderer = RecordingRenderer()
        transport = FakeTransport({"a/one": ModelScript(tokens=["partial"], hang=True)})
        engine = ParallelChatEngine(transport, Conversation(), Profile(models=["a/one"]), renderer)
        session = ChatSession(engine, profile_store)

        task = asyncio.create_task(session.send("hello"))
        await asyncio.wait_for(renderer.first_token.wait(), timeout=1)

        with pytest.raises(TurnInProgressError):
            session.handle_command("/clear")
        assert [m.content for m in session.conversation] == ["hello"]

        session.interrupt()
        result = await asyncio.wait_for(task, timeout=1)

        assert result.interrupted
        assert len(session.conversation) == 0

    @pytest.mark.asyncio
    async def test_clear_after_turn_leaves_no_orphans(self, profile_store):
        transport = FakeTransport({"a/one": ModelScript(tokens=["answer"], delay=0.01)})
        engine = ParallelChatEngine(transport, Conversation(), Profile(models=["a/one"]))
        session = ChatSession(engine, profile_store)

        task = asyncio.create_task(session.send("hello"))
        await asyncio.sleep(0)
        with pytest.raises(TurnInProgressError):
            session.handle_command("/clear")
        await asyncio.wait_for(task, timeout=1)

        assert [m.role.value for m in session.conversation] == ["user", "assistant"]
        session.handle_command("/clear")
        assert len(session.conversation) == 0
