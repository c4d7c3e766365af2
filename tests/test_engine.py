"""Unit tests for the parallel chat engine."""
import asyncio

import pytest
from conftest import FakeTransport, ModelScript, RecordingRenderer
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from orbchat.config import Profile
from orbchat.conversation import Conversation, Message, Role
from orbchat.engine import OutcomeStatus, ParallelChatEngine
from orbchat.errors import ApiError, NoModelSelectedError, TransportError

GPT = "openai/gpt-4o"
CLAUDE = "anthropic/claude-3-haiku"
LLAMA = "meta-llama/llama-3-8b-instruct:free"


def make_engine(scripts=None, models=(GPT, CLAUDE), conversation=None):
    transport = FakeTransport(scripts)
    renderer = RecordingRenderer()
    engine = ParallelChatEngine(
        transport,
        conversation if conversation is not None else Conversation(),
        Profile(models=list(models), temperature=0.3, max_tokens=256),
        renderer,
    )
    return engine, transport, renderer


class TestRunTurn:
    """Tests for a complete turn."""

    @pytest.mark.asyncio
    async def test_every_model_replies(self):
        engine, _, renderer = make_engine({
            GPT: ModelScript(tokens=["Hel", "lo"]),
            CLAUDE: ModelScript(tokens=["Hi"]),
        })

        result = await engine.run_turn("Say hello")

        assert [o.status for o in result.outcomes] == [OutcomeStatus.COMPLETED] * 2
        assert [(m.role, m.content, m.model) for m in engine.conversation] == [
            (Role.USER, "Say hello", None),
            (Role.ASSISTANT, "Hello", GPT),
            (Role.ASSISTANT, "Hi", CLAUDE),
        ]
        assert renderer.tokens == {GPT: ["Hel", "lo"], CLAUDE: ["Hi"]}
        assert renderer.events[0] == ("start", (GPT, CLAUDE))
        assert renderer.events[-1] == ("complete",)

    @pytest.mark.asyncio
    async def test_request_uses_profile_settings(self):
        engine, transport, _ = make_engine()

        await engine.run_turn("q")

        body = transport.bodies_for(GPT)[0]
        assert body["temperature"] == 0.3
        assert body["max_tokens"] == 256
        assert body["stream"] is True
        assert body["messages"] == [{"role": "user", "content": "q"}]

    @pytest.mark.asyncio
    async def test_explicit_models_override_profile(self):
        engine, transport, _ = make_engine()

        result = await engine.run_turn("q", models=[LLAMA])

        assert [o.model for o in result.outcomes] == [LLAMA]
        assert transport.bodies_for(GPT) == []

    @pytest.mark.asyncio
    async def test_duplicate_models_are_sent_once(self):
        engine, transport, _ = make_engine()

        result = await engine.run_turn("q", models=[GPT, GPT, CLAUDE])

        assert [o.slot for o in result.outcomes] == [0, 1]
        assert len(transport.bodies_for(GPT)) == 1

    @pytest.mark.asyncio
    async def test_no_model_selected(self):
        engine, transport, renderer = make_engine(models=())

        with pytest.raises(NoModelSelectedError):
            await engine.run_turn("q")

        assert len(engine.conversation) == 0
        assert transport.requests == []
        assert renderer.events == []

    @pytest.mark.asyncio
    async def test_empty_reply_is_committed(self):
        engine, _, _ = make_engine({GPT: ModelScript(tokens=[])}, models=(GPT,))

        result = await engine.run_turn("q")

        last = engine.conversation.messages[-1]
        assert result.outcomes[0].ok
        assert (last.role, last.content, last.model) == (Role.ASSISTANT, "", GPT)


class TestPartialFailure:
    """One model failing never affects its siblings."""

    @pytest.mark.asyncio
    async def test_failure_on_open(self):
        engine, _, renderer = make_engine({
            GPT: ModelScript(tokens=["fine"]),
            CLAUDE: ModelScript(fail_open=ApiError(404, "no such model")),
        })

        result = await engine.run_turn("q")

        assert result.get(GPT).ok
        assert result.get(CLAUDE).status is OutcomeStatus.FAILED
        assert "404" in result.get(CLAUDE).error
        assert [m.model for m in engine.conversation if m.role is Role.ASSISTANT] == [GPT]
        assert ("error", CLAUDE, result.get(CLAUDE).error) in renderer.events
        assert ("done", GPT, "fine") in renderer.events

    @pytest.mark.asyncio
    async def test_failure_mid_stream_commits_nothing(self):
        engine, _, renderer = make_engine({
            GPT: ModelScript(tokens=["par", "tial"], fail_after=TransportError("connection reset")),
            CLAUDE: ModelScript(tokens=["whole"]),
        })

        result = await engine.run_turn("q")

        failed = result.get(GPT)
        assert failed.status is OutcomeStatus.FAILED
        assert failed.content == "partial"
        assert renderer.tokens[GPT] == ["par", "tial"]
        assert [m.content for m in engine.conversation] == ["q", "whole"]

    @pytest.mark.asyncio
    async def test_all_models_fail(self):
        engine, _, renderer = make_engine({
            GPT: ModelScript(fail_open=TransportError("down")),
            CLAUDE: ModelScript(fail_open=TransportError("down")),
        })

        result = await engine.run_turn("q")

        assert result.succeeded == []
        assert len(result.failed) == 2
        assert [m.content for m in engine.conversation] == ["q"]
        assert renderer.events[-1] == ("complete",)


class TestOrdering:
    """Replies land in slot order whatever the completion order."""

    @pytest.mark.asyncio
    async def test_slow_first_model_still_commits_first(self):
        engine, _, renderer = make_engine({
            GPT: ModelScript(tokens=["slow"], delay=0.05),
            CLAUDE: ModelScript(tokens=["fast"]),
        })

        await engine.run_turn("q")

        done = [e[1] for e in renderer.events if e[0] == "done"]
        assert done == [CLAUDE, GPT]
        assert [m.model for m in engine.conversation if m.role is Role.ASSISTANT] == [GPT, CLAUDE]

    @settings(max_examples=15, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    @given(st.lists(st.integers(min_value=0, max_value=3), min_size=3, max_size=3))
    def test_log_does_not_depend_on_timing(self, delays_ms):
        """Property test: completion timing never changes the committed log."""
        models = (GPT, CLAUDE, LLAMA)
        scripts = {
            model: ModelScript(tokens=[model, "!"], delay=ms / 1000)
            for model, ms in zip(models, delays_ms)
        }
        engine, _, _ = make_engine(scripts, models=models)

        asyncio.run(engine.run_turn("q"))

        assert [(m.model, m.content) for m in engine.conversation] == [
            (None, "q"),
            (GPT, f"{GPT}!"),
            (CLAUDE, f"{CLAUDE}!"),
            (LLAMA, f"{LLAMA}!"),
        ]


class TestHistoryIsolation:
    """Each model is sent only its own previous replies."""

    @pytest.mark.asyncio
    async def test_second_turn_views(self):
        engine, transport, _ = make_engine({
            GPT: ModelScript(tokens=["gpt answer"]),
            CLAUDE: ModelScript(tokens=["claude answer"]),
        })

        await engine.run_turn("first")
        await engine.run_turn("second")

        second_gpt = transport.bodies_for(GPT)[1]["messages"]
        assert second_gpt == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "gpt answer"},
            {"role": "user", "content": "second"},
        ]
        assert {"role": "assistant", "content": "gpt answer"} not in transport.bodies_for(CLAUDE)[1]["messages"]

    @pytest.mark.asyncio
    async def test_model_switch_mid_conversation(self):
        engine, transport, _ = make_engine()

        await engine.run_turn("first", models=[GPT])
        await engine.run_turn("second", models=[CLAUDE])

        assert transport.bodies_for(CLAUDE)[0]["messages"] == [
            {"role": "user", "content": "first"},
            {"role": "user", "content": "second"},
        ]

    @pytest.mark.asyncio
    async def test_switch_profile_applies_to_next_turn(self):
        engine, transport, _ = make_engine()

        engine.switch_profile(Profile(models=[LLAMA], temperature=1.5, max_tokens=10))
        await engine.run_turn("q")

        assert transport.bodies_for(LLAMA)[0]["temperature"] == 1.5
        assert transport.bodies_for(GPT) == []


class TestInterrupt:
    """Interrupting a turn discards everything the turn added."""

    @pytest.mark.asyncio
    async def test_interrupt_commits_nothing(self):
        conversation = Conversation([Message.user("earlier"), Message.assistant("reply", GPT)])
        engine, transport, renderer = make_engine(
            {
                GPT: ModelScript(tokens=["streaming"], hang=True),
                CLAUDE: ModelScript(tokens=["done quickly"]),
            },
            conversation=conversation,
        )

        task = asyncio.create_task(engine.run_turn("new question"))
        await asyncio.wait_for(renderer.first_token.wait(), timeout=1)
        await asyncio.sleep(0.01)
        engine.interrupt()
        result = await asyncio.wait_for(task, timeout=1)

        assert result.interrupted
        assert [m.content for m in engine.conversation] == ["earlier", "reply"]
        assert result.get(GPT).status is OutcomeStatus.INTERRUPTED
        assert result.get(GPT).content == "streaming"
        assert renderer.events[-1] == ("complete",)
        assert not engine.is_running

    @pytest.mark.asyncio
    async def test_cancelling_the_caller_rolls_back(self, conversation):
        engine, _, renderer = make_engine(
            {GPT: ModelScript(tokens=["x"], hang=True), CLAUDE: ModelScript(tokens=["y"], hang=True)},
            conversation=conversation,
        )

        task = asyncio.create_task(engine.run_turn("q"))
        await asyncio.wait_for(renderer.first_token.wait(), timeout=1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(conversation) == 0
        assert renderer.outcomes is not None
        assert all(o.status is OutcomeStatus.INTERRUPTED for o in renderer.outcomes)

    @pytest.mark.asyncio
    async def test_interrupt_without_turn_is_noop(self):
        engine, _, _ = make_engine()
        engine.interrupt()

        result = await engine.run_turn("q")

        assert not result.interrupted

    @pytest.mark.asyncio
    async def test_concurrent_turn_is_rejected(self):
        engine, _, renderer = make_engine({GPT: ModelScript(tokens=["x"], hang=True)}, models=(GPT,))

        task = asyncio.create_task(engine.run_turn("first"))
        await asyncio.wait_for(renderer.first_token.wait(), timeout=1)
        with pytest.raises(RuntimeError):
            await engine.run_turn("second")

        engine.interrupt()
        await task
        assert len(engine.conversation) == 0

    @pytest.mark.asyncio
    async def test_engine_usable_after_interrupt(self):
        scripts = {GPT: ModelScript(tokens=["x"], hang=True)}
        engine, transport, renderer = make_engine(scripts, models=(GPT,))

        task = asyncio.create_task(engine.run_turn("first"))
        await asyncio.wait_for(renderer.first_token.wait(), timeout=1)
        engine.interrupt()
        await task

        transport.scripts[GPT] = ModelScript(tokens=["ok"])
        result = await engine.run_turn("second")

        assert not result.interrupted
        assert [m.content for m in engine.conversation] == ["second", "ok"]
