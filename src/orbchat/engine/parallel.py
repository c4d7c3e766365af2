import asyncio
import logging

from ..config import Profile
from ..conversation import Conversation, Message
from ..errors import NoModelSelectedError
from ..transport import Transport
from .events import RenderAdapter, StreamAccumulator, TurnResult

logger = logging.getLogger(__name__)


class ParallelChatEngine:
    """Fans one user turn out to several models and joins the results.

    Each model gets its own task, its own stream and its own accumulator.
    Models never wait on each other; the turn completes once every task has
    settled. Replies are committed to the conversation in slot order after
    the join, so the final log does not depend on which model finished
    first. Failed and interrupted models commit nothing.

    Usage:
        engine = ParallelChatEngine(transport, Conversation(), profile, renderer)
        result = await engine.run_turn("Explain monads")
        for outcome in result.succeeded:
            print(outcome.model, outcome.content)
    """

    def __init__(
        self,
        transport: Transport,
        conversation: Conversation,
        profile: Profile,
        renderer: RenderAdapter | None = None,
    ):
        self._transport = transport
        self._conversation = conversation
        self._profile = profile
        self._renderer = renderer or RenderAdapter()
        self._tasks: list[asyncio.Task[None]] = []
        self._interrupted = False

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def renderer(self) -> RenderAdapter:
        return self._renderer

    @renderer.setter
    def renderer(self, renderer: RenderAdapter) -> None:
        self._renderer = renderer

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def switch_profile(self, profile: Profile) -> None:
        """Use another resolved profile from the next turn on."""
        self._profile = profile

    def interrupt(self) -> None:
        """Abort the running turn; ``run_turn`` returns an interrupted result."""
        if not self._tasks:
            return
        logger.info("Interrupting turn with %d open streams", len(self._tasks))
        self._interrupted = True
        for task in self._tasks:
            task.cancel()

    async def run_turn(self, content: str, models: list[str] | None = None) -> TurnResult:
        """Send ``content`` to every model and wait for all of them to settle.

        Args:
            content: User message text
            models: Model ids for this turn (default: the profile's models)

        Raises:
            NoModelSelectedError: No model to send to; nothing is appended
            asyncio.CancelledError: The calling task was cancelled; the
                conversation is restored before re-raising
        """
        targets = list(dict.fromkeys(models if models is not None else self._profile.models))
        if not targets:
            raise NoModelSelectedError()
        if self._tasks:
            raise RuntimeError("A turn is already in progress")

        mark = self._conversation.mark()
        self._conversation.append(Message.user(content))
        self._interrupted = False

        accumulators = [StreamAccumulator(model=m, slot=i) for i, m in enumerate(targets)]
        views = {
            acc.model: [msg.to_api() for msg in self._conversation.view_for(acc.model)]
            for acc in accumulators
        }

        self._renderer.on_turn_start(targets)
        self._tasks = [
            asyncio.create_task(self._stream_model(acc, views[acc.model]), name=f"stream:{acc.model}")
            for acc in accumulators
        ]

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            self._interrupted = True
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._settle(accumulators, mark)
            raise
        finally:
            self._tasks = []

        return self._settle(accumulators, mark)

    def _settle(self, accumulators: list[StreamAccumulator], mark: int) -> TurnResult:
        interrupted = self._interrupted
        if interrupted:
            self._conversation.rollback(mark)
        else:
            for acc in accumulators:
                if acc.reply is not None:
                    self._conversation.append(acc.reply)

        outcomes = [acc.outcome() for acc in accumulators]
        self._renderer.on_turn_complete(outcomes)
        return TurnResult(outcomes=outcomes, interrupted=interrupted)

    async def _stream_model(self, acc: StreamAccumulator, messages: list[dict[str, str]]) -> None:
        """Drive one model's stream. Errors end here and never reach siblings."""
        stream = None
        try:
            logger.debug("Opening stream for %s (%d messages)", acc.model, len(messages))
            stream = await self._transport.chat_completion_stream(
                messages,
                acc.model,
                temperature=self._profile.temperature,
                max_tokens=self._profile.max_tokens,
            )
            async for token in stream:
                if self._interrupted:
                    return
                acc.append(token)
                self._renderer.on_token(acc.model, token)

            if self._interrupted:
                return
            acc.finish()
            logger.info("%s finished (%d chars)", acc.model, len(acc.content))
            self._renderer.on_model_done(acc.model, acc.content)
        except asyncio.CancelledError:
            acc.is_streaming = False
            raise
        except Exception as exc:
            acc.fail(str(exc))
            logger.warning("%s failed: %s", acc.model, exc)
            self._renderer.on_model_error(acc.model, acc.error)
        finally:
            if stream is not None:
                await stream.aclose()
