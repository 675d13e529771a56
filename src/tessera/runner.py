import asyncio
import logging
import time
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass

import httpx
from openai import APIError

from tessera.assembler import StreamAssembler
from tessera.client import DEFAULT_MODEL, ChatClient, build_chat_request
from tessera.instrumentation import record_error, record_finish, record_usage, turn_span
from tessera.message import Attachment, Message, MessageRole
from tessera.scheduler import PUBLISH_INTERVAL, NextPaint, RenderScheduler, Snapshot
from tessera.session import Session
from tessera.streaming import Frame

logger = logging.getLogger(__name__)

ERROR_NOTICE = "\n\n[Error generating response]"


@dataclass
class TurnResult:
    """The outcome of one streamed assistant turn."""

    message: Message
    finish_reason: str | None = None
    cancelled: bool = False
    error: BaseException | None = None


def _discard(snapshot: Snapshot) -> None:
    pass


class Runner:
    """Drives one chat turn from submission to the finished message.

    The Runner appends the user message to the session, streams the
    reply through a :class:`StreamAssembler`, publishes snapshots via a
    :class:`RenderScheduler`, and hands the finished assistant message
    to the session transcript however the stream ends.

    ``send()`` builds the request and opens the stream.  ``stream()``
    is the entry point for callers that already have a frame source.

    Args:
        client: Transport used by ``send()``.
        model: Model name sent with each request.
        publish_interval: Minimum seconds between snapshots.
        next_paint: Paint primitive handed to the scheduler.
        clock: Time source handed to the scheduler.
    """

    def __init__(
        self,
        client: ChatClient | None = None,
        model: str = DEFAULT_MODEL,
        publish_interval: float = PUBLISH_INTERVAL,
        next_paint: NextPaint | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client or ChatClient()
        self.model = model
        self.publish_interval = publish_interval
        self.next_paint = next_paint
        self.clock = clock
        self._stopping = False

    def stop(self) -> None:
        """Stop the running turn after the frame being applied.

        The message is kept as-is.  Called before a turn starts, it
        stops that turn before any frame is read.  To abort while
        waiting on the network, cancel the task instead.
        """
        self._stopping = True

    async def send(
        self,
        session: Session,
        content: str,
        attachments: list[Attachment] | None = None,
        on_update: Callable[[Snapshot], None] | None = None,
    ) -> TurnResult:
        attachments = attachments or []
        if not content.strip() and not attachments:
            raise ValueError("Cannot send an empty message")

        user_msg = Message(
            role=MessageRole.USER, content=content, attachments=attachments,
        )
        session.transcript.append(user_msg)
        request = build_chat_request(self.model, [user_msg], session.session_id)
        placeholder = Message(role=MessageRole.ASSISTANT)
        return await self.stream(
            session, self.client.stream_chat(request), placeholder, on_update,
        )

    async def respond_to_interrupt(
        self,
        session: Session,
        response: str,
        on_update: Callable[[Snapshot], None] | None = None,
    ) -> TurnResult:
        """Answer the pending interrupt with a new turn."""
        if session.pending_interrupt() is None:
            raise ValueError("No interrupt is awaiting a response")
        return await self.send(session, response, on_update=on_update)

    async def stream(
        self,
        session: Session,
        frames: AsyncIterable[Frame],
        message: Message | None = None,
        on_update: Callable[[Snapshot], None] | None = None,
    ) -> TurnResult:
        """Fold *frames* into *message* and append it to the session."""
        assembler = StreamAssembler(message)
        scheduler = RenderScheduler(
            source=lambda: assembler.message,
            publish=on_update or _discard,
            interval=self.publish_interval,
            next_paint=self.next_paint,
            clock=self.clock,
        )
        result = TurnResult(message=assembler.message)

        async with turn_span(self.model, session.session_id) as span:
            try:
                if self._stopping:
                    # stopped before the first frame arrived
                    result.cancelled = True
                else:
                    async for frame in frames:
                        assembler.apply(frame)
                        scheduler.mark_dirty()
                        if self._stopping:
                            result.cancelled = True
                            break
                if result.cancelled and hasattr(frames, "aclose"):
                    await frames.aclose()
            except (APIError, httpx.HTTPError) as e:
                logger.error(f"Streaming error: {e}")
                record_error(span, e)
                assembler.append_notice(ERROR_NOTICE)
                result.error = e
            except asyncio.CancelledError:
                logger.info(f"Turn cancelled for session {session.session_id}")
                result.cancelled = True
                raise
            finally:
                scheduler.flush()
                session.transcript.append(assembler.message)
                result.finish_reason = assembler.finish_reason
                record_usage(span, assembler.message.usage, assembler.model)
                record_finish(
                    span, assembler.finish_reason, len(assembler.message.parts),
                )
                self._stopping = False

        return result
