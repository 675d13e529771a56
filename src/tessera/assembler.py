"""Folds a stream of frames into one growing assistant :class:`Message`.

Each frame is applied in a fixed order: identity, usage, tool-call
fragments, then the parts (reasoning, tool calls, tool result, text)
and finally the interrupt signal.  New content of the same type as the
last part extends it; anything else starts a new trailing part.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable

from tessera.message import (
    Message,
    MessageRole,
    ReasoningPart,
    TextPart,
    ToolCallsPart,
    ToolResult,
    ToolResultPart,
    Usage,
)
from tessera.streaming import Frame, ToolCallAccumulator, ToolCallFragment

logger = logging.getLogger(__name__)


class StreamAssembler:
    """Builds a message from frames, in place.

    Args:
        message: The shell to fold into, usually a placeholder created
            when the user submitted the turn.  Defaults to an empty
            assistant message.
    """

    def __init__(self, message: Message | None = None):
        self.message = message or Message(role=MessageRole.ASSISTANT)
        self.tool_calls = ToolCallAccumulator()
        self.finish_reason: str | None = None
        self.model: str | None = None
        self.frames_applied = 0
        # index -> position inside the trailing tool_calls part
        self._tool_slots: dict[int, int] = {}

    def apply(self, frame: Frame) -> Message:
        msg = self.message
        self._apply_identity(frame)
        if frame.usage is not None:
            if msg.usage is None:
                msg.usage = Usage()
            msg.usage.add(frame.usage)
        if frame.model:
            self.model = frame.model

        choice = frame.choice
        if choice is not None:
            if choice.finish_reason:
                self.finish_reason = choice.finish_reason
            delta = choice.delta

            fragments = delta.tool_calls or []
            for fragment in fragments:
                self.tool_calls.feed(fragment)

            if delta.reasoning_content:
                self._append_reasoning(delta.reasoning_content)
            if fragments:
                self._reflect_tool_calls(fragments)
            if delta.tool_result is not None:
                self._append_tool_result(delta.tool_result)
            if delta.content:
                self._append_text(delta.content)
            if delta.interrupt_info is not None:
                msg.interrupt_info = delta.interrupt_info
                msg.interrupted = False

        self.frames_applied += 1
        return msg

    def append_notice(self, text: str) -> Message:
        """Append caller-supplied text, e.g. an error notice."""
        self._append_text(text)
        return self.message

    def _apply_identity(self, frame: Frame) -> None:
        msg = self.message
        if frame.id and frame.id != msg.id:
            logger.debug(f"Message {msg.id} relabelled as {frame.id}")
            msg.id = frame.id
        if frame.message_id and frame.message_id != msg.message_id:
            msg.message_id = frame.message_id

    def _tail(self):
        parts = self.message.parts
        return parts[-1] if parts else None

    def _append_reasoning(self, text: str) -> None:
        tail = self._tail()
        if isinstance(tail, ReasoningPart):
            tail.content += text
        else:
            self.message.parts.append(ReasoningPart(content=text))
        self.message.reasoning_content += text

    def _reflect_tool_calls(self, fragments: list[ToolCallFragment]) -> None:
        tail = self._tail()
        if not isinstance(tail, ToolCallsPart):
            tail = ToolCallsPart(tool_calls=[])
            self.message.parts.append(tail)
            self._tool_slots = {}
        for fragment in fragments:
            current = self.tool_calls.get(fragment.index)
            slot = self._tool_slots.get(fragment.index)
            if slot is None:
                self._tool_slots[fragment.index] = len(tail.tool_calls)
                tail.tool_calls.append(current)
            elif tail.tool_calls[slot] is not current:
                tail.tool_calls[slot] = current
        self.message.tool_calls = self.tool_calls.finalize()

    def _append_tool_result(self, result: ToolResult) -> None:
        tail = self._tail()
        if not isinstance(tail, ToolResultPart):
            tail = ToolResultPart(tool_result=[])
            self.message.parts.append(tail)
        tail.tool_result.append(result)
        self.message.tool_result.append(result)

    def _append_text(self, text: str) -> None:
        tail = self._tail()
        if isinstance(tail, TextPart):
            tail.content += text
        else:
            self.message.parts.append(TextPart(content=text))
        self.message.content += text


async def assemble(
    frames: AsyncIterable[Frame], message: Message | None = None,
) -> Message:
    """Fold a whole frame source into a single message."""
    assembler = StreamAssembler(message)
    async for frame in frames:
        assembler.apply(frame)
    return assembler.message
