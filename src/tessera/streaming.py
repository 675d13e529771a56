"""Wire types for the chat completion stream.

The backend yields :class:`Frame` objects, one per SSE ``data:`` line.
Every field is validated on its own: a field with an unexpected shape
is logged and dropped, and the rest of the frame still applies.

The :class:`ToolCallAccumulator` reassembles tool calls whose name and
arguments arrive in fragments across multiple frames.
"""

from __future__ import annotations

import logging
import uuid

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from tessera.message import InterruptInfo, ToolCall, ToolResult, Usage

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    """Base for stream payloads that tolerate malformed optional fields."""

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_malformed(cls, value, handler, info: ValidationInfo):
        try:
            return handler(value)
        except ValidationError as e:
            field = cls.model_fields[info.field_name]
            if field.is_required():
                raise
            if isinstance(value, list):
                # keep the items that validate
                bad = {err["loc"][0] for err in e.errors() if err["loc"]}
                kept = [v for i, v in enumerate(value) if i not in bad]
                try:
                    result = handler(kept)
                except ValidationError:
                    pass
                else:
                    logger.warning(
                        f"Dropped {len(value) - len(kept)} malformed "
                        f"item(s) from {info.field_name!r}"
                    )
                    return result
            logger.warning(
                f"Dropping malformed {info.field_name!r} field: "
                f"{e.errors()[0]['msg']}"
            )
            return field.get_default(call_default_factory=True)


class FunctionDelta(WireModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallFragment(WireModel):
    """A fragment of a tool call, addressed by its position ``index``."""

    index: int
    id: str | None = None
    type: str | None = None
    function: FunctionDelta | None = None


class Delta(WireModel):
    role: str | None = None
    content: str | None = None
    reasoning_content: str | None = None
    tool_calls: list[ToolCallFragment] | None = None
    tool_result: ToolResult | None = None
    interrupt_info: InterruptInfo | None = None


class Choice(WireModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    finish_reason: str | None = None


class Frame(WireModel):
    """One decoded unit of the stream."""

    id: str | None = None
    message_id: str | None = None
    object: str | None = None
    created: int | float | None = None
    model: str | None = None
    usage: Usage | None = None
    choices: list[Choice] = []

    @property
    def choice(self) -> Choice | None:
        return self.choices[0] if self.choices else None

    @property
    def delta(self) -> Delta | None:
        return self.choices[0].delta if self.choices else None


def generate_tool_call_id() -> str:
    return str(uuid.uuid4())


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    Calls are keyed by ``index``.  A fragment without an id extends the
    call already at its index.  A fragment carrying an id starts the
    call at that index over, even if the index was seen before.
    """

    def __init__(self) -> None:
        self._pending: dict[int, ToolCall] = {}

    def __contains__(self, index: int) -> bool:
        return index in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def get(self, index: int) -> ToolCall | None:
        return self._pending.get(index)

    def feed(self, fragment: ToolCallFragment) -> ToolCall:
        """Apply one fragment and return the call it landed on."""
        tc = self._pending.get(fragment.index)
        if fragment.id or tc is None:
            tc = ToolCall(id=fragment.id or generate_tool_call_id())
            self._pending[fragment.index] = tc
        if fragment.function is not None:
            if fragment.function.name:
                tc.function.name += fragment.function.name
            if fragment.function.arguments:
                tc.function.arguments += fragment.function.arguments
        return tc

    def finalize(self) -> list[ToolCall]:
        """Return tool calls in index order."""
        return [self._pending[i] for i in sorted(self._pending)]
