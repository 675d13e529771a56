import json
import time
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_serializer, field_validator


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


def _now_ms() -> int:
    return int(time.time() * 1000)


class FunctionCall(BaseModel):
    name: str = ""
    arguments: str = ""


class ToolCall(BaseModel):
    """A tool invocation requested by the assistant."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall = Field(default_factory=FunctionCall)


class ToolResult(BaseModel):
    tool_call_id: str = ""
    name: str = ""
    output: str = ""
    status: str = ""

    @field_validator("output", mode="before")
    @classmethod
    def stringify_output(cls, v):
        """Tools may return structured data; keep it as JSON text."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        return json.dumps(v, ensure_ascii=False)


class InterruptInfo(BaseModel):
    """A request for human approval or input that pauses the turn."""

    type: str = "approval_required"
    message: str = ""
    payload: Any = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "Usage") -> None:
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens


class Attachment(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: Literal["image", "video"]
    url: str
    name: str = ""


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    content: str = ""


class ToolCallsPart(BaseModel):
    type: Literal["tool_calls"] = "tool_calls"
    tool_calls: list[ToolCall] = []


class ToolResultPart(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    tool_result: list[ToolResult] = []


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    content: str = ""


MessagePart = Annotated[
    Union[ReasoningPart, ToolCallsPart, ToolResultPart, TextPart],
    Field(discriminator="type"),
]


class Message(BaseModel):
    """One conversation message.

    ``parts`` is the ordered transcript of an assistant turn.  The
    ``content``, ``reasoning_content``, ``tool_calls`` and
    ``tool_result`` fields are flattened views of the same data for
    renderers that do not understand parts; the assembler keeps both
    in step.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    message_id: str | None = None
    role: MessageRole
    content: str = ""
    parts: list[MessagePart] = []
    reasoning_content: str = ""
    tool_calls: list[ToolCall] = []
    tool_result: list[ToolResult] = []
    tool_call_id: str | None = None
    usage: Usage | None = None
    interrupt_info: InterruptInfo | None = None
    interrupted: bool = False
    attachments: list[Attachment] = []
    timestamp: int = Field(default_factory=_now_ms)

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    def has_content(self) -> bool:
        """True if there is anything worth rendering."""
        if self.content.strip():
            return True
        if any(p.type != "text" or p.content.strip() for p in self.parts):
            return True
        return bool(self.tool_calls or self.tool_result or self.interrupt_info)
