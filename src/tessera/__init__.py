from tessera.assembler import StreamAssembler, assemble
from tessera.client import ChatClient, ChatRequest, build_chat_request
from tessera.instrumentation import instrument, uninstrument
from tessera.message import (
    Attachment,
    InterruptInfo,
    Message,
    MessageRole,
    ToolCall,
    ToolResult,
    Usage,
)
from tessera.runner import Runner, TurnResult
from tessera.scheduler import RenderScheduler, Snapshot
from tessera.session import Session
from tessera.sse import decode_frames
from tessera.streaming import Frame, ToolCallAccumulator

__all__ = [
    "Attachment",
    "ChatClient",
    "ChatRequest",
    "Frame",
    "InterruptInfo",
    "Message",
    "MessageRole",
    "RenderScheduler",
    "Runner",
    "Session",
    "Snapshot",
    "StreamAssembler",
    "ToolCall",
    "ToolCallAccumulator",
    "ToolResult",
    "TurnResult",
    "Usage",
    "assemble",
    "build_chat_request",
    "decode_frames",
    "instrument",
    "uninstrument",
]
