import uuid

from pydantic import BaseModel, Field

from tessera.message import InterruptInfo, Message, MessageRole, ToolCall, ToolResult


class Session(BaseModel):
    """A conversation: the thread id the backend knows it by, and its history.

    Tool-call correlation is recomputed from the whole transcript on
    every call rather than tracked incrementally.
    """

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    transcript: list[Message] = []

    def tool_calls(self) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for msg in self.transcript:
            if not msg.parts:
                calls.extend(msg.tool_calls)
                continue
            for part in msg.parts:
                if part.type == "tool_calls":
                    calls.extend(part.tool_calls)
        return calls

    def tool_results(self) -> list[ToolResult]:
        # Parts win over the flattened list; they hold the same results.
        results: list[ToolResult] = []
        for msg in self.transcript:
            if not msg.parts:
                results.extend(msg.tool_result)
                continue
            for part in msg.parts:
                if part.type == "tool_result":
                    results.extend(part.tool_result)
        return results

    def completed_tool_ids(self) -> set[str]:
        """Ids of every tool call some message carries a result for."""
        ids = {r.tool_call_id for r in self.tool_results() if r.tool_call_id}
        for msg in self.transcript:
            if msg.role == MessageRole.TOOL and msg.tool_call_id:
                ids.add(msg.tool_call_id)
        return ids

    def is_completed(self, call: ToolCall) -> bool:
        return call.id in self.completed_tool_ids()

    def orphan_tool_results(self) -> list[ToolResult]:
        """Results whose ``tool_call_id`` matches no known tool call."""
        call_ids = {tc.id for tc in self.tool_calls()}
        return [r for r in self.tool_results() if r.tool_call_id not in call_ids]

    def pending_interrupt(self) -> InterruptInfo | None:
        if not self.transcript:
            return None
        last = self.transcript[-1]
        if last.role != MessageRole.ASSISTANT or last.interrupted:
            return None
        return last.interrupt_info
