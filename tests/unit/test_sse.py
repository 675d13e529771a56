"""Unit tests for the SSE frame decoder."""

import json
import logging

import pytest

from tessera.assembler import assemble
from tessera.sse import decode_frames, encode_frame, parse_line, sse_stream
from tessera.streaming import Frame

from tests.conftest import aiter, chunked, frame_dict


def _line(data: dict) -> str:
    return f"data: {json.dumps(data)}\n"


async def _decode(chunks):
    return [f async for f in decode_frames(chunks)]


class TestParseLine:
    def test_data_line(self):
        frame = parse_line('data: {"id": "a", "choices": []}')
        assert isinstance(frame, Frame)
        assert frame.id == "a"

    @pytest.mark.parametrize(
        "line",
        ["", "   ", "data: [DONE]", "event: message", ": keep-alive", "id: 7"],
        ids=["empty", "blank", "done", "event", "comment", "id"],
    )
    def test_non_frame_lines_ignored(self, line):
        assert parse_line(line) is None

    def test_surrounding_whitespace_stripped(self):
        assert parse_line('  data: {"id": "a"}\r').id == "a"

    def test_malformed_json_logged_and_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tessera.sse"):
            assert parse_line("data: {not json") is None
        assert any(
            "Failed to parse SSE frame" in r.message for r in caplog.records
        )

    def test_non_object_payload_skipped(self):
        assert parse_line("data: [1, 2, 3]") is None
        assert parse_line('data: "text"') is None


class TestMalformedFields:
    """A field with an unexpected shape is dropped; the rest applies."""

    def test_fractional_created_keeps_delta(self):
        frame = parse_line(
            'data: {"id": "x", "created": 1700000000.5,'
            ' "choices": [{"delta": {"content": "Hi"}}]}'
        )
        assert frame.id == "x"
        assert frame.delta.content == "Hi"

    def test_bad_metadata_dropped_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tessera.streaming"):
            frame = parse_line(
                'data: {"object": 7, "created": "soon", "usage": "lots",'
                ' "choices": [{"delta": {"content": "Hi"}}]}'
            )
        assert frame.object is None
        assert frame.created is None
        assert frame.usage is None
        assert frame.delta.content == "Hi"
        assert any("'usage'" in r.message for r in caplog.records)

    def test_malformed_tool_result_keeps_text(self):
        frame = parse_line(
            'data: {"choices": [{"delta": {"content": "done",'
            ' "tool_result": {"name": ["not", "a", "name"]}}}]}'
        )
        assert frame.delta.tool_result is None
        assert frame.delta.content == "done"

    def test_structured_tool_output_kept_as_json(self):
        frame = parse_line(
            'data: {"choices": [{"delta": {"content": "done",'
            ' "tool_result": {"tool_call_id": "c1", "output": [1, 2]}}}]}'
        )
        assert frame.delta.tool_result.output == "[1, 2]"
        assert frame.delta.content == "done"

    def test_bad_fragment_dropped_others_kept(self):
        frame = parse_line(
            'data: {"choices": [{"delta": {"reasoning_content": "r",'
            ' "tool_calls": [{"index": "first"},'
            ' {"index": 1, "id": "c2", "function": {"name": "f"}}]}}]}'
        )
        (fragment,) = frame.delta.tool_calls
        assert fragment.index == 1
        assert fragment.id == "c2"
        assert frame.delta.reasoning_content == "r"

    def test_choices_of_wrong_type_dropped(self):
        frame = parse_line('data: {"id": "x", "choices": "nope"}')
        assert frame.id == "x"
        assert frame.choices == []
        assert frame.delta is None

    @pytest.mark.asyncio
    async def test_text_from_partially_bad_frame_reaches_message(self):
        body = (
            _line(frame_dict(content="Hel"))
            + 'data: {"created": 1.5, "choices": [{"delta": {"content": "lo",'
            ' "tool_result": {"status": {"bad": true}}}}]}\n'
        ).encode()

        message = await assemble(decode_frames(aiter([body])))

        assert message.content == "Hello"
        assert [p.type for p in message.parts] == ["text"]
        assert message.parts[0].content == "Hello"
        assert message.tool_result == []


class TestDecodeFrames:
    @pytest.mark.asyncio
    async def test_frames_split_across_chunks(self):
        body = (
            _line(frame_dict(content="Hel"))
            + "\n"
            + _line(frame_dict(content="lo"))
            + "\n"
            + "data: [DONE]\n\n"
        ).encode()

        frames = await _decode(chunked(body, 7))

        assert [f.delta.content for f in frames] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_single_byte_chunks(self):
        body = _line(frame_dict(content="abc")).encode()
        frames = await _decode(chunked(body, 1))
        assert len(frames) == 1
        assert frames[0].delta.content == "abc"

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        # json.dumps would escape the characters; send raw UTF-8
        raw = (
            'data: {"choices": [{"delta": {"content": "héllo ✓"}}]}\n'
        ).encode("utf-8")

        frames = await _decode(chunked(raw, 1))

        assert frames[0].delta.content == "héllo ✓"

    @pytest.mark.asyncio
    async def test_malformed_frame_does_not_stop_stream(self):
        body = (
            _line(frame_dict(content="one"))
            + "data: {not json\n"
            + _line(frame_dict(content="two"))
        ).encode()

        frames = await _decode(aiter([body]))

        assert [f.delta.content for f in frames] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_unterminated_trailing_line_discarded(self):
        body = (
            _line(frame_dict(content="kept"))
            + 'data: {"choices": [{"delta": {"content": "lost"}}]}'
        ).encode()

        frames = await _decode(aiter([body]))

        assert [f.delta.content for f in frames] == ["kept"]

    @pytest.mark.asyncio
    async def test_not_restartable(self):
        body = _line(frame_dict(content="x")).encode()
        gen = decode_frames(aiter([body]))

        first = [f async for f in gen]
        second = [f async for f in gen]

        assert len(first) == 1
        assert second == []

    @pytest.mark.asyncio
    async def test_empty_source(self):
        assert await _decode(aiter([])) == []


class TestEncode:
    def test_encode_frame_model(self):
        frame = Frame.model_validate(frame_dict(frame_id="a", content="hi"))
        line = encode_frame(frame)
        assert line.startswith("data: ")
        assert line.endswith("\n\n")
        assert parse_line(line).delta.content == "hi"

    @pytest.mark.asyncio
    async def test_sse_stream_terminates_with_sentinel(self):
        lines = [
            s async for s in sse_stream(aiter([frame_dict(content="a")]))
        ]
        assert len(lines) == 2
        assert lines[-1] == "data: [DONE]\n\n"

    @pytest.mark.asyncio
    async def test_decoder_reads_encoder_output(self):
        payloads = [
            frame_dict(reasoning_content="think"),
            frame_dict(content="answer", finish_reason="stop"),
        ]
        body = "".join([
            s async for s in sse_stream(aiter(payloads))
        ]).encode()

        frames = await _decode(chunked(body, 5))

        assert frames[0].delta.reasoning_content == "think"
        assert frames[1].choice.finish_reason == "stop"
