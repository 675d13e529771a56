"""Server-Sent Events adapter for the chat completion stream.

``decode_frames`` turns raw response bytes into :class:`Frame` objects.
``sse_stream`` goes the other way and is what a server (or a test
double of one) writes on the wire.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import BaseModel, ValidationError

from tessera.streaming import Frame

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def parse_line(line: str) -> Frame | None:
    """Parse one SSE line, returning ``None`` for anything that is not a frame."""
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    if payload == DONE_SENTINEL:
        return None
    try:
        return Frame.model_validate_json(payload)
    except ValidationError as e:
        logger.warning(f"Failed to parse SSE frame: {e}")
        return None


async def decode_frames(chunks: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
    """Decode arbitrarily chunked SSE bytes into frames.

    Only complete, newline-terminated lines are parsed.  Whatever is
    left in the buffer when the source ends is dropped.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            frame = parse_line(line)
            if frame is not None:
                yield frame
    if buffer.strip():
        logger.debug("Discarding unterminated trailing SSE line")


def encode_frame(frame: Frame | dict) -> str:
    if isinstance(frame, BaseModel):
        data = frame.model_dump_json(exclude_none=True)
    else:
        data = json.dumps(frame)
    return f"{DATA_PREFIX}{data}\n\n"


async def sse_stream(
    frames: AsyncIterable[Frame | dict],
) -> AsyncIterator[str]:
    """Convert a frame async iterator into SSE-formatted strings."""
    async for frame in frames:
        yield encode_frame(frame)
    yield f"{DATA_PREFIX}{DONE_SENTINEL}\n\n"
