from collections.abc import AsyncIterator
import logging
import os

from openai import AsyncOpenAI
from pydantic import BaseModel

from tessera.message import Message
from tessera.sse import decode_frames
from tessera.streaming import Frame

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/v1"
DEFAULT_MODEL = "deepseek-reasoner"


class ChatRequest(BaseModel):
    model: str
    messages: list[dict]
    stream: bool = True
    config: dict = {}


def to_api_message(message: Message) -> dict:
    """Shape a message for the wire.

    Attachments become a multimodal content array (media first, then
    the text); plain messages keep a string ``content``.
    """
    if not message.attachments:
        return {"role": message.role.value, "content": message.content or ""}

    content_parts = []
    for att in message.attachments:
        if att.type == "image":
            content_parts.append({
                "type": "image_url",
                "image_url": {"url": att.url},
            })
        elif att.type == "video":
            content_parts.append({
                "type": "video_url",
                "video_url": {"url": att.url},
            })
    if message.content:
        content_parts.append({"type": "text", "text": message.content})
    return {"role": message.role.value, "content": content_parts}


def build_chat_request(
        model: str,
        messages: list[Message],
        thread_id: str,
) -> ChatRequest:
    return ChatRequest(
        model=model,
        messages=[to_api_message(m) for m in messages],
        config={"configurable": {"thread_id": thread_id}},
    )


class ChatClient:
    """Streams chat completions from an OpenAI-compatible backend.

    The backend extends the chunk format with ``tool_result`` and
    ``interrupt_info`` deltas, so the raw SSE bytes are decoded here
    rather than by the SDK's own stream parser.

    Args:
        base_url: Backend URL including the ``/v1`` prefix.  Falls
            back to ``TESSERA_BASE_URL``.
        api_key: Falls back to ``TESSERA_API_KEY``; local backends
            accept any value.
        http_client: Optional ``httpx.AsyncClient`` to send requests with.
    """

    def __init__(
            self,
            base_url: str | None = None,
            api_key: str | None = None,
            http_client=None,
            max_retries: int = 5,
            timeout: float = 600.0,
    ):
        if not base_url:
            base_url = os.getenv("TESSERA_BASE_URL", DEFAULT_BASE_URL)
        if not api_key:
            api_key = os.getenv("TESSERA_API_KEY", "DUMMY")
        self.base_url = base_url
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            max_retries=max_retries,
            timeout=timeout,
            http_client=http_client,
        )

    async def stream_chat(self, request: ChatRequest) -> AsyncIterator[Frame]:
        """Yield frames as they arrive.

        Raises:
            openai.APIError: On a non-2xx response or connection failure.
            httpx.HTTPError: If the connection drops mid-stream.
        """
        logger.info(f"Streaming {request.model} for thread "
                    f"{request.config.get('configurable', {}).get('thread_id')}")
        async with self.client.chat.completions.with_streaming_response.create(
            model=request.model,
            messages=request.messages,
            stream=request.stream,
            extra_body={"config": request.config},
        ) as response:
            async for frame in decode_frames(response.iter_bytes()):
                yield frame
