import pytest

from tessera.client import ChatRequest
from tessera.streaming import Frame


# ---------------------------------------------------------------------------
# Frame builders (mirror the backend's chunk shape)
# ---------------------------------------------------------------------------

def frame_dict(
    frame_id: str | None = None,
    usage: dict | None = None,
    finish_reason: str | None = None,
    model: str | None = None,
    **delta,
) -> dict:
    """Raw chunk payload with a single choice carrying *delta*."""
    data: dict = {
        "choices": [
            {"index": 0, "delta": delta, "finish_reason": finish_reason}
        ],
    }
    if frame_id is not None:
        data["id"] = frame_id
    if usage is not None:
        data["usage"] = usage
    if model is not None:
        data["model"] = model
    return data


def make_frame(**kwargs) -> Frame:
    return Frame.model_validate(frame_dict(**kwargs))


def tool_fragment(
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    fragment: dict = {"index": index, "function": {}}
    if call_id is not None:
        fragment["id"] = call_id
    if name is not None:
        fragment["function"]["name"] = name
    if arguments is not None:
        fragment["function"]["arguments"] = arguments
    return fragment


async def aiter(items):
    for item in items:
        yield item


async def chunked(data: bytes, size: int):
    """Yield *data* in pieces of *size* bytes, like a slow socket."""
    for start in range(0, len(data), size):
        yield data[start:start + size]


# ---------------------------------------------------------------------------
# Scheduler doubles
# ---------------------------------------------------------------------------

class FakeHandle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakePaint:
    """Paint primitive whose callbacks only run when the test fires them."""

    def __init__(self):
        self.handles: list[FakeHandle] = []

    def __call__(self, callback) -> FakeHandle:
        handle = FakeHandle(callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def fire(self) -> None:
        ready, self.handles = self.live, []
        for handle in ready:
            handle.callback()


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeClient:
    """Client that streams pre-queued frames. No network calls.

    If *error* is set it is raised after the queued frames.
    """

    def __init__(self):
        self.frames: list[dict] = []
        self.error: BaseException | None = None
        self.requests: list[ChatRequest] = []

    async def stream_chat(self, request: ChatRequest):
        self.requests.append(request)
        frames, self.frames = self.frames, []
        for data in frames:
            yield Frame.model_validate(data)
        if self.error is not None:
            error, self.error = self.error, None
            raise error


@pytest.fixture
def fake_paint():
    return FakePaint()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def published():
    """List that collects every snapshot handed to the renderer."""
    return []
